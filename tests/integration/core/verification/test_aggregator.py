import pytest

from src.core.verification.aggregator import VerificationAggregator
from src.core.verification.constants import ChannelEnum
from src.core.verification.models import VerificationStatus


@pytest.fixture
def aggregator() -> VerificationAggregator:
    return VerificationAggregator(required_channels=2)


class TestVerificationAggregator:
    def test_unknown_user_has_nothing_verified(self, aggregator, user):
        assert aggregator.get_status(user.id) == {channel: False for channel in ChannelEnum.list_all()}
        assert aggregator.count_verified(user.id) == 0
        assert not aggregator.is_fully_verified(user.id)

    def test_ensure_status_is_idempotent(self, aggregator, user):
        first = aggregator.ensure_status(user.id)
        second = aggregator.ensure_status(user.id)

        assert first.id == second.id
        assert VerificationStatus.count(VerificationStatus.user_id == user.id) == 1

    @pytest.mark.parametrize(
        'channels',
        [
            [ChannelEnum.SMS, ChannelEnum.EMAIL],
            [ChannelEnum.EMAIL, ChannelEnum.SMS],
            [ChannelEnum.TOTP, ChannelEnum.VOICE],
        ],
    )
    def test_any_two_channels_in_any_order(self, aggregator, user, channels):
        aggregator.mark_verified(user.id, channels[0])
        assert not aggregator.is_fully_verified(user.id)

        aggregator.mark_verified(user.id, channels[1])
        assert aggregator.is_fully_verified(user.id)
        status = aggregator.get_status(user.id)
        assert {channel for channel, verified in status.items() if verified} == {c.value for c in channels}

    def test_same_channel_counts_once(self, aggregator, user):
        aggregator.mark_verified(user.id, ChannelEnum.SMS)
        aggregator.mark_verified(user.id, 'sms')

        assert aggregator.count_verified(user.id) == 1
        assert not aggregator.is_fully_verified(user.id)

    def test_later_channel_keeps_earlier_proof(self, aggregator, user):
        aggregator.mark_verified(user.id, ChannelEnum.WHATSAPP)
        aggregator.mark_verified(user.id, ChannelEnum.EMAIL)

        status = VerificationStatus.get(user_id=user.id)
        assert status.whatsapp
        assert status.email
        assert status.verified_count == 2

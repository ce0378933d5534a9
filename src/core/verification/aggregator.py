from loguru import logger

from src import settings
from src.common.nanoid import NanoIdType
from src.core.verification.constants import ChannelEnum
from src.core.verification.domains import VerificationStatusCreate, VerificationStatusRead
from src.core.verification.models import VerificationStatus


class VerificationAggregator:
    """
    Channel proofs accumulate across sessions and are never reset by a
    later verification of another channel
    """

    def __init__(self, required_channels: int | None = None):
        self.required_channels = required_channels or settings.SESSION_CREDENTIAL_SETTINGS['REQUIRED_CHANNELS']

    @classmethod
    def factory(cls) -> 'VerificationAggregator':
        return cls()

    def ensure_status(self, user_id: NanoIdType) -> VerificationStatusRead:
        status = VerificationStatus.get_or_none(user_id=user_id)
        if status is not None:
            return status

        return VerificationStatus.create(VerificationStatusCreate(user_id=user_id))

    def mark_verified(self, user_id: NanoIdType, channel: ChannelEnum) -> None:
        channel = ChannelEnum(channel)
        self.ensure_status(user_id)
        VerificationStatus.update_where(
            VerificationStatus.user_id == user_id,
            values={getattr(VerificationStatus, channel.value): True},
        )
        logger.info(f'{channel} verified for {user_id}')

    def get_status(self, user_id: NanoIdType) -> dict[str, bool]:
        status = VerificationStatus.get_or_none(user_id=user_id)
        if status is None:
            return {channel: False for channel in ChannelEnum.list_all()}
        return status.verified

    def count_verified(self, user_id: NanoIdType) -> int:
        return sum(self.get_status(user_id).values())

    def is_fully_verified(self, user_id: NanoIdType) -> bool:
        return self.count_verified(user_id) >= self.required_channels

import datetime

import pytest

from src.core.verification.lockout import LockoutPolicy

NOW = datetime.datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def policy() -> LockoutPolicy:
    return LockoutPolicy(threshold=5, window=datetime.timedelta(minutes=15))


class TestLockoutPolicy:
    def test_from_settings(self):
        policy = LockoutPolicy.from_settings()
        assert policy.threshold == 5
        assert policy.window == datetime.timedelta(minutes=15)

    def test_below_threshold_not_locked(self, policy):
        state = policy.state_for(failed_attempts=4, last_failed_at=NOW, now=NOW)
        assert not state.locked
        assert state.failed_attempts == 4

    def test_threshold_locks(self, policy):
        state = policy.state_for(failed_attempts=5, last_failed_at=NOW, now=NOW)
        assert state.locked
        assert state.remaining_seconds == 15 * 60

    def test_remaining_counts_from_last_failure(self, policy):
        state = policy.state_for(
            failed_attempts=6, last_failed_at=NOW, now=NOW + datetime.timedelta(minutes=10, milliseconds=500)
        )
        assert state.locked
        # Rounded up so a client never retries early
        assert state.remaining_seconds == 300

    def test_window_elapsed_unlocks(self, policy):
        state = policy.state_for(failed_attempts=5, last_failed_at=NOW, now=NOW + datetime.timedelta(minutes=15))
        assert not state.locked

    def test_remaining_seconds_floor(self, policy):
        almost = NOW + datetime.timedelta(minutes=15) - datetime.timedelta(milliseconds=1)
        assert policy.remaining_seconds(NOW, almost) == 1

    @pytest.mark.parametrize(
        'last_failed_at, expired',
        [
            (None, True),
            (NOW, False),
            (NOW - datetime.timedelta(minutes=14, seconds=59), False),
            (NOW - datetime.timedelta(minutes=15), True),
        ],
    )
    def test_is_expired(self, policy, last_failed_at, expired):
        assert policy.is_expired(last_failed_at, NOW) is expired

import datetime
import math
from dataclasses import dataclass

from loguru import logger
from sqlalchemy import case, or_

from src import settings
from src.common.nanoid import NanoIdType
from src.common.utils import utcnow
from src.core.user import User, UserNotFound
from src.core.verification.domains import LockoutState
from src.core.verification.exceptions import VerificationLocked


@dataclass(frozen=True)
class LockoutPolicy:
    """
    The failure counter lives for `window` after the most recent failure.
    Every path that reads or clears the counter uses this one predicate
    """

    threshold: int
    window: datetime.timedelta

    @classmethod
    def from_settings(cls) -> 'LockoutPolicy':
        return cls(threshold=settings.LOCKOUT_SETTINGS['THRESHOLD'], window=settings.LOCKOUT_SETTINGS['WINDOW'])

    def is_expired(self, last_failed_at: datetime.datetime | None, now: datetime.datetime) -> bool:
        return last_failed_at is None or now - last_failed_at >= self.window

    def remaining_seconds(self, last_failed_at: datetime.datetime, now: datetime.datetime) -> int:
        remaining = (last_failed_at + self.window - now).total_seconds()
        return max(1, math.ceil(remaining))

    def state_for(self, failed_attempts: int, last_failed_at: datetime.datetime | None, now: datetime.datetime):
        if failed_attempts >= self.threshold and not self.is_expired(last_failed_at, now):
            return LockoutState(
                locked=True,
                remaining_seconds=self.remaining_seconds(last_failed_at, now),
                failed_attempts=failed_attempts,
            )
        return LockoutState(locked=False, failed_attempts=failed_attempts)


class LockoutGuard:
    def __init__(self, policy: LockoutPolicy):
        self.policy = policy

    @classmethod
    def factory(cls) -> 'LockoutGuard':
        return cls(policy=LockoutPolicy.from_settings())

    def on_failure(self, user_id: NanoIdType, now: datetime.datetime | None = None) -> LockoutState:
        now = now or utcnow()
        window_start = now - self.policy.window
        # Single statement, an expired counter restarts at one
        updated = User.update_where(
            User.id == user_id,
            values={
                'failed_attempts': case(
                    (or_(User.last_failed_at.is_(None), User.last_failed_at <= window_start), 1),
                    else_=User.failed_attempts + 1,
                ),
                'last_failed_at': now,
            },
        )
        if not updated:
            raise UserNotFound(message=f'User not found with id: {user_id}')

        user = User.get(id=user_id)
        state = self.policy.state_for(user.failed_attempts, user.last_failed_at, now)
        if state.locked:
            logger.warning(f'lockout engaged for {user_id} after {user.failed_attempts} failures')
        else:
            logger.info(f'recorded verification failure {user.failed_attempts} for {user_id}')
        return state

    def on_success(self, user_id: NanoIdType) -> None:
        User.update_where(User.id == user_id, values={'failed_attempts': 0, 'last_failed_at': None})

    def check_locked(self, user_id: NanoIdType, now: datetime.datetime | None = None) -> LockoutState:
        now = now or utcnow()
        user = User.get_or_none(id=user_id)
        if user is None:
            raise UserNotFound(message=f'User not found with id: {user_id}')

        if user.failed_attempts and self.policy.is_expired(user.last_failed_at, now):
            # Self clearing, the condition guards against a failure recorded since the read
            User.update_where(
                User.id == user_id,
                or_(User.last_failed_at.is_(None), User.last_failed_at <= now - self.policy.window),
                values={'failed_attempts': 0, 'last_failed_at': None},
            )
            logger.info(f'lockout counter for {user_id} expired and was cleared')
            return LockoutState(locked=False)

        return self.policy.state_for(user.failed_attempts, user.last_failed_at, now)

    def ensure_not_locked(self, user_id: NanoIdType, now: datetime.datetime | None = None) -> None:
        state = self.check_locked(user_id, now=now)
        if state.locked:
            raise VerificationLocked(remaining_seconds=state.remaining_seconds)

    def reset_expired(self, now: datetime.datetime | None = None) -> int:
        now = now or utcnow()
        return User.update_where(
            User.failed_attempts > 0,
            or_(User.last_failed_at.is_(None), User.last_failed_at <= now - self.policy.window),
            values={'failed_attempts': 0, 'last_failed_at': None},
        )

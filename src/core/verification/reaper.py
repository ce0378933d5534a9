import datetime

from loguru import logger

from src import settings
from src.common.utils import utcnow
from src.core.verification.domains import ReaperSummary
from src.core.verification.lockout import LockoutGuard
from src.core.verification.otp_store import OtpStore


class Reaper:
    """
    Removes codes nobody tried before expiry and clears lockout counters
    that outlived the lockout window. Batches are idempotent so an
    overlapping run only finds less work
    """

    def __init__(self, otp_store: OtpStore, lockout_guard: LockoutGuard, batch_size: int | None = None):
        self.otp_store = otp_store
        self.lockout_guard = lockout_guard
        self.batch_size = batch_size or settings.REAPER_SETTINGS['BATCH_SIZE']

    @classmethod
    def factory(cls) -> 'Reaper':
        return cls(otp_store=OtpStore.factory(), lockout_guard=LockoutGuard.factory())

    def sweep(self, now: datetime.datetime | None = None) -> ReaperSummary:
        now = now or utcnow()
        summary = ReaperSummary(
            expired_codes=self.otp_store.purge_expired(now=now, limit=self.batch_size),
            lockouts_reset=self.lockout_guard.reset_expired(now=now),
        )
        logger.info(f'reaper sweep: {summary.expired_codes} expired codes, {summary.lockouts_reset} lockouts reset')
        return summary

    def full_sweep(self, now: datetime.datetime | None = None) -> ReaperSummary:
        """
        Daily pass, keeps sweeping batches until nothing expired remains
        """
        now = now or utcnow()
        total = ReaperSummary()
        while True:
            summary = self.sweep(now=now)
            total.expired_codes += summary.expired_codes
            total.lockouts_reset += summary.lockouts_reset
            if summary.expired_codes < self.batch_size:
                break

        logger.info(f'reaper full sweep: {total.expired_codes} expired codes, {total.lockouts_reset} lockouts reset')
        return total

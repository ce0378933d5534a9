import datetime
from typing import Callable

import sentry_sdk
from loguru import logger

from src import settings
from src.common.nanoid import NanoIdType
from src.common.utils import mask_destination, utcnow
from src.core.verification.constants import ChannelEnum, DispatchStatusEnum
from src.core.verification.domains import DispatchJobCreate, DispatchJobRead, DispatchSummary
from src.core.verification.models import DispatchJob
from src.core.verification.senders import ChannelSender, get_channel_sender


class DispatchQueue:
    """
    Every issued code becomes a DispatchJob. Jobs move forward only:
        pending -> processing -> completed | failed
    A claim is a conditional pending -> processing update, so overlapping
    consumers never deliver the same job twice. A consumer that dies after
    claiming leaves the job in processing, nothing here recovers it
    """

    def __init__(
        self,
        batch_size: int | None = None,
        max_send_attempts: int | None = None,
        sender_factory: Callable[[ChannelEnum], ChannelSender] = get_channel_sender,
    ):
        self.batch_size = batch_size or settings.DISPATCH_SETTINGS['BATCH_SIZE']
        self.max_send_attempts = max_send_attempts or settings.DISPATCH_SETTINGS['MAX_SEND_ATTEMPTS']
        self.sender_factory = sender_factory

    @classmethod
    def factory(cls) -> 'DispatchQueue':
        return cls()

    def enqueue(self, user_id: NanoIdType, channel: ChannelEnum, destination: str, code: str) -> DispatchJobRead:
        job = DispatchJob.create(
            DispatchJobCreate(
                user_id=user_id,
                channel=channel,
                destination=destination,
                code=code,
                status=DispatchStatusEnum.PENDING.value,
            )
        )
        logger.info(f'enqueued {job.channel} dispatch {job.id} to {mask_destination(destination)}')
        return job

    def get_job(self, job_id: NanoIdType) -> DispatchJobRead:
        return DispatchJob.get(id=job_id)

    def claim(self, job_id: NanoIdType, now: datetime.datetime | None = None) -> bool:
        now = now or utcnow()
        claimed = DispatchJob.update_where(
            DispatchJob.id == job_id,
            DispatchJob.status == DispatchStatusEnum.PENDING.value,
            values={'status': DispatchStatusEnum.PROCESSING.value, 'claimed_at': now},
        )
        return claimed == 1

    def claim_batch(self, limit: int | None = None, now: datetime.datetime | None = None) -> list[DispatchJobRead]:
        now = now or utcnow()
        pending_ids = DispatchJob.list_attribute(
            'id',
            DispatchJob.status == DispatchStatusEnum.PENDING.value,
            limit=limit or self.batch_size,
        )
        claimed_ids = [job_id for job_id in pending_ids if self.claim(job_id, now=now)]
        if claimed_ids:
            logger.info(f'claimed {len(claimed_ids)} of {len(pending_ids)} pending dispatch jobs')
        return DispatchJob.list(DispatchJob.id.in_(claimed_ids), ordering=['created_at']) if claimed_ids else []

    def process(self, job: DispatchJobRead, max_attempts: int | None = None) -> DispatchJobRead:
        """
        Delivers a claimed job, retrying up to max_attempts before recording the failure
        """
        max_attempts = max_attempts or self.max_send_attempts
        error = None
        for attempt in range(1, max_attempts + 1):
            DispatchJob.update_where(DispatchJob.id == job.id, values={'attempts': DispatchJob.attempts + 1})
            try:
                delivered = self.sender_factory(job.channel).send(job.destination, job.code)
            except Exception as exc:
                # Senders report provider failures as False, anything else is a bug
                logger.exception(f'unexpected error delivering dispatch {job.id}')
                sentry_sdk.capture_exception(exc)
                error = f'{exc.__class__.__name__}: {exc}'
                break

            if delivered:
                return self._finish(job.id, DispatchStatusEnum.COMPLETED)

            error = f'{job.channel} sender reported failure after {attempt} attempt(s)'
            logger.warning(f'dispatch {job.id} attempt {attempt}/{max_attempts} failed')

        return self._finish(job.id, DispatchStatusEnum.FAILED, error=error)

    def deliver_now(self, job: DispatchJobRead) -> bool:
        """
        Synchronous path, a single attempt bounded by the provider timeout
        """
        if not self.claim(job.id):
            logger.warning(f'dispatch {job.id} already claimed')
            return False

        return self.process(job, max_attempts=1).status == DispatchStatusEnum.COMPLETED.value

    def process_pending(
        self,
        limit: int | None = None,
        now: datetime.datetime | None = None,
        checkpoint: Callable[[], None] | None = None,
    ) -> DispatchSummary:
        """
        checkpoint runs after the claim and after every job, the worker commits there
        """
        jobs = self.claim_batch(limit=limit, now=now)
        if checkpoint:
            checkpoint()

        summary = DispatchSummary(claimed=len(jobs))
        for job in jobs:
            finished = self.process(job)
            if finished.status == DispatchStatusEnum.COMPLETED.value:
                summary.completed += 1
            else:
                summary.failed += 1
            if checkpoint:
                checkpoint()

        if jobs:
            logger.info(f'dispatch batch done: {summary.completed} completed, {summary.failed} failed')
        return summary

    def _finish(self, job_id: NanoIdType, status: DispatchStatusEnum, error: str | None = None) -> DispatchJobRead:
        DispatchJob.update_where(
            DispatchJob.id == job_id,
            DispatchJob.status == DispatchStatusEnum.PROCESSING.value,
            values={'status': status.value, 'error': error, 'completed_at': utcnow()},
        )
        job = DispatchJob.get(id=job_id)
        logger.info(f'dispatch {job_id} {job.status}')
        return job

import pytest

from src.core.verification.constants import ChannelEnum, DispatchStatusEnum
from src.core.verification.dispatch import DispatchQueue
from src.core.verification.models import DispatchJob
from src.core.verification.senders import ChannelSender
from src.core.verification.tasks import process_dispatch_queue


class StubSender(ChannelSender):
    channel = ChannelEnum.SMS

    def __init__(self, results=None, error=None):
        self.results = list(results or [])
        self.error = error
        self.deliveries = []

    def send(self, destination, code):
        self.deliveries.append((destination, code))
        if self.error:
            raise self.error
        return self.results.pop(0) if self.results else True

    def deliver(self, destination, code): ...


def enqueue(dispatch_queue, user, code='123456'):
    return dispatch_queue.enqueue(user.id, ChannelEnum.SMS, user.phone, code)


class TestDispatchQueue:
    def test_enqueue(self, user):
        job = enqueue(DispatchQueue(), user)

        assert job.status == DispatchStatusEnum.PENDING
        assert job.attempts == 0
        assert job.destination == user.phone
        assert '123456' not in repr(job)

    def test_deliver_now(self, user, caught_sms):
        dispatch_queue = DispatchQueue()
        job = enqueue(dispatch_queue, user)

        assert dispatch_queue.deliver_now(job)

        finished = dispatch_queue.get_job(job.id)
        assert finished.status == DispatchStatusEnum.COMPLETED
        assert finished.attempts == 1
        assert finished.claimed_at is not None
        assert finished.completed_at is not None
        assert len(caught_sms) == 1
        assert caught_sms[0].phone_number == user.phone
        assert '123456' in caught_sms[0].message

    def test_deliver_now_single_attempt(self, user):
        sender = StubSender(results=[False, True])
        dispatch_queue = DispatchQueue(sender_factory=lambda channel: sender)
        job = enqueue(dispatch_queue, user)

        assert not dispatch_queue.deliver_now(job)
        assert len(sender.deliveries) == 1
        assert dispatch_queue.get_job(job.id).status == DispatchStatusEnum.FAILED

    def test_claim_is_exclusive(self, user):
        dispatch_queue = DispatchQueue()
        job = enqueue(dispatch_queue, user)

        assert dispatch_queue.claim(job.id)
        assert not dispatch_queue.claim(job.id)
        assert not dispatch_queue.deliver_now(job)
        assert dispatch_queue.get_job(job.id).status == DispatchStatusEnum.PROCESSING

    def test_retries_until_success(self, user):
        sender = StubSender(results=[False, True])
        dispatch_queue = DispatchQueue(max_send_attempts=3, sender_factory=lambda channel: sender)
        job = enqueue(dispatch_queue, user)
        dispatch_queue.claim(job.id)

        finished = dispatch_queue.process(job)
        assert finished.status == DispatchStatusEnum.COMPLETED
        assert finished.attempts == 2
        assert finished.error is None

    def test_failure_recorded_after_max_attempts(self, user):
        sender = StubSender(results=[False, False, False])
        dispatch_queue = DispatchQueue(max_send_attempts=3, sender_factory=lambda channel: sender)
        job = enqueue(dispatch_queue, user)
        dispatch_queue.claim(job.id)

        finished = dispatch_queue.process(job)
        assert finished.status == DispatchStatusEnum.FAILED
        assert finished.attempts == 3
        assert 'after 3 attempt(s)' in finished.error

    def test_unexpected_error_fails_without_retry(self, user):
        sender = StubSender(error=RuntimeError('bug in sender'))
        dispatch_queue = DispatchQueue(max_send_attempts=3, sender_factory=lambda channel: sender)
        job = enqueue(dispatch_queue, user)
        dispatch_queue.claim(job.id)

        finished = dispatch_queue.process(job)
        assert finished.status == DispatchStatusEnum.FAILED
        assert finished.attempts == 1
        assert finished.error == 'RuntimeError: bug in sender'

    def test_finished_jobs_never_move_backwards(self, user):
        dispatch_queue = DispatchQueue(sender_factory=lambda channel: StubSender())
        job = enqueue(dispatch_queue, user)
        dispatch_queue.deliver_now(job)

        # A second consumer holding a stale copy cannot reopen the job
        dispatch_queue.process(job)
        assert not dispatch_queue.claim(job.id)
        assert dispatch_queue.get_job(job.id).status == DispatchStatusEnum.COMPLETED


class TestProcessPending:
    def test_claims_up_to_limit(self, user):
        sender = StubSender()
        dispatch_queue = DispatchQueue(sender_factory=lambda channel: sender)
        jobs = [enqueue(dispatch_queue, user, code=f'00000{i}') for i in range(3)]

        summary = dispatch_queue.process_pending(limit=2)
        assert summary.claimed == 2
        assert summary.completed == 2
        assert summary.failed == 0
        assert DispatchJob.count(DispatchJob.status == DispatchStatusEnum.PENDING.value) == 1

        summary = dispatch_queue.process_pending(limit=2)
        assert summary.claimed == 1
        assert {code for _, code in sender.deliveries} == {job.code for job in jobs}

    def test_nothing_pending(self):
        summary = DispatchQueue().process_pending()
        assert summary.claimed == 0

    def test_checkpoint_after_claim_and_each_job(self, user):
        checkpoints = []
        dispatch_queue = DispatchQueue(sender_factory=lambda channel: StubSender(results=[True, False]))
        enqueue(dispatch_queue, user, code='000001')
        enqueue(dispatch_queue, user, code='000002')

        dispatch_queue.process_pending(checkpoint=lambda: checkpoints.append(1))
        assert len(checkpoints) == 3

    def test_counts_failures(self, user):
        dispatch_queue = DispatchQueue(max_send_attempts=1, sender_factory=lambda channel: StubSender(results=[False]))
        enqueue(dispatch_queue, user)

        summary = dispatch_queue.process_pending()
        assert summary.failed == 1


def test_process_dispatch_queue_task(user, caught_sms):
    enqueue(DispatchQueue(), user)

    process_dispatch_queue(batch_size=10)

    assert len(caught_sms) == 1
    assert DispatchJob.count(DispatchJob.status == DispatchStatusEnum.COMPLETED.value) == 1


@pytest.mark.parametrize('channel', [ChannelEnum.EMAIL, ChannelEnum.VOICE, ChannelEnum.WHATSAPP])
def test_every_delivery_channel_dispatches(user, channel, caught_emails, caught_voice_calls, caught_whatsapp_messages):
    dispatch_queue = DispatchQueue()
    destination = user.email if channel == ChannelEnum.EMAIL else user.phone
    job = dispatch_queue.enqueue(user.id, channel, destination, '424242')

    assert dispatch_queue.deliver_now(job)
    assert len(caught_emails) + len(caught_voice_calls) + len(caught_whatsapp_messages) == 1

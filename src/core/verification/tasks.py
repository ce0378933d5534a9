import dramatiq

from src.core.verification.dispatch import DispatchQueue
from src.network.database.session import db


@dramatiq.actor(max_retries=0)
def process_dispatch_queue(batch_size: int | None = None):
    dispatch_queue = DispatchQueue.factory()
    # Claims become visible to overlapping consumers before any provider call
    dispatch_queue.process_pending(limit=batch_size, checkpoint=db.session.commit)

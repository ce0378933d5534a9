"""
Schedule background ticks for otp-gate
'cron' specifications are in UTC

python -m src.network.queue.scheduler

Jobs:
- Reaper sweep every 5 minutes - expired codes and lapsed lockout counters
- Reaper full sweep daily at 00:00 UTC
- Dispatch poll every 5 seconds (queue dispatch mode only) - hands pending jobs to the worker
"""

import functools
from typing import Callable

import sentry_sdk
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from loguru import logger

from src import settings
from src.common import context
from src.network.database.session import db


def run_isolated(tick: Callable) -> Callable:
    """
    A failing tick is logged and reported, the schedule keeps running
    """

    @functools.wraps(tick)
    def wrapper(*args, **kwargs):
        token = context.initialize(user_type=context.AppContextUserType.SYSTEM, breadcrumb=tick.__name__)
        try:
            with db(commit_on_success=True):
                return tick(*args, **kwargs)
        except Exception as exc:
            logger.exception(f'scheduled tick {tick.__name__} failed')
            sentry_sdk.capture_exception(exc)
            return None
        finally:
            context.reset(token)

    return wrapper


@run_isolated
def run_reaper_sweep():
    from src.core.verification.reaper import Reaper

    logger.info('Running reaper sweep')
    return Reaper.factory().sweep()


@run_isolated
def run_reaper_full_sweep():
    from src.core.verification.reaper import Reaper

    logger.info('Running daily reaper sweep')
    return Reaper.factory().full_sweep()


@run_isolated
def run_dispatch_poll():
    from src.core.verification.tasks import process_dispatch_queue

    process_dispatch_queue.send()


def build_scheduler(scheduler_class: type[BaseScheduler] = BlockingScheduler) -> BaseScheduler:
    scheduler = scheduler_class(timezone='UTC')

    scheduler.add_job(
        run_reaper_sweep,
        'interval',
        minutes=settings.REAPER_SETTINGS['INTERVAL_MINUTES'],
        id='reaper_sweep',
        name='Reaper Sweep',
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        run_reaper_full_sweep,
        'cron',
        hour=settings.REAPER_SETTINGS['DAILY_SWEEP_HOUR'],
        minute=0,
        id='reaper_full_sweep',
        name='Daily Reaper Sweep',
        max_instances=1,
        coalesce=True,
    )

    if settings.DISPATCH_SETTINGS['MODE'] == 'queue':
        scheduler.add_job(
            run_dispatch_poll,
            'interval',
            seconds=settings.DISPATCH_SETTINGS['POLL_INTERVAL_SECONDS'],
            id='dispatch_poll',
            name='Dispatch Queue Poll',
            max_instances=1,
            coalesce=True,
        )

    return scheduler


if __name__ == '__main__':
    from src.setup import run as setup

    # Initialize application (DB, broker, etc.)
    setup()

    scheduler = build_scheduler()

    logger.info('Scheduler starting with jobs:')
    for job in scheduler.get_jobs():
        logger.info(f'  - {job.name}: {job.trigger}')

    try:
        scheduler.start()
    except KeyboardInterrupt:
        logger.info('Scheduler stopped')
        scheduler.shutdown()

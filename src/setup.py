"""
Bootstraps every entry point: the http server, the dramatiq worker,
the scheduler and the test suite. Imports stay inside the functions so
tests can patch the environment before settings are read
"""


def run() -> None:
    from loguru import logger

    from src.common.logs import configure_logging

    configure_logging()
    configure_queue()
    configure_models()

    logger.info('application setup complete ✅')


def get_broker():
    from dramatiq.brokers.redis import RedisBroker

    from src import settings
    from src.network.queue.broker import EagerBroker, StubBroker

    if settings.USE_MOCK_DRAMATIQ_BROKER:
        broker = StubBroker()
        broker.emit_after('process_boot')
        return broker

    if settings.DRAMATIQ_EAGER_MODE:
        # Actors run inline on send, handy with a debugger attached
        return EagerBroker()

    return RedisBroker(url=settings.REDIS_URL)


def configure_queue() -> None:
    import dramatiq

    from src.network.database.middleware import DramatiqSessionMiddleware
    from src.network.queue.middleware import DramatiqAppContextMiddleware, SentryMiddleware

    broker = get_broker()
    # Before hooks run in this order, the session is opened inside the app context
    for middleware in [DramatiqAppContextMiddleware(), DramatiqSessionMiddleware(), SentryMiddleware()]:
        broker.add_middleware(middleware)
    dramatiq.set_broker(broker)


def configure_models() -> None:
    """
    Registers every boundary's models on the metadata and creates missing tables
    """
    from src.common.model import create_all_tables

    create_all_tables()

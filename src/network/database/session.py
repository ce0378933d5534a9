import sys
import time
from contextvars import ContextVar
from typing import Any

from loguru import logger
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.sql.compiler import FromLinter

from src import settings


def engine_options(url: URL) -> dict[str, Any]:
    if url.get_backend_name() != 'sqlite':
        return {
            'poolclass': NullPool,
            'pool_pre_ping': True,
            'connect_args': {
                'connect_timeout': 10,
                'options': '-c timezone=utc -c statement_timeout=30000 -c idle_in_transaction_session_timeout=60000',
            },
        }

    # The http server hands sessions between threads
    options: dict[str, Any] = {'connect_args': {'check_same_thread': False}}
    if url.database in (None, '', ':memory:'):
        # An in-memory database only exists on the connection that created it
        options['poolclass'] = StaticPool
    return options


def create_db_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    # from linting flags implicit cartesian products, raised below
    return create_engine(url, enable_from_linting=True, **engine_options(url))


def log_statement_timings(target: Engine) -> None:
    @event.listens_for(target, 'before_cursor_execute')
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault('query_started_at', []).append(time.perf_counter())
        logger.info(f'query: {statement} {parameters}')

    @event.listens_for(target, 'after_cursor_execute')
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        elapsed = time.perf_counter() - conn.info['query_started_at'].pop()
        logger.info(f'query took {elapsed:.4f}s')


engine = create_db_engine(settings.DATABASE_URL)
if settings.DB_LOG_STATEMENTS:
    log_statement_timings(engine)

_session_maker = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

# Context local, each thread and each task sees its own session
_current_session: ContextVar[Session | None] = ContextVar('_current_session', default=None)


class ImplicitCartesianDetected(Exception): ...


def raise_for_implicit_cartesians(self: Any, stmt_type: str = 'SELECT') -> None:
    """
    SQLAlchemy only warns about FROM elements with no join between them,
    e.g. `select user.email, otpcode.code from user, otpcode`. Raise instead
    """
    unjoined, start = self.lint()
    if not unjoined:
        return

    froms = ', '.join(f'"{self.froms[element]}"' for element in unjoined)
    prefix = f'{stmt_type} statement: ' if stmt_type else ''
    raise ImplicitCartesianDetected(
        f'{prefix}Implicit cartesian product between FROM element(s) {froms} and "{self.froms[start]}". '
        'Add a join condition between them.'
    )


FromLinter.warn = raise_for_implicit_cartesians  # type: ignore[method-assign]


class SessionNotAvailable(Exception):
    def __init__(self) -> None:
        super().__init__(
            'No database session in this context. Requests and actors get one from their middleware, '
            'anything else opens one with `with db(): ...`'
        )


class SessionManagerMeta(type):
    @property
    def session(cls) -> Session:
        """
        `db.session` without instantiating the manager
        """
        session = _current_session.get()
        if session is None:
            raise SessionNotAvailable
        return session


class SessionManager(metaclass=SessionManagerMeta):
    """
    The outermost manager opens the session and decides commit or rollback.
    Managers entered inside it share that session and leave the transaction
    alone, e.g. a scheduler tick run inside a test's rolled back session
    """

    def __init__(self, session_kwargs: dict[str, Any] | None = None, commit_on_success: bool = False):
        self.session_kwargs = session_kwargs or {}
        self.commit_on_success = commit_on_success
        self._token = None

    @property
    def owns_session(self) -> bool:
        return self._token is not None

    def enter(self) -> type['SessionManager']:
        if _current_session.get() is None:
            self._token = _current_session.set(_session_maker(**self.session_kwargs))
        return type(self)

    def exit(self, exception: BaseException | None = None) -> None:
        """
        For hooks that can't use the with statement, such as dramatiq middleware
        """
        if exception is None:
            self.__exit__(*sys.exc_info())
        else:
            self.__exit__(type(exception), exception, exception.__traceback__)

    def __enter__(self) -> type['SessionManager']:
        return self.enter()

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        if not self.owns_session:
            return

        session = _current_session.get()
        try:
            if session is not None:
                if self.commit_on_success and exc_type is None:
                    session.commit()
                else:
                    session.rollback()
        finally:
            if session is not None:
                session.close()
            _current_session.reset(self._token)
            self._token = None


# What callers import
db: SessionManagerMeta = SessionManager

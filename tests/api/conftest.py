import pytest
from fastapi.testclient import TestClient

from src.common import context
from src.common.model import BaseModel
from src.common.rate_limit import FixedWindowRateLimiter
from src.network.database.session import db as session_manager


@pytest.fixture(scope='function', autouse=True)
def db():
    """
    Requests run through the real HTTPSessionManagerMiddleware and commit,
    so instead of a rolled back session every table is emptied afterwards
    """
    token = context.initialize(
        user_type=context.AppContextUserType.SYSTEM,
        user_id='user-system',
        breadcrumb='testing',
    )
    yield session_manager

    with session_manager(commit_on_success=True):
        for table in reversed(BaseModel.metadata.sorted_tables):
            session_manager.session.execute(table.delete())
    context.reset(token)


@pytest.fixture(scope='function')
def rate_limiter() -> FixedWindowRateLimiter:
    from src.network.http.server import server

    original = server.state.rate_limiter
    server.state.rate_limiter = FixedWindowRateLimiter()
    yield server.state.rate_limiter
    server.state.rate_limiter = original


@pytest.fixture(scope='function')
def client(rate_limiter) -> TestClient:
    from src.network.http.server import server

    with TestClient(server) as c:
        yield c


@pytest.fixture(scope='function')
def user(user_factory):
    """
    Committed so request sessions can see it
    """
    from src.core.user import UserService

    with session_manager(commit_on_success=True):
        return UserService.factory().create_user(user_factory.build())

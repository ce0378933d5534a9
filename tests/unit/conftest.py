from unittest import mock

import pytest

from src.network.database.session import engine


@pytest.fixture(autouse=True)
def no_db_access():
    """
    Unit tests never touch the database, a connection attempt fails the test
    """
    refused = RuntimeError('🛑 database access attempted from a unit test 🛑')
    with mock.patch.object(engine, 'connect', side_effect=refused):
        yield

import os
import sys

from sqlalchemy.orm import Session

# Environment overrides win over any .env file, they must be set before src is imported
TESTS_DIR = os.path.dirname(os.path.abspath(__file__))

EXPECTED_SECRET_KEY = 'test'
TEST_ENVIRONMENT = {
    'SECRET_KEY': EXPECTED_SECRET_KEY,
    'ENVIRONMENT': 'testing',
    'COMPANY_NAME': 'TestCompany',
    'EMAIL_FROM_ADDRESS': 'noreply@testcompany.com',
    # Shared in-memory database, tables are created by setup.run()
    'DATABASE_URL': 'sqlite://',
    'DB_ENCRYPTION_KEY': 'test-encryption-key',
    'DB_ENCRYPTION_SALT': 'test-salt',
    'DISPATCH_MODE': 'sync',
    'TEMP_DIR': os.path.join(TESTS_DIR, '.tmp'),
    'USE_MOCK_DRAMATIQ_BROKER': 'True',
    'USE_MOCK_SENTRY_CLIENT': 'True',
    'USE_MOCK_EMAIL_CLIENT': 'True',
    'USE_MOCK_SMS_CLIENT': 'True',
    'USE_MOCK_VOICE_CLIENT': 'True',
    'USE_MOCK_WHATSAPP_CLIENT': 'True',
}
for key, value in TEST_ENVIRONMENT.items():
    os.environ.setdefault(key, value)

sys.path.insert(0, os.path.dirname(TESTS_DIR))
from src import setup

setup.run()

# ruff: noqa: E402
from unittest import mock

import pytest

from src import settings
from src.common import context
from src.core.user import UserRead, UserService
from src.network.database.session import db as session_manager

pytest_plugins = [
    'tests.factories.user',
]

if settings.SECRET_KEY != EXPECTED_SECRET_KEY:
    raise ValueError(
        'Test environment overrides were not applied, some src module was imported before tests/conftest.py. '
        'Tests would run against real providers and the configured database.'
    )


def catch_outgoing(monkeypatch, catcher_path: str) -> list:
    """
    Points a mock client's catcher at a list the test can inspect
    """
    caught = []
    monkeypatch.setattr(catcher_path, lambda self: caught)
    return caught


@pytest.fixture(autouse=True)
def mock_boto3_client():
    """
    Nothing reaches SES or SNS
    """
    with mock.patch('boto3.client') as mock_client:
        yield mock_client


@pytest.fixture(scope='function', autouse=True)
def db() -> Session:
    """
    Every test runs in one session that is rolled back at the end. commit()
    only flushes, so code under test can commit as it would in production
    """
    token = context.initialize(
        user_type=context.AppContextUserType.SYSTEM,
        user_id='user-system',
        breadcrumb='testing',
    )

    with session_manager(commit_on_success=False):
        session = session_manager.session
        session.commit = session.flush
        yield session

    context.reset(token)


@pytest.fixture(scope='function')
def caught_sms(monkeypatch) -> list:
    """
        def test_something(caught_sms):
            service.something_that_texts()
            assert len(caught_sms) == 1
    """
    return catch_outgoing(monkeypatch, 'src.platform.sms.client.MockSMSClient.get_sms_catcher')


@pytest.fixture(scope='function')
def caught_emails(monkeypatch) -> list:
    return catch_outgoing(monkeypatch, 'src.platform.email.client.MockEmailClient.get_email_catcher')


@pytest.fixture(scope='function')
def caught_voice_calls(monkeypatch) -> list:
    return catch_outgoing(monkeypatch, 'src.platform.voice.client.MockVoiceClient.get_call_catcher')


@pytest.fixture(scope='function')
def caught_whatsapp_messages(monkeypatch) -> list:
    return catch_outgoing(monkeypatch, 'src.platform.whatsapp.client.MockWhatsAppClient.get_whatsapp_catcher')


@pytest.fixture(scope='function')
def user(user_factory) -> UserRead:
    return UserService.factory().create_user(user_factory.build())

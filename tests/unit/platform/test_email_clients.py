import smtplib
from unittest import mock

import pytest

from src.platform.email import EmailFailedToSend, EmailService
from src.platform.email.client import EmailClientDomain, ResilientLiveEmailClient, SMTPEmailClient


@pytest.fixture
def message() -> EmailClientDomain:
    return EmailClientDomain(
        from_email=('noreply@testcompany.com', 'TestCompany'),
        to_emails=['jane@example.com'],
        subject='Your code',
        plain_text_content='Your code is 123456',
        html_content='<p>123456</p>',
    )


def test_content_required():
    with pytest.raises(ValueError):
        EmailClientDomain(to_emails=['jane@example.com'], subject='empty')


def test_masked_recipients(message):
    assert message.masked_recipients == 'j***@example.com'


def test_to_mime(message):
    mime = message.to_mime()
    assert mime['From'] == 'TestCompany <noreply@testcompany.com>'
    assert mime['To'] == 'jane@example.com'
    assert mime.is_multipart()


class TestSMTPEmailClient:
    def test_send(self, message):
        with mock.patch('src.platform.email.client.smtplib.SMTP') as smtp:
            SMTPEmailClient().send(message)

        server = smtp.return_value.__enter__.return_value
        server.send_message.assert_called_once()
        server.starttls.assert_not_called()

    def test_failure_raises(self, message):
        with mock.patch('src.platform.email.client.smtplib.SMTP', side_effect=smtplib.SMTPConnectError(421, 'busy')):
            with pytest.raises(EmailFailedToSend):
                SMTPEmailClient().send(message)


class TestResilientLiveEmailClient:
    def test_falls_back_to_ses(self, monkeypatch, message, mock_boto3_client):
        monkeypatch.setattr('src.settings.AWS_SES_ACCESS_KEY_ID', 'access')
        monkeypatch.setattr('src.settings.AWS_SES_SECRET_ACCESS_KEY', 'secret')

        with mock.patch('src.platform.email.client.smtplib.SMTP', side_effect=OSError('refused')):
            ResilientLiveEmailClient().send(message)

        send_raw_email = mock_boto3_client.return_value.send_raw_email
        send_raw_email.assert_called_once()
        assert send_raw_email.call_args.kwargs['Destinations'] == ['jane@example.com']

    def test_exhausted(self, message):
        with mock.patch('src.platform.email.client.smtplib.SMTP', side_effect=OSError('refused')):
            with pytest.raises(EmailFailedToSend):
                ResilientLiveEmailClient().send(message)


def test_service_tags_non_production_subjects(caught_emails):
    EmailService.factory().send(subject='Hello', recipients=['jane@example.com'], plain_message='hi')
    assert caught_emails[0].subject == 'Hello - [testing]'

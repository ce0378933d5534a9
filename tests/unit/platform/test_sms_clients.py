import httpx
import pytest
from botocore.exceptions import ClientError

from src.platform.sms import SMS, SMSFailedToSend
from src.platform.sms.client import (
    AWSSNSSMSClient,
    ClickSendSMSClient,
    ResilientLiveSMSClient,
    SMSFileClient,
    SMSMessage,
)

SMS_MESSAGE = SMSMessage(phone_number='+15551234567', message='Your code is 123456', sender_id='TestCompany')


def clicksend_response(statuses: list[str], status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={'data': {'messages': [{'status': status} for status in statuses]}},
        request=httpx.Request('POST', 'https://rest.clicksend.com/v3/sms/send'),
    )


@pytest.fixture
def clicksend_configured(monkeypatch):
    monkeypatch.setattr('src.settings.CLICKSEND_USERNAME', 'user')
    monkeypatch.setattr('src.settings.CLICKSEND_API_KEY', 'key')


@pytest.fixture
def sns_configured(monkeypatch):
    monkeypatch.setattr('src.settings.AWS_SNS_ACCESS_KEY_ID', 'access')
    monkeypatch.setattr('src.settings.AWS_SNS_SECRET_ACCESS_KEY', 'secret')


class TestClickSend:
    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            ClickSendSMSClient()

    def test_send(self, monkeypatch, clicksend_configured):
        requests = []

        def post(url, **kwargs):
            requests.append((url, kwargs))
            return clicksend_response(['SUCCESS'])

        monkeypatch.setattr('src.platform.sms.client.httpx.post', post)
        ClickSendSMSClient().send(SMS_MESSAGE)

        url, kwargs = requests[0]
        assert url.endswith('/sms/send')
        assert kwargs['json']['messages'][0]['to'] == '+15551234567'
        assert kwargs['auth'] == ('user', 'key')
        assert kwargs['timeout'] == 5

    def test_rejected_message_raises(self, monkeypatch, clicksend_configured):
        monkeypatch.setattr(
            'src.platform.sms.client.httpx.post', lambda url, **kwargs: clicksend_response(['INVALID_RECIPIENT'])
        )
        with pytest.raises(SMSFailedToSend):
            ClickSendSMSClient().send(SMS_MESSAGE)

    def test_http_error_raises(self, monkeypatch, clicksend_configured):
        monkeypatch.setattr(
            'src.platform.sms.client.httpx.post', lambda url, **kwargs: clicksend_response([], status_code=503)
        )
        with pytest.raises(SMSFailedToSend):
            ClickSendSMSClient().send(SMS_MESSAGE)


class TestAWSSNS:
    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            AWSSNSSMSClient()

    def test_send(self, sns_configured, mock_boto3_client):
        AWSSNSSMSClient().send(SMS_MESSAGE)

        publish = mock_boto3_client.return_value.publish
        publish.assert_called_once()
        kwargs = publish.call_args.kwargs
        assert kwargs['PhoneNumber'] == '+15551234567'
        assert kwargs['MessageAttributes']['AWS.SNS.SMS.SenderID']['StringValue'] == 'TestCompany'

    def test_client_error_raises(self, sns_configured, mock_boto3_client):
        mock_boto3_client.return_value.publish.side_effect = ClientError(
            {'Error': {'Code': 'Throttling', 'Message': 'slow down'}}, 'Publish'
        )
        with pytest.raises(SMSFailedToSend):
            AWSSNSSMSClient().send(SMS_MESSAGE)


class TestResilientLiveSMSClient:
    def test_no_configured_providers(self):
        with pytest.raises(SMSFailedToSend):
            ResilientLiveSMSClient().send(SMS_MESSAGE)

    def test_skips_unconfigured_provider(self, sns_configured, mock_boto3_client):
        ResilientLiveSMSClient().send(SMS_MESSAGE)
        mock_boto3_client.return_value.publish.assert_called_once()

    def test_falls_back_when_primary_fails(self, monkeypatch, clicksend_configured, sns_configured, mock_boto3_client):
        monkeypatch.setattr(
            'src.platform.sms.client.httpx.post', lambda url, **kwargs: clicksend_response(['INSUFFICIENT_CREDIT'])
        )
        ResilientLiveSMSClient().send(SMS_MESSAGE)
        mock_boto3_client.return_value.publish.assert_called_once()

    def test_stops_at_first_success(self, monkeypatch, clicksend_configured, sns_configured, mock_boto3_client):
        monkeypatch.setattr('src.platform.sms.client.httpx.post', lambda url, **kwargs: clicksend_response(['SUCCESS']))
        ResilientLiveSMSClient().send(SMS_MESSAGE)
        mock_boto3_client.return_value.publish.assert_not_called()


def test_file_client_writes_preview(tmp_path, monkeypatch):
    monkeypatch.setattr('src.settings.TEMP_DIR', str(tmp_path))
    file_path = SMSFileClient().write_sms(SMS_MESSAGE)

    with open(file_path, encoding='utf-8') as f:
        content = f.read()
    assert 'Your code is 123456' in content
    # The masked number names the file, the full number only appears in the body
    assert '15551234567' not in file_path


def test_sms_uses_mock_client_in_tests(caught_sms):
    SMS(phone_number='+15551234567', message='hello').send()
    assert caught_sms[0].message == 'hello'

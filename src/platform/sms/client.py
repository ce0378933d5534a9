import datetime
from html import escape

import boto3
import httpx
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from src import settings
from src.common.domain import BaseDomain
from src.common.utils import mask_destination
from src.platform.outbound import OutboundClient, PreviewWriter, deliver_with_failover
from src.platform.sms.exceptions import SMSFailedToSend


class SMSMessage(BaseDomain):
    phone_number: str  # E.164
    message: str
    sender_id: str | None = None

    @property
    def masked_phone(self) -> str:
        return mask_destination(self.phone_number)


class AbstractSMSClient(OutboundClient):
    def send(self, sms: SMSMessage):
        """
        Raises SMSFailedToSend
        """
        raise NotImplementedError


class MockSMSClient(AbstractSMSClient):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sms_catcher = self.get_sms_catcher()

    def send(self, sms: SMSMessage):
        logger.info(f'[MOCK SMS] To: {sms.masked_phone}')
        self.sms_catcher.append(sms)

    def get_sms_catcher(self) -> list:
        """
        Patched by the test suite to collect outgoing messages
        """
        return []


class ClickSendSMSClient(AbstractSMSClient):
    """
    https://developers.clicksend.com/docs/rest/v3/#send-sms
    """

    def __init__(self, *args, **kwargs):
        if not (settings.CLICKSEND_USERNAME and settings.CLICKSEND_API_KEY):
            raise ValueError('CLICKSEND_USERNAME and CLICKSEND_API_KEY are required')
        super().__init__(*args, **kwargs)

    def send(self, sms: SMSMessage):
        outgoing = {'to': sms.phone_number, 'body': sms.message, 'source': 'otp-gate'}
        if settings.SMS_FROM:
            outgoing['from'] = settings.SMS_FROM

        try:
            response = httpx.post(
                f'{settings.CLICKSEND_BASE_URL}/sms/send',
                json={'messages': [outgoing]},
                auth=(settings.CLICKSEND_USERNAME, settings.CLICKSEND_API_KEY),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(f'ClickSend request for {sms.masked_phone} failed: {exc}')
            raise SMSFailedToSend(message=f'ClickSend failed: {sms.masked_phone}') from exc

        # A 200 can still carry per message rejections
        statuses = {entry.get('status') for entry in response.json().get('data', {}).get('messages', [])}
        rejected = sorted(status for status in statuses - {'SUCCESS'} if status)
        if rejected:
            raise SMSFailedToSend(message=f'ClickSend rejected message: {rejected}')

        logger.info(f'ClickSend accepted sms for {sms.masked_phone}')
        return response


class AWSSNSSMSClient(AbstractSMSClient):
    """
    Only the SNS specific keys are honored, never the ambient AWS credentials
    """

    def __init__(self, *args, **kwargs):
        if not (settings.AWS_SNS_ACCESS_KEY_ID and settings.AWS_SNS_SECRET_ACCESS_KEY):
            raise ValueError('AWS_SNS_ACCESS_KEY_ID and AWS_SNS_SECRET_ACCESS_KEY are required')
        super().__init__(*args, **kwargs)
        self.client = boto3.client(
            'sns',
            region_name=settings.AWS_REGION_NAME,
            aws_access_key_id=settings.AWS_SNS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SNS_SECRET_ACCESS_KEY,
            config=Config(connect_timeout=self.timeout, read_timeout=self.timeout, retries={'max_attempts': 1}),
        )

    @staticmethod
    def attributes_for(sms: SMSMessage) -> dict:
        attributes = {'AWS.SNS.SMS.SMSType': {'DataType': 'String', 'StringValue': 'Transactional'}}
        if sms.sender_id:
            # Ignored by carriers in regions without alphanumeric sender support
            attributes['AWS.SNS.SMS.SenderID'] = {'DataType': 'String', 'StringValue': sms.sender_id}
        return attributes

    def send(self, sms: SMSMessage):
        try:
            response = self.client.publish(
                PhoneNumber=sms.phone_number, Message=sms.message, MessageAttributes=self.attributes_for(sms)
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning(f'SNS publish for {sms.masked_phone} failed: {exc}')
            raise SMSFailedToSend(message=f'AWS SNS failed: {sms.masked_phone}') from exc

        logger.info(f'SNS accepted sms, MessageId {response.get("MessageId")}')
        return response


PHONE_PREVIEW = """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><title>SMS to {masked_phone}</title></head>
<body style="font-family: -apple-system, sans-serif; background: #eee; padding: 40px;">
    <div style="max-width: 360px; margin: auto; background: #fff; border-radius: 24px; padding: 20px;">
        <div style="font-weight: 600;">{sender}</div>
        <div style="color: #8e8e93; font-size: 13px;">To: {phone}</div>
        <div style="color: #8e8e93; font-size: 11px; text-align: center; margin: 15px 0;">{sent_at}</div>
        <div style="background: #e5e5ea; border-radius: 18px; padding: 10px 15px;">{body}</div>
    </div>
</body>
</html>
"""


class SMSFileClient(AbstractSMSClient):
    """
    Renders each message as a phone styled html page, opened in the browser when running locally
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writer = PreviewWriter('sms')

    def send(self, sms: SMSMessage):
        path = self.write_sms(sms)
        if settings.IS_LOCAL:
            import webbrowser

            webbrowser.open(f'file:///{path}')
        return path

    def write_sms(self, sms: SMSMessage) -> str:
        content = PHONE_PREVIEW.format(
            masked_phone=sms.masked_phone,
            sender=escape(sms.sender_id or settings.COMPANY_NAME),
            phone=escape(sms.phone_number),
            sent_at=datetime.datetime.now().strftime('%B %d, %Y at %I:%M %p'),
            body=escape(sms.message),
        )
        # The file name only ever carries the masked number
        label = 'sms-' + sms.masked_phone.replace('*', 'x').lstrip('+')
        return self.writer.write(label, 'html', content)


class ResilientLiveSMSClient(AbstractSMSClient):
    CLIENT_PRIORITY_ORDER = [
        ClickSendSMSClient,
        AWSSNSSMSClient,
    ]

    def send(self, sms: SMSMessage):
        return deliver_with_failover(
            self.CLIENT_PRIORITY_ORDER,
            lambda client: client.send(sms),
            failure=SMSFailedToSend,
            description=sms.masked_phone,
            timeout=self.timeout,
        )

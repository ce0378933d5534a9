from loguru import logger

from src import settings
from src.common.utils import mask_destination
from src.platform.sms.client import (
    AbstractSMSClient,
    MockSMSClient,
    ResilientLiveSMSClient,
    SMSFileClient,
    SMSMessage,
)


def get_sms_client() -> AbstractSMSClient:
    """
    mock in tests, provider failover when SMS_BACKEND=live, html previews otherwise
    """
    if settings.USE_MOCK_SMS_CLIENT:
        return MockSMSClient()
    if settings.SMS_BACKEND == 'live':
        return ResilientLiveSMSClient()
    return SMSFileClient()


class SMS:
    """
    Usage:
        SMS(phone_number='+15551234567', message='Your verification code is 123456').send()
    """

    def __init__(
        self,
        phone_number: str,
        message: str,
        sender_id: str | None = None,
        client: AbstractSMSClient | None = None,
    ):
        self.sms = SMSMessage(phone_number=phone_number, message=message, sender_id=sender_id or settings.COMPANY_NAME)
        self.client = client if client is not None else get_sms_client()

    def send(self):
        """
        Raises SMSFailedToSend
        """
        self.client.send(self.sms)
        logger.info(f'SMS sent to {mask_destination(self.sms.phone_number)}')

from src.platform.sms.client import (
    AbstractSMSClient,
    AWSSNSSMSClient,
    ClickSendSMSClient,
    MockSMSClient,
    ResilientLiveSMSClient,
    SMSMessage,
)
from src.platform.sms.exceptions import SMSFailedToSend
from src.platform.sms.sms import SMS, get_sms_client

__all__ = [
    'AbstractSMSClient',
    'AWSSNSSMSClient',
    'ClickSendSMSClient',
    'MockSMSClient',
    'ResilientLiveSMSClient',
    'SMSFailedToSend',
    'SMSMessage',
    'SMS',
    'get_sms_client',
]

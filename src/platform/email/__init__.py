from src.platform.email.client import EmailClientDomain, MockEmailClient
from src.platform.email.exceptions import EmailFailedToSend
from src.platform.email.service import EmailService

__all__ = [
    'EmailClientDomain',
    'EmailFailedToSend',
    'EmailService',
    'MockEmailClient',
]

from loguru import logger

from src import settings
from src.common.utils import mask_destination
from src.platform.whatsapp.client import (
    AbstractWhatsAppClient,
    MockWhatsAppClient,
    WhatsAppCloudClient,
    WhatsAppFileClient,
    WhatsAppMessage,
)


def get_whatsapp_client() -> AbstractWhatsAppClient:
    if settings.USE_MOCK_WHATSAPP_CLIENT:
        return MockWhatsAppClient()
    if settings.WHATSAPP_BACKEND == 'live':
        return WhatsAppCloudClient()
    return WhatsAppFileClient()


class WhatsApp:
    def __init__(self, phone_number: str, message: str, client: AbstractWhatsAppClient | None = None):
        self.phone_number = phone_number
        self.message = message
        self.client = client if client is not None else get_whatsapp_client()

    def send(self):
        """
        Raises WhatsAppFailedToSend
        """
        self.client.send(WhatsAppMessage(phone_number=self.phone_number, message=self.message))
        logger.info(f'WhatsApp message sent to {mask_destination(self.phone_number)}')

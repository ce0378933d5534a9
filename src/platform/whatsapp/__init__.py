from src.platform.whatsapp.client import MockWhatsAppClient, WhatsAppCloudClient, WhatsAppMessage
from src.platform.whatsapp.exceptions import WhatsAppFailedToSend
from src.platform.whatsapp.whatsapp import WhatsApp, get_whatsapp_client

__all__ = [
    'MockWhatsAppClient',
    'WhatsApp',
    'WhatsAppCloudClient',
    'WhatsAppFailedToSend',
    'WhatsAppMessage',
    'get_whatsapp_client',
]

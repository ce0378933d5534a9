import json

import httpx
from loguru import logger

from src import settings
from src.common.domain import BaseDomain
from src.common.utils import mask_destination
from src.platform.outbound import OutboundClient, PreviewWriter
from src.platform.whatsapp.exceptions import WhatsAppFailedToSend


class WhatsAppMessage(BaseDomain):
    phone_number: str  # E.164, the leading + is dropped on the wire
    message: str


class AbstractWhatsAppClient(OutboundClient):
    def send(self, whatsapp_message: WhatsAppMessage):
        """
        Raises WhatsAppFailedToSend
        """
        raise NotImplementedError


class MockWhatsAppClient(AbstractWhatsAppClient):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.whatsapp_catcher = self.get_whatsapp_catcher()

    def send(self, whatsapp_message: WhatsAppMessage):
        logger.info(f'[MOCK WHATSAPP] To: {mask_destination(whatsapp_message.phone_number)}')
        self.whatsapp_catcher.append(whatsapp_message)

    def get_whatsapp_catcher(self) -> list:
        """
        Mock this object in tests to capture WhatsApp messages
        """
        return []


class WhatsAppCloudClient(AbstractWhatsAppClient):
    """
    Meta WhatsApp Cloud API
    https://developers.facebook.com/docs/whatsapp/cloud-api/reference/messages
    """

    def __init__(self, *args, **kwargs):
        if not settings.WHATSAPP_ACCESS_TOKEN or not settings.WHATSAPP_PHONE_NUMBER_ID:
            raise ValueError('WHATSAPP_ACCESS_TOKEN and WHATSAPP_PHONE_NUMBER_ID must be configured for WhatsApp')
        super().__init__(*args, **kwargs)

    @property
    def messages_url(self) -> str:
        return f'{settings.WHATSAPP_BASE_URL}/{settings.WHATSAPP_API_VERSION}/{settings.WHATSAPP_PHONE_NUMBER_ID}/messages'

    def send(self, whatsapp_message: WhatsAppMessage):
        payload = {
            'messaging_product': 'whatsapp',
            'recipient_type': 'individual',
            'to': whatsapp_message.phone_number.lstrip('+'),
            'type': 'text',
            'text': {'preview_url': False, 'body': whatsapp_message.message},
        }
        try:
            response = httpx.post(
                self.messages_url,
                json=payload,
                headers={'Authorization': f'Bearer {settings.WHATSAPP_ACCESS_TOKEN}'},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(f'WhatsApp failed for {mask_destination(whatsapp_message.phone_number)}: {exc}')
            raise WhatsAppFailedToSend(
                message=f'WhatsApp failed: {mask_destination(whatsapp_message.phone_number)}'
            ) from exc

        logger.info(f'WhatsApp message sent to {mask_destination(whatsapp_message.phone_number)}')
        return response


class WhatsAppFileClient(AbstractWhatsAppClient):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writer = PreviewWriter('whatsapp')

    def send(self, whatsapp_message: WhatsAppMessage):
        body = {'to': whatsapp_message.phone_number, 'body': whatsapp_message.message}
        return self.writer.write('whatsapp', 'json', json.dumps(body, indent=2))

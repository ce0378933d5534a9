from src.common.exceptions import InternalException


class WhatsAppFailedToSend(InternalException):
    default_detail = 'WhatsApp message failed to send'
    default_code = 'whatsapp_send_failure'

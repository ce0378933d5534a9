import abc

from loguru import logger

from src import settings
from src.common.utils import mask_destination
from src.core.verification.constants import ChannelEnum
from src.platform.email import EmailFailedToSend, EmailService
from src.platform.sms import SMS, SMSFailedToSend
from src.platform.voice import Voice, VoiceCallFailed
from src.platform.whatsapp import WhatsApp, WhatsAppFailedToSend


def build_code_message(code: str) -> str:
    ttl_seconds = int(settings.OTP_SETTINGS['CODE_TTL'].total_seconds())
    return f'Your {settings.COMPANY_NAME} verification code is: {code}. This code will expire in {ttl_seconds} seconds.'


class ChannelSender(abc.ABC):
    """
    Uniform delivery capability, provider failures never cross this boundary
    """

    channel: ChannelEnum
    failure_exceptions: tuple[type[Exception], ...] = ()

    def send(self, destination: str, code: str) -> bool:
        try:
            self.deliver(destination, code)
        except self.failure_exceptions as exc:
            logger.warning(f'{self.channel} delivery to {mask_destination(destination)} failed: {exc}')
            return False

        return True

    @abc.abstractmethod
    def deliver(self, destination: str, code: str) -> None: ...


class SmsSender(ChannelSender):
    channel = ChannelEnum.SMS
    failure_exceptions = (SMSFailedToSend,)

    def deliver(self, destination: str, code: str) -> None:
        SMS(phone_number=destination, message=build_code_message(code)).send()


class EmailSender(ChannelSender):
    channel = ChannelEnum.EMAIL
    failure_exceptions = (EmailFailedToSend,)

    def __init__(self, email_service: EmailService | None = None):
        self.email_service = email_service or EmailService.factory()

    def deliver(self, destination: str, code: str) -> None:
        self.email_service.send_verification_code(
            recipient=destination, code=code, plain_message=build_code_message(code)
        )


class VoiceSender(ChannelSender):
    channel = ChannelEnum.VOICE
    failure_exceptions = (VoiceCallFailed,)

    def deliver(self, destination: str, code: str) -> None:
        Voice(phone_number=destination, code=code, message=build_code_message(code)).call()


class WhatsAppSender(ChannelSender):
    channel = ChannelEnum.WHATSAPP
    failure_exceptions = (WhatsAppFailedToSend,)

    def deliver(self, destination: str, code: str) -> None:
        WhatsApp(phone_number=destination, message=build_code_message(code)).send()


CHANNEL_SENDERS: dict[ChannelEnum, type[ChannelSender]] = {
    ChannelEnum.SMS: SmsSender,
    ChannelEnum.EMAIL: EmailSender,
    ChannelEnum.VOICE: VoiceSender,
    ChannelEnum.WHATSAPP: WhatsAppSender,
}


def get_channel_sender(channel: ChannelEnum | str) -> ChannelSender:
    channel = ChannelEnum(channel)
    try:
        sender_class = CHANNEL_SENDERS[channel]
    except KeyError:
        raise ValueError(f'{channel} has no sender, codes for it are not delivered')

    return sender_class()

from src.common.enum import BaseEnum


class ChannelEnum(BaseEnum):
    SMS = 'sms'
    EMAIL = 'email'
    VOICE = 'voice'
    WHATSAPP = 'whatsapp'
    TOTP = 'totp'

    @classmethod
    def _aliases(cls) -> dict[str, str]:
        # Older clients send "call" for the voice channel
        return {'call': 'voice'}


# Channels that deliver a minted code, totp is proven by the authenticator app instead
DELIVERY_CHANNELS = [
    ChannelEnum.SMS,
    ChannelEnum.EMAIL,
    ChannelEnum.VOICE,
    ChannelEnum.WHATSAPP,
]

# User attribute each delivery channel sends to
DESTINATION_FIELD = {
    ChannelEnum.SMS: 'phone',
    ChannelEnum.EMAIL: 'email',
    ChannelEnum.VOICE: 'phone',
    ChannelEnum.WHATSAPP: 'phone',
}

CHANNEL_DISPLAY_NAMES = {
    ChannelEnum.SMS: 'SMS',
    ChannelEnum.EMAIL: 'Email',
    ChannelEnum.VOICE: 'Voice Call',
    ChannelEnum.WHATSAPP: 'WhatsApp',
    ChannelEnum.TOTP: 'Authenticator App',
}


class DispatchStatusEnum(BaseEnum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'


class DeliveryStatusEnum(BaseEnum):
    DELIVERED = 'delivered'
    QUEUED = 'queued'
    NOT_REQUIRED = 'not_required'


class VerifyOutcome(BaseEnum):
    VALID = 'valid'
    EXPIRED = 'expired'
    ATTEMPTS_EXCEEDED = 'attempts_exceeded'
    MISMATCH = 'mismatch'
    NOT_FOUND = 'not_found'


# Outcomes that are evidence of guessing
LOCKOUT_OUTCOMES = [
    VerifyOutcome.MISMATCH,
    VerifyOutcome.ATTEMPTS_EXCEEDED,
]


class WorkflowActionEnum(BaseEnum):
    INITIATE_VERIFICATION = 'initiate_verification'
    CHECK_VERIFICATION_STATUS = 'check_verification_status'

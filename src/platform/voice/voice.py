from loguru import logger

from src import settings
from src.common.utils import mask_destination
from src.platform.voice.client import AbstractVoiceClient, MockVoiceClient, VapiVoiceClient, VoiceCall, VoiceFileClient


def get_voice_client() -> AbstractVoiceClient:
    if settings.USE_MOCK_VOICE_CLIENT:
        return MockVoiceClient()
    if settings.VOICE_BACKEND == 'live':
        return VapiVoiceClient()
    return VoiceFileClient()


class Voice:
    """
    Usage:
        Voice(phone_number='+15551234567', code='123456', message='...').call()
    """

    def __init__(self, phone_number: str, code: str, message: str, client: AbstractVoiceClient | None = None):
        self.phone_number = phone_number
        self.code = code
        self.message = message
        self.client = client if client is not None else get_voice_client()

    def call(self):
        """
        Raises VoiceCallFailed
        """
        self.client.call(VoiceCall(phone_number=self.phone_number, code=self.code, message=self.message))
        logger.info(f'voice call placed to {mask_destination(self.phone_number)}')

from src.platform.voice.client import MockVoiceClient, VapiVoiceClient, VoiceCall
from src.platform.voice.exceptions import VoiceCallFailed
from src.platform.voice.voice import Voice, get_voice_client

__all__ = [
    'MockVoiceClient',
    'VapiVoiceClient',
    'Voice',
    'VoiceCall',
    'VoiceCallFailed',
    'get_voice_client',
]

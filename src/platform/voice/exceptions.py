from src.common.exceptions import InternalException


class VoiceCallFailed(InternalException):
    default_detail = 'Voice call failed to place'
    default_code = 'voice_call_failure'

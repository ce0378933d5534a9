import json

import httpx
from loguru import logger

from src import settings
from src.common.domain import BaseDomain
from src.common.utils import mask_destination
from src.platform.outbound import OutboundClient, PreviewWriter
from src.platform.voice.exceptions import VoiceCallFailed


class VoiceCall(BaseDomain):
    """
    Outbound call reading a code to the recipient
    """

    phone_number: str
    code: str
    message: str

    @property
    def spoken_code(self) -> str:
        # Digits are read one at a time
        return ' '.join(self.code)


class AbstractVoiceClient(OutboundClient):
    def call(self, voice_call: VoiceCall):
        """
        Raises VoiceCallFailed
        """
        raise NotImplementedError


class MockVoiceClient(AbstractVoiceClient):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.call_catcher = self.get_call_catcher()

    def call(self, voice_call: VoiceCall):
        logger.info(f'[MOCK VOICE] To: {mask_destination(voice_call.phone_number)}')
        self.call_catcher.append(voice_call)

    def get_call_catcher(self) -> list:
        """
        Mock this object in tests to capture placed calls
        """
        return []


class VapiVoiceClient(AbstractVoiceClient):
    """
    https://docs.vapi.ai/api-reference/calls/create
    """

    def __init__(self, *args, **kwargs):
        if not settings.VAPI_API_KEY or not settings.VAPI_ASSISTANT_ID or not settings.VAPI_PHONE_NUMBER_ID:
            raise ValueError('VAPI_API_KEY, VAPI_ASSISTANT_ID and VAPI_PHONE_NUMBER_ID must be configured for voice')
        super().__init__(*args, **kwargs)

    def build_payload(self, voice_call: VoiceCall) -> dict:
        return {
            'assistantId': settings.VAPI_ASSISTANT_ID,
            'phoneNumberId': settings.VAPI_PHONE_NUMBER_ID,
            'customer': {'number': voice_call.phone_number},
            'assistantOverrides': {
                'firstMessage': (
                    f'Hello, this is {settings.COMPANY_NAME}. '
                    f'Your verification code is {voice_call.spoken_code}. '
                    f'Again, your code is {voice_call.spoken_code}.'
                ),
                'variableValues': {'code': voice_call.code},
            },
        }

    def call(self, voice_call: VoiceCall):
        try:
            response = httpx.post(
                f'{settings.VAPI_BASE_URL}/call',
                json=self.build_payload(voice_call),
                headers={'Authorization': f'Bearer {settings.VAPI_API_KEY}'},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(f'Vapi failed for {mask_destination(voice_call.phone_number)}: {exc}')
            raise VoiceCallFailed(message=f'Vapi failed: {mask_destination(voice_call.phone_number)}') from exc

        logger.info(f'voice call placed via Vapi. CallId: {response.json().get("id")}')
        return response


class VoiceFileClient(AbstractVoiceClient):
    """
    Writes the call script to disk instead of dialing
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writer = PreviewWriter('voice')

    def call(self, voice_call: VoiceCall):
        script = {'to': voice_call.phone_number, 'script': voice_call.message}
        return self.writer.write('voice', 'json', json.dumps(script, indent=2))

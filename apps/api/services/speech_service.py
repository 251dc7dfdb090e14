"""
ElevenLabs text-to-speech and speech-to-text.
Both directions are optional; without an API key synthesis is skipped and
transcription returns a canned message asking the patient to type instead.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

NO_SPEECH_DETECTED = (
    "I couldn't detect any speech in your recording. "
    "Please try speaking more clearly or closer to the microphone."
)
TRANSCRIPTION_UNAVAILABLE = "Speech-to-text service is not available. Please type your message instead."

TTS_MODEL_ID = "eleven_multilingual_v2"
STT_MODEL_ID = "scribe_v1"


class SpeechService:
    def __init__(
        self,
        api_key: Optional[str],
        voice_id: str,
        http_client: httpx.AsyncClient,
        base_url: str = "https://api.elevenlabs.io",
    ):
        self.api_key = api_key
        self.voice_id = voice_id
        self.http = http_client
        self.base_url = base_url.rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def synthesize(self, text: str) -> Optional[bytes]:
        """Voice a reply as MP3 bytes, or None when unavailable"""
        if not self.is_configured() or not text.strip():
            return None

        try:
            response = await self.http.post(
                f"{self.base_url}/v1/text-to-speech/{self.voice_id}",
                headers={"xi-api-key": self.api_key, "Accept": "audio/mpeg"},
                json={
                    "text": text,
                    "model_id": TTS_MODEL_ID,
                    "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error generating speech with ElevenLabs: {e}")
            return None

        return response.content or None

    async def transcribe(self, audio: bytes, filename: str = "recording.webm", content_type: str = "audio/webm") -> str:
        if not self.is_configured():
            return TRANSCRIPTION_UNAVAILABLE

        try:
            response = await self.http.post(
                f"{self.base_url}/v1/speech-to-text",
                headers={"xi-api-key": self.api_key},
                data={"model_id": STT_MODEL_ID},
                files={"file": (filename, audio, content_type)},
            )
            response.raise_for_status()
            text = (response.json().get("text") or "").strip()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error transcribing audio with ElevenLabs: {e}")
            return TRANSCRIPTION_UNAVAILABLE

        return text or NO_SPEECH_DETECTED

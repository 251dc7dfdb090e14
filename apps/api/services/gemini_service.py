"""
Dr. Ava text generation backed by Google Gemini.

Every public method is fail-soft: vendor errors (network, auth, quota,
safety blocks) are logged and replaced by a fixed reply so the chat never
breaks for the patient.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = (
    "I apologize, but I'm experiencing technical difficulties right now. "
    "For immediate medical concerns, please contact your healthcare provider or "
    "emergency services. I'll be back to assist you shortly."
)

IMAGE_FALLBACK_RESPONSE = (
    "I can see the image you've shared, but I'm having trouble analyzing it right now. "
    "For any concerning visual symptoms, please consult with a healthcare professional "
    "who can properly examine the area."
)

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"

PERSONA_PROMPT = """You are Dr. Ava, a professional medical assistant. You provide helpful, accurate, and empathetic medical guidance while always emphasizing the importance of professional medical care when needed.

Key guidelines:
- Be professional yet warm and empathetic
- Provide helpful medical information but always recommend consulting healthcare professionals for serious concerns
- If symptoms seem severe, suggest emergency care or doctor consultation
- Be concise but thorough in your responses
- Use simple, understandable language
- Show concern for the patient's wellbeing"""

IMAGE_NOTE = "The user has shared an image. Acknowledge that you can see it and provide relevant guidance based on visual symptoms."
VOICE_NOTE = "The user sent a voice message. Acknowledge this and respond appropriately to their spoken concerns."

IMAGE_ANALYSIS_PROMPT = (
    "You are Dr. Ava, analyzing a medical image. Provide helpful observations while "
    "emphasizing the need for professional medical evaluation."
)


@dataclass
class ConversationTurn:
    """A prior turn fed back to the model as context"""
    role: str  # 'user' or 'model'
    text: str


def detect_image_mime_type(image_base64: str) -> str:
    """Guess an image MIME type from the signature of base64 data.

    Only the leading bytes are decoded. Anything unrecognised, including
    undecodable input, is reported as JPEG.
    """
    head = (image_base64 or "").strip()[:32]
    head += "=" * (-len(head) % 4)
    try:
        signature = base64.b64decode(head)
    except (binascii.Error, ValueError):
        return DEFAULT_IMAGE_MIME_TYPE

    if signature.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if signature.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if signature.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if signature[:4] == b"RIFF" and signature[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_IMAGE_MIME_TYPE


def build_prompt(
    user_message: str,
    conversation_history: Sequence[ConversationTurn] = (),
    has_image: bool = False,
    is_voice_message: bool = False,
) -> str:
    """Flatten persona, prior turns and the new message into one prompt"""
    parts = [PERSONA_PROMPT]
    if has_image:
        parts.append(IMAGE_NOTE)
    if is_voice_message:
        parts.append(VOICE_NOTE)
    prompt = "\n\n".join(parts) + "\n\n"

    if conversation_history:
        prompt += "Previous conversation:\n"
        for turn in conversation_history:
            speaker = "Dr. Ava" if turn.role == "model" else "Patient"
            prompt += f"{speaker}: {turn.text}\n"
        prompt += "\n"

    prompt += f"Patient: {user_message}\nDr. Ava:"
    return prompt


class GeminiService:
    """Single-turn prompt completion against the Gemini API"""

    def __init__(self, api_key: Optional[str], model: str = "gemini-2.5-flash", client: Any = None):
        self.model = model
        if client is not None:
            self.client = client
        elif api_key:
            self.client = genai.Client(api_key=api_key)
        else:
            self.client = None
            logger.warning("Gemini API key not configured. Dr. Ava will answer with the fallback message.")

    def is_configured(self) -> bool:
        return self.client is not None

    def _complete(self, contents: Any) -> Optional[str]:
        response = self.client.models.generate_content(model=self.model, contents=contents)
        text = response.text
        return text.strip() if text else None

    def generate_response(
        self,
        user_message: str,
        conversation_history: Optional[List[ConversationTurn]] = None,
        has_image: bool = False,
        is_voice_message: bool = False,
    ) -> str:
        if not self.is_configured():
            return FALLBACK_RESPONSE

        prompt = build_prompt(user_message, conversation_history or [], has_image, is_voice_message)
        try:
            text = self._complete(prompt)
        except Exception as e:
            logger.error(f"Error calling Gemini API: {e}")
            return FALLBACK_RESPONSE

        if not text:
            # Safety blocks come back without candidate text
            logger.warning("Gemini returned an empty response")
            return FALLBACK_RESPONSE
        return text

    def analyze_image(self, image_base64: str, user_message: str, mime_type: Optional[str] = None) -> str:
        """Describe an inline image; `mime_type` should be the one recorded at upload"""
        if not self.is_configured():
            return IMAGE_FALLBACK_RESPONSE

        try:
            image_bytes = base64.b64decode(image_base64)
            image_part = types.Part.from_bytes(
                data=image_bytes,
                mime_type=mime_type or detect_image_mime_type(image_base64),
            )
            prompt = f"{IMAGE_ANALYSIS_PROMPT}\n\nPatient's question: {user_message}"
            text = self._complete([prompt, image_part])
        except Exception as e:
            logger.error(f"Error analyzing image with Gemini: {e}")
            return IMAGE_FALLBACK_RESPONSE

        return text or IMAGE_FALLBACK_RESPONSE

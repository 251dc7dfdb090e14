"""
Tavus Service for AI Video-Avatar Consultations
Handles conversation creation, context updates, messaging and teardown
against the Tavus API, plus the local media-capture handshake that must
succeed before a conversation is requested.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Protocol, Set

import httpx
from fastapi import BackgroundTasks

from models import ConversationMode

logger = logging.getLogger(__name__)

PLACEHOLDER_CONVERSATION_URL = "https://mock-tavus-url.com"

INITIAL_CONTEXT = "Patient has initiated a video consultation for medical guidance and health assessment."

MEDICAL_SYSTEM_PROMPT = """You are Dr. Ava, a professional and empathetic AI medical assistant. Your role is to provide helpful medical guidance while maintaining the highest standards of care.

CORE IDENTITY:
- You are a warm, professional, and knowledgeable medical AI
- You have extensive medical knowledge but always emphasize the importance of professional medical care
- You speak in a calm, reassuring tone while being thorough and accurate

MEDICAL GUIDELINES:
- Provide helpful medical information and guidance
- Always recommend consulting healthcare professionals for serious concerns
- If symptoms seem severe or emergency-related, immediately suggest emergency care
- Use simple, understandable language that patients can easily follow
- Ask relevant follow-up questions to better understand symptoms

SAFETY PROTOCOLS:
- Never provide specific diagnoses - only general medical information
- Always emphasize the need for professional medical evaluation
- For emergencies, immediately direct to emergency services
- Be honest about limitations as an AI assistant"""


@dataclass(frozen=True)
class ConversationRef:
    """A video conversation handle; `mode` says whether it exists at the vendor"""
    mode: ConversationMode
    conversation_id: str
    conversation_url: Optional[str] = None
    status: str = "active"

    @property
    def is_live(self) -> bool:
        return self.mode == ConversationMode.LIVE

    @classmethod
    def local(cls, mode: ConversationMode) -> "ConversationRef":
        """Build a mock/fallback handle for degraded demo mode"""
        return cls(
            mode=mode,
            conversation_id=f"{mode.value}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}",
            conversation_url=PLACEHOLDER_CONVERSATION_URL,
        )


class MediaPermissionError(Exception):
    """Camera or microphone could not be acquired"""

    def __init__(self, message: str = "Unable to access camera and microphone. Please check your permissions and try again."):
        super().__init__(message)


class MediaCapture(Protocol):
    def acquire(self) -> None: ...
    def release(self) -> None: ...


class ClientReportedCapture:
    """Capture state reported by the browser, which owns the actual devices"""

    def __init__(self, camera_granted: bool, microphone_granted: bool):
        self.camera_granted = camera_granted
        self.microphone_granted = microphone_granted
        self.active = False

    def acquire(self) -> None:
        if not (self.camera_granted and self.microphone_granted):
            raise MediaPermissionError()
        self.active = True

    def release(self) -> None:
        self.active = False


def _json_object(response: httpx.Response) -> Dict[str, Any]:
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object from Tavus, got {type(data).__name__}")
    return data


class TavusService:
    """Thin async wrapper over the Tavus v2 conversations API"""

    def __init__(
        self,
        api_key: Optional[str],
        persona_id: str,
        http_client: httpx.AsyncClient,
        base_url: str = "https://tavusapi.com",
        callback_url: Optional[str] = None,
    ):
        self.api_key = api_key
        self.persona_id = persona_id
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.callback_url = callback_url

        if not api_key:
            logger.warning("Tavus API key not configured. Video consultations will run in demo mode.")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key or "", "Content-Type": "application/json"}

    async def create_conversation(self) -> ConversationRef:
        if not self.is_configured():
            return ConversationRef.local(ConversationMode.MOCK)

        config: Dict[str, Any] = {
            "persona_id": self.persona_id,
            "properties": {
                "max_call_duration": 1800,  # 30 minutes
                "participant_left_timeout": 60,
                "enable_recording": False,
                "language": "English",
            },
        }
        if self.callback_url:
            config["callback_url"] = self.callback_url

        try:
            response = await self.http.post(
                f"{self.base_url}/v2/conversations", headers=self._headers(), json=config
            )
            response.raise_for_status()
            data = _json_object(response)
            conversation_id = data["conversation_id"]
            if not conversation_id:
                raise ValueError("Tavus returned an empty conversation id")
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"Error creating Tavus conversation: {e}")
            return ConversationRef.local(ConversationMode.FALLBACK)

        logger.info(f"Tavus conversation {conversation_id} created with persona {self.persona_id}")
        return ConversationRef(
            mode=ConversationMode.LIVE,
            conversation_id=conversation_id,
            conversation_url=data.get("conversation_url"),
            status=data.get("status", "active"),
        )

    async def update_conversation_context(self, ref: ConversationRef, context: str) -> bool:
        if not ref.is_live:
            logger.info("Skipping conversation context update - using mock/fallback mode")
            return False

        try:
            response = await self.http.put(
                f"{self.base_url}/v2/conversations/{ref.conversation_id}/context",
                headers=self._headers(),
                json={"context": context, "system_prompt": MEDICAL_SYSTEM_PROMPT},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error updating conversation context: {e}")
            return False
        return True

    async def send_message(self, ref: ConversationRef, message: str) -> bool:
        if not ref.is_live:
            logger.info("Skipping message send - using mock/fallback mode")
            return False

        try:
            response = await self.http.post(
                f"{self.base_url}/v2/conversations/{ref.conversation_id}/messages",
                headers=self._headers(),
                json={"message": message, "sender": "system"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error sending message to conversation: {e}")
            return False
        return True

    async def end_conversation(self, ref: ConversationRef) -> bool:
        if not ref.is_live:
            logger.info("Skipping conversation end - using mock/fallback mode")
            return False

        try:
            response = await self.http.delete(
                f"{self.base_url}/v2/conversations/{ref.conversation_id}",
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error ending Tavus conversation: {e}")
            return False
        return True

    async def get_conversation_status(self, ref: ConversationRef) -> str:
        if not ref.is_live:
            return "active"

        try:
            response = await self.http.get(
                f"{self.base_url}/v2/conversations/{ref.conversation_id}",
                headers=self._headers(),
            )
            response.raise_for_status()
            return _json_object(response).get("status") or "unknown"
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error getting conversation status: {e}")
            return "error"

    async def get_personas(self) -> List[Dict[str, Any]]:
        if not self.is_configured():
            return []

        try:
            response = await self.http.get(f"{self.base_url}/v2/personas", headers=self._headers())
            response.raise_for_status()
            return _json_object(response).get("data") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching Tavus personas: {e}")
            return []


class VideoConsultationOrchestrator:
    """
    Connect/close flow for one patient video consultation.

    Media capture is acquired before the vendor is contacted; if it fails the
    flow aborts with MediaPermissionError and no conversation is created.
    """

    def __init__(self, tavus: TavusService, capture: MediaCapture):
        self.tavus = tavus
        self.capture = capture
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, background_tasks: Optional[BackgroundTasks] = None) -> ConversationRef:
        self.capture.acquire()

        ref = await self.tavus.create_conversation()

        # Initial context is fire-and-forget
        if ref.is_live:
            if background_tasks is not None:
                background_tasks.add_task(self.tavus.update_conversation_context, ref, INITIAL_CONTEXT)
            else:
                task = asyncio.create_task(self.tavus.update_conversation_context(ref, INITIAL_CONTEXT))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

        return ref

    async def close(self, ref: Optional[ConversationRef]) -> None:
        self.capture.release()
        if ref is not None:
            await self.tavus.end_conversation(ref)

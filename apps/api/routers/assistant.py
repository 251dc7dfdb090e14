"""Dr. Ava assistant: text/image replies, optional voice, speech-to-text"""
import base64
import logging
from typing import List

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from database import get_session
from dependencies import get_current_profile, get_services
from models import ChatMessageType, ChatSessionMessage, Profile
from rate_limit import limiter
from schemas import AssistantChatRequest, AssistantChatResponse, ChatMessageResponse, TranscriptionResponse
from services import ServiceContainer
from services import chat_history_service
from services.gemini_service import ConversationTurn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assistant", tags=["Assistant"])

# Prior turns fed back to the model
HISTORY_TURNS = 10


def history_from_messages(messages: List[ChatSessionMessage]) -> List[ConversationTurn]:
    return [
        ConversationTurn(role="model" if m.type == ChatMessageType.AI.value else "user", text=m.content)
        for m in messages[-HISTORY_TURNS:]
    ]


@router.post("/chat", response_model=AssistantChatResponse)
@limiter.limit("20/minute")
async def chat_with_assistant(
    request: Request,
    chat_request: AssistantChatRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """
    One patient turn: store the patient's message, produce Dr. Ava's reply
    (voiced when asked and available) and store it in the same session.
    Without a session id the current session is used, or a new one started.
    """
    if chat_request.session_id is not None:
        chat = chat_history_service.get_owned_session(db, current_profile, chat_request.session_id)
    else:
        chat = chat_history_service.get_current_session(db, current_profile)
        if chat is None:
            chat = chat_history_service.create_new_session(db, current_profile)
    session_id = chat.id

    history = history_from_messages(chat_history_service.get_messages(db, session_id))

    image_base64 = None
    image_content_type = None
    if chat_request.image_key:
        image_bytes, image_content_type = await run_in_threadpool(
            services.storage.read_image, current_profile.id, chat_request.image_key
        )
        image_base64 = base64.b64encode(image_bytes).decode("ascii")

    user_message = chat_history_service.save_message(
        db,
        current_profile,
        session_id,
        ChatMessageType.USER,
        chat_request.message,
        image_url=chat_request.image_key,
        image_content_type=image_content_type,
        is_voice_message=chat_request.is_voice_message,
    )

    if image_base64:
        reply = await run_in_threadpool(
            services.gemini.analyze_image, image_base64, chat_request.message, image_content_type
        )
    else:
        reply = await run_in_threadpool(
            services.gemini.generate_response,
            chat_request.message,
            history,
            False,
            chat_request.is_voice_message,
        )

    audio_base64 = None
    if chat_request.voice_reply:
        audio = await services.speech.synthesize(reply)
        if audio:
            audio_base64 = base64.b64encode(audio).decode("ascii")

    ai_message = chat_history_service.save_message(db, current_profile, session_id, ChatMessageType.AI, reply)

    return AssistantChatResponse(
        session_id=session_id,
        user_message=ChatMessageResponse.model_validate(user_message),
        ai_message=ChatMessageResponse.model_validate(ai_message),
        audio_base64=audio_base64
    )


@router.post("/transcribe", response_model=TranscriptionResponse)
@limiter.limit("20/minute")
async def transcribe_audio(
    request: Request,
    audio: UploadFile = File(...),
    current_profile: Profile = Depends(get_current_profile),
    services: ServiceContainer = Depends(get_services)
):
    data = await audio.read()
    text = await services.speech.transcribe(
        data,
        filename=audio.filename or "recording.webm",
        content_type=audio.content_type or "audio/webm"
    )
    return TranscriptionResponse(text=text)

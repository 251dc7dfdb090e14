"""Chat session history for the Dr. Ava assistant"""
from fastapi import APIRouter, Depends, status
from sqlmodel import Session
from typing import List, Optional
from database import get_session
from models import Profile, ChatSession
from schemas import (
    ChatMessageCreate,
    ChatMessageResponse,
    ChatSessionCreate,
    ChatSessionDetail,
    ChatSessionRename,
    ChatSessionResponse,
)
from dependencies import get_current_profile
from services import chat_history_service

router = APIRouter(prefix="/api/chat", tags=["Chat"])


def session_detail(db: Session, chat: ChatSession) -> ChatSessionDetail:
    return ChatSessionDetail(
        **ChatSessionResponse.model_validate(chat).model_dump(),
        messages=[
            ChatMessageResponse.model_validate(message)
            for message in chat_history_service.get_messages(db, chat.id)
        ]
    )


@router.get("/sessions", response_model=List[ChatSessionResponse])
def get_all_sessions(
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session)
):
    """The caller's sessions, most recently active first"""
    return chat_history_service.get_all_sessions(db, current_profile)


@router.get("/sessions/current", response_model=Optional[ChatSessionDetail])
def get_current_session(
    active_session_id: Optional[int] = None,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session)
):
    chat = chat_history_service.get_current_session(db, current_profile, active_session_id)
    if chat is None:
        return None
    return session_detail(db, chat)


@router.post("/sessions", response_model=ChatSessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    session_data: Optional[ChatSessionCreate] = None,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session)
):
    name = session_data.session_name if session_data else None
    return chat_history_service.create_new_session(db, current_profile, name)


@router.get("/sessions/{session_id}", response_model=ChatSessionDetail)
def get_session_detail(
    session_id: int,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session)
):
    chat = chat_history_service.get_owned_session(db, current_profile, session_id)
    return session_detail(db, chat)


@router.patch("/sessions/{session_id}", response_model=ChatSessionResponse)
def rename_session(
    session_id: int,
    rename: ChatSessionRename,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session)
):
    return chat_history_service.update_session_name(db, current_profile, session_id, rename.session_name)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: int,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session)
):
    chat_history_service.delete_session(db, current_profile, session_id)


@router.post("/sessions/{session_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
def save_message(
    session_id: int,
    message: ChatMessageCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session)
):
    """Append one message to the session's log"""
    return chat_history_service.save_message(
        db,
        current_profile,
        session_id,
        message.type,
        message.content,
        message_id=message.message_id,
        timestamp=message.timestamp,
        audio_url=message.audio_url,
        image_url=message.image_url,
        image_content_type=message.image_content_type,
        is_voice_message=message.is_voice_message,
    )

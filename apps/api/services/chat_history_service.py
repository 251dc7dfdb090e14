"""
Chat session persistence for the Dr. Ava assistant.

Messages live in their own append-only table; saving one is a single INSERT
plus a single UPDATE of the session's activity timestamp, so two concurrent
saves can never overwrite each other's messages.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlmodel import Session, select

from models import ChatMessageType, ChatSession, ChatSessionMessage, Profile, UserRole

logger = logging.getLogger(__name__)


def _require_patient(profile: Profile) -> None:
    if profile.role != UserRole.PATIENT.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only patients can manage chat sessions"
        )


def default_session_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"Chat {now.month}/{now.day}/{now.year}"


def get_owned_session(session: Session, patient: Profile, session_id: int) -> ChatSession:
    _require_patient(patient)
    chat = session.get(ChatSession, session_id)
    if not chat or chat.patient_id != patient.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session not found")
    return chat


def get_current_session(
    session: Session, patient: Profile, active_session_id: Optional[int] = None
) -> Optional[ChatSession]:
    """
    The explicitly active session when it belongs to the caller, otherwise the
    most recently active one (ties broken by the newest id).
    """
    _require_patient(patient)

    if active_session_id is not None:
        chat = session.get(ChatSession, active_session_id)
        if chat and chat.patient_id == patient.id:
            return chat

    statement = (
        select(ChatSession)
        .where(ChatSession.patient_id == patient.id)
        .order_by(ChatSession.last_message_at.desc(), ChatSession.id.desc())
        .limit(1)
    )
    return session.exec(statement).first()


def create_new_session(session: Session, patient: Profile, session_name: Optional[str] = None) -> ChatSession:
    _require_patient(patient)

    now = datetime.utcnow()
    chat = ChatSession(
        patient_id=patient.id,
        session_name=session_name or default_session_name(now),
        last_message_at=now,
        created_at=now,
        updated_at=now,
    )
    session.add(chat)
    session.commit()
    session.refresh(chat)

    logger.info(f"Chat session {chat.id} created for patient {patient.id}")
    return chat


def save_message(
    session: Session,
    patient: Profile,
    session_id: int,
    message_type: ChatMessageType,
    content: str,
    message_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    audio_url: Optional[str] = None,
    image_url: Optional[str] = None,
    image_content_type: Optional[str] = None,
    is_voice_message: bool = False,
) -> ChatSessionMessage:
    get_owned_session(session, patient, session_id)

    now = datetime.utcnow()
    message = ChatSessionMessage(
        session_id=session_id,
        message_id=message_id or uuid.uuid4().hex,
        type=message_type.value,
        content=content,
        timestamp=timestamp or now,
        audio_url=audio_url,
        image_url=image_url,
        image_content_type=image_content_type,
        is_voice_message=is_voice_message,
    )
    session.add(message)
    session.exec(
        update(ChatSession)
        .where(ChatSession.id == session_id)
        .values(last_message_at=now, updated_at=now)
    )
    session.commit()
    session.refresh(message)
    return message


def get_messages(session: Session, session_id: int) -> List[ChatSessionMessage]:
    statement = (
        select(ChatSessionMessage)
        .where(ChatSessionMessage.session_id == session_id)
        .order_by(ChatSessionMessage.id)
    )
    return list(session.exec(statement).all())


def get_all_sessions(session: Session, patient: Profile) -> List[ChatSession]:
    _require_patient(patient)
    statement = (
        select(ChatSession)
        .where(ChatSession.patient_id == patient.id)
        .order_by(ChatSession.last_message_at.desc(), ChatSession.id.desc())
    )
    return list(session.exec(statement).all())


def delete_session(session: Session, patient: Profile, session_id: int) -> None:
    chat = get_owned_session(session, patient, session_id)
    session.delete(chat)
    session.commit()
    logger.info(f"Chat session {session_id} deleted by patient {patient.id}")


def update_session_name(session: Session, patient: Profile, session_id: int, new_name: str) -> ChatSession:
    chat = get_owned_session(session, patient, session_id)
    chat.session_name = new_name
    chat.updated_at = datetime.utcnow()
    session.add(chat)
    session.commit()
    session.refresh(chat)
    return chat

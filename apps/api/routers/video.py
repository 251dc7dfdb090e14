"""Video consultation router for Tavus avatar conversations"""
from fastapi import APIRouter, Depends, HTTPException, BackgroundTasks, status
from sqlmodel import Session, select
from typing import List, Dict, Any
from datetime import datetime
from database import get_session
from models import Profile, VideoConsultation, ConversationMode
from schemas import VideoConversationCreate, VideoConversationResponse, VideoMessage, VideoStatusResponse
from dependencies import require_patient, get_services
from services import ServiceContainer
from services.tavus_service import (
    ClientReportedCapture,
    ConversationRef,
    MediaPermissionError,
    VideoConsultationOrchestrator,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/video", tags=["Video Consultation"])


def _owned_consultation(db: Session, profile: Profile, conversation_id: str) -> VideoConsultation:
    consultation = db.exec(
        select(VideoConsultation).where(VideoConsultation.conversation_id == conversation_id)
    ).first()
    if not consultation or consultation.patient_id != profile.id:
        raise HTTPException(status_code=404, detail="Video consultation not found")
    return consultation


def ref_for(consultation: VideoConsultation) -> ConversationRef:
    return ConversationRef(
        mode=ConversationMode(consultation.mode),
        conversation_id=consultation.conversation_id,
        conversation_url=consultation.conversation_url,
        status=consultation.status,
    )


@router.post("/conversations", response_model=VideoConversationResponse, status_code=status.HTTP_201_CREATED)
async def start_conversation(
    start: VideoConversationCreate,
    background_tasks: BackgroundTasks,
    current_profile: Profile = Depends(require_patient),
    db: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """
    Start a video consultation with Dr. Ava. The browser reports whether it
    obtained camera and microphone; without both nothing is created.
    """
    orchestrator = VideoConsultationOrchestrator(
        services.tavus, ClientReportedCapture(start.camera_granted, start.microphone_granted)
    )
    try:
        ref = await orchestrator.connect(background_tasks)
    except MediaPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    consultation = VideoConsultation(
        patient_id=current_profile.id,
        conversation_id=ref.conversation_id,
        mode=ref.mode.value,
        conversation_url=ref.conversation_url,
        status=ref.status,
    )
    db.add(consultation)
    db.commit()
    db.refresh(consultation)

    logger.info(f"Video consultation {ref.conversation_id} ({ref.mode.value}) started for patient {current_profile.id}")
    return consultation


@router.get("/conversations/{conversation_id}/status", response_model=VideoStatusResponse)
async def get_conversation_status(
    conversation_id: str,
    current_profile: Profile = Depends(require_patient),
    db: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    consultation = _owned_consultation(db, current_profile, conversation_id)
    if consultation.ended_at is not None:
        vendor_status = consultation.status
    else:
        vendor_status = await services.tavus.get_conversation_status(ref_for(consultation))
    return VideoStatusResponse(
        conversation_id=conversation_id,
        mode=consultation.mode,
        status=vendor_status
    )


@router.post("/conversations/{conversation_id}/messages")
async def send_conversation_message(
    conversation_id: str,
    message: VideoMessage,
    current_profile: Profile = Depends(require_patient),
    db: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    consultation = _owned_consultation(db, current_profile, conversation_id)
    delivered = await services.tavus.send_message(ref_for(consultation), message.message)
    return {"delivered": delivered}


@router.delete("/conversations/{conversation_id}", response_model=VideoConversationResponse)
async def end_conversation(
    conversation_id: str,
    current_profile: Profile = Depends(require_patient),
    db: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """End the call; the vendor side is best effort"""
    consultation = _owned_consultation(db, current_profile, conversation_id)
    if consultation.ended_at is None:
        await services.tavus.end_conversation(ref_for(consultation))
        consultation.status = "ended"
        consultation.ended_at = datetime.utcnow()
        db.add(consultation)
        db.commit()
        db.refresh(consultation)
    return consultation


@router.get("/personas", response_model=List[Dict[str, Any]])
async def list_personas(
    current_profile: Profile = Depends(require_patient),
    services: ServiceContainer = Depends(get_services)
):
    return await services.tavus.get_personas()

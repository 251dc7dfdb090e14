from fastapi import APIRouter, Depends, status, BackgroundTasks
from sqlmodel import Session
from typing import List
from database import get_session
from models import Profile
from schemas import (
    ConsultationCreate,
    ConsultationResponse,
    ConsultationUpdate,
    ReportCreate,
    ReportReply,
    ReportResponse,
)
from dependencies import get_current_profile, get_services
from services import ServiceContainer, Channel
from services import consultation_service
from utils.notification_service import notification_to_dict

router = APIRouter(prefix="/api", tags=["Consultations"])


# ==================== AI Consultations (patient) ====================

@router.post("/consultations", response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
def create_consultation(
    consultation_data: ConsultationCreate,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return consultation_service.create_consultation(session, current_profile, consultation_data.session_id)


@router.get("/consultations", response_model=List[ConsultationResponse])
def get_consultations(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return consultation_service.get_consultations(session, current_profile)


@router.patch("/consultations/{consultation_id}", response_model=ConsultationResponse)
def update_consultation(
    consultation_id: int,
    updates: ConsultationUpdate,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return consultation_service.update_consultation(
        session, current_profile, consultation_id, updates.model_dump(exclude_unset=True)
    )


# ==================== Reports ====================

@router.post("/reports", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
def send_report(
    report_data: ReportCreate,
    background_tasks: BackgroundTasks,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """Forward a consultation snapshot to a doctor"""
    report, notification = consultation_service.send_report_to_doctor(
        session, current_profile, report_data.consultation_id, report_data.doctor_id, report_data.message
    )
    services.realtime.publish_after_response(
        background_tasks, notification.user_id, Channel.NOTIFICATIONS, notification_to_dict(notification)
    )
    return report


@router.get("/reports/sent", response_model=List[ReportResponse])
def get_sent_reports(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return consultation_service.get_sent_reports(session, current_profile)


@router.get("/reports/received", response_model=List[ReportResponse])
def get_received_reports(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return consultation_service.get_received_reports(session, current_profile)


@router.post("/reports/{report_id}/review", response_model=ReportResponse)
def review_report(
    report_id: int,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return consultation_service.review_report(session, current_profile, report_id)


@router.post("/reports/{report_id}/respond", response_model=ReportResponse)
def respond_to_report(
    report_id: int,
    reply: ReportReply,
    background_tasks: BackgroundTasks,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    report, notification = consultation_service.respond_to_report(
        session, current_profile, report_id, reply.response
    )
    services.realtime.publish_after_response(
        background_tasks, notification.user_id, Channel.NOTIFICATIONS, notification_to_dict(notification)
    )
    return report

"""AI consultation records and the reports patients forward to doctors"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlmodel import Session, select

from models import (
    AIConsultation,
    ConsultationReport,
    Notification,
    NotificationType,
    Profile,
    ReportStatus,
    UserRole,
)
from utils.notification_service import create_notification, render_report_received, render_report_responded

logger = logging.getLogger(__name__)

CONSULTATION_LIST_LIMIT = 20


def _require_role(profile: Profile, role: UserRole, detail: str) -> None:
    if profile.role != role.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def consultation_snapshot(consultation: AIConsultation) -> Dict[str, Any]:
    """Frozen copy of a consultation as sent to a doctor"""
    return {
        "id": consultation.id,
        "session_id": consultation.session_id,
        "messages": consultation.messages or [],
        "ai_analysis": consultation.ai_analysis,
        "symptoms": consultation.symptoms,
        "vital_signs": consultation.vital_signs,
        "images": consultation.images,
        "priority": consultation.priority,
        "status": consultation.status,
        "created_at": consultation.created_at.isoformat(),
        "updated_at": consultation.updated_at.isoformat(),
    }


def create_consultation(session: Session, patient: Profile, session_id: str) -> AIConsultation:
    _require_role(patient, UserRole.PATIENT, "Only patients can create consultations")
    consultation = AIConsultation(patient_id=patient.id, session_id=session_id, messages=[])
    session.add(consultation)
    session.commit()
    session.refresh(consultation)
    return consultation


def get_owned_consultation(session: Session, patient: Profile, consultation_id: int) -> AIConsultation:
    _require_role(patient, UserRole.PATIENT, "Patient access required")
    consultation = session.get(AIConsultation, consultation_id)
    if not consultation or consultation.patient_id != patient.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consultation not found")
    return consultation


def update_consultation(
    session: Session, patient: Profile, consultation_id: int, updates: Dict[str, Any]
) -> AIConsultation:
    consultation = get_owned_consultation(session, patient, consultation_id)
    for key, value in updates.items():
        if hasattr(value, "value"):
            value = value.value
        setattr(consultation, key, value)
    consultation.updated_at = datetime.utcnow()
    session.add(consultation)
    session.commit()
    session.refresh(consultation)
    return consultation


def get_consultations(session: Session, patient: Profile, limit: int = CONSULTATION_LIST_LIMIT) -> List[AIConsultation]:
    _require_role(patient, UserRole.PATIENT, "Patient access required")
    statement = (
        select(AIConsultation)
        .where(AIConsultation.patient_id == patient.id)
        .order_by(AIConsultation.created_at.desc(), AIConsultation.id.desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())


def send_report_to_doctor(
    session: Session, patient: Profile, consultation_id: int, doctor_id: int, message: Optional[str] = None
) -> Tuple[ConsultationReport, Notification]:
    _require_role(patient, UserRole.PATIENT, "Only patients can send reports")
    consultation = get_owned_consultation(session, patient, consultation_id)

    doctor = session.get(Profile, doctor_id)
    if not doctor or doctor.role != UserRole.DOCTOR.value:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")

    report = ConsultationReport(
        consultation_id=consultation.id,
        patient_id=patient.id,
        doctor_id=doctor_id,
        report_data=consultation_snapshot(consultation),
        patient_message=message,
    )
    session.add(report)
    session.flush()

    notification = create_notification(
        session,
        doctor_id,
        NotificationType.REPORT_RECEIVED,
        "New Consultation Report",
        render_report_received(patient.full_name),
        {
            "report_id": report.id,
            "patient_id": patient.id,
            "patient_name": patient.full_name,
        },
    )
    session.commit()
    session.refresh(report)
    session.refresh(notification)

    logger.info(f"Patient {patient.id} sent report {report.id} to doctor {doctor_id}")
    return report, notification


def get_received_reports(session: Session, doctor: Profile) -> List[ConsultationReport]:
    _require_role(doctor, UserRole.DOCTOR, "Doctor access required")
    statement = (
        select(ConsultationReport)
        .where(ConsultationReport.doctor_id == doctor.id)
        .order_by(ConsultationReport.sent_at.desc(), ConsultationReport.id.desc())
    )
    return list(session.exec(statement).all())


def get_sent_reports(session: Session, patient: Profile) -> List[ConsultationReport]:
    _require_role(patient, UserRole.PATIENT, "Patient access required")
    statement = (
        select(ConsultationReport)
        .where(ConsultationReport.patient_id == patient.id)
        .order_by(ConsultationReport.sent_at.desc(), ConsultationReport.id.desc())
    )
    return list(session.exec(statement).all())


def _load_report_for_doctor(session: Session, doctor: Profile, report_id: int) -> ConsultationReport:
    _require_role(doctor, UserRole.DOCTOR, "Doctor access required")
    report = session.get(ConsultationReport, report_id)
    if not report or report.doctor_id != doctor.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


def review_report(session: Session, doctor: Profile, report_id: int) -> ConsultationReport:
    report = _load_report_for_doctor(session, doctor, report_id)
    if report.status == ReportStatus.SENT.value:
        report.status = ReportStatus.REVIEWED.value
        report.reviewed_at = datetime.utcnow()
        session.add(report)
        session.commit()
        session.refresh(report)
    return report


def respond_to_report(
    session: Session, doctor: Profile, report_id: int, response: str
) -> Tuple[ConsultationReport, Notification]:
    report = _load_report_for_doctor(session, doctor, report_id)
    if report.status == ReportStatus.RESPONDED.value:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Report already has a response")

    now = datetime.utcnow()
    report.reviewed_at = report.reviewed_at or now
    report.status = ReportStatus.RESPONDED.value
    report.doctor_response = response
    report.responded_at = now
    session.add(report)

    notification = create_notification(
        session,
        report.patient_id,
        NotificationType.SYSTEM,
        "Doctor Responded to Your Report",
        render_report_responded(doctor.full_name),
        {
            "report_id": report.id,
            "doctor_id": doctor.id,
            "doctor_name": doctor.full_name,
        },
    )
    session.commit()
    session.refresh(report)
    session.refresh(notification)
    return report, notification

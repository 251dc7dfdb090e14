"""
Patient -> doctor request workflow.

A patient asks a doctor to take them on; the doctor approves (which
establishes the care relationship) or rejects. Each step writes its
notification in the same transaction, so the status change and the message
to the other party commit or roll back together.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from models import (
    Doctor,
    Notification,
    NotificationType,
    PatientDoctorRelationship,
    PatientDoctorRequest,
    Profile,
    RequestStatus,
    UserRole,
)
from utils.notification_service import (
    create_notification,
    render_request_approved,
    render_request_created,
    render_request_declined,
)

logger = logging.getLogger(__name__)


def _require_role(profile: Profile, role: UserRole, detail: str) -> None:
    if profile.role != role.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def create_request(
    session: Session, patient: Profile, doctor_id: int, message: Optional[str] = None
) -> Tuple[PatientDoctorRequest, Notification]:
    _require_role(patient, UserRole.PATIENT, "Only patients can request doctors")

    doctor = session.get(Profile, doctor_id)
    if not doctor or doctor.role != UserRole.DOCTOR.value:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")

    existing = session.exec(
        select(PatientDoctorRequest).where(
            PatientDoctorRequest.patient_id == patient.id,
            PatientDoctorRequest.doctor_id == doctor_id,
        )
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already requested this doctor"
        )

    request = PatientDoctorRequest(patient_id=patient.id, doctor_id=doctor_id, message=message)
    session.add(request)
    try:
        session.flush()
    except IntegrityError:
        # Lost a race with a concurrent request for the same pair
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already requested this doctor"
        )

    notification = create_notification(
        session,
        doctor_id,
        NotificationType.DOCTOR_REQUEST,
        "New Patient Request",
        render_request_created(patient.full_name),
        {
            "request_id": request.id,
            "patient_id": patient.id,
            "patient_name": patient.full_name,
        },
    )
    session.commit()
    session.refresh(request)
    session.refresh(notification)

    logger.info(f"Patient {patient.id} requested doctor {doctor_id} (request {request.id})")
    return request, notification


def _load_request_for_doctor(session: Session, doctor: Profile, request_id: int) -> PatientDoctorRequest:
    _require_role(doctor, UserRole.DOCTOR, "Only doctors can respond to requests")

    request = session.get(PatientDoctorRequest, request_id)
    if not request:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    if request.doctor_id != doctor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This request is addressed to another doctor"
        )
    return request


def approve_request(
    session: Session, doctor: Profile, request_id: int
) -> Tuple[PatientDoctorRequest, Optional[Notification]]:
    """
    pending -> approved, plus the relationship row and the patient's notice.
    Approving an already approved request changes nothing and returns no
    notification.
    """
    request = _load_request_for_doctor(session, doctor, request_id)

    if request.status == RequestStatus.APPROVED.value:
        return request, None
    if request.status != RequestStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Request is already {request.status}"
        )

    request.status = RequestStatus.APPROVED.value
    request.responded_at = datetime.utcnow()
    session.add(request)

    try:
        with session.begin_nested():
            session.add(PatientDoctorRelationship(patient_id=request.patient_id, doctor_id=request.doctor_id))
    except IntegrityError:
        logger.info(f"Relationship {request.patient_id}->{request.doctor_id} already exists")

    notification = create_notification(
        session,
        request.patient_id,
        NotificationType.DOCTOR_REQUEST,
        "Doctor Request Approved",
        render_request_approved(doctor.full_name),
        {
            "request_id": request.id,
            "doctor_id": doctor.id,
            "doctor_name": doctor.full_name,
        },
    )
    session.commit()
    session.refresh(request)
    session.refresh(notification)

    logger.info(f"Doctor {doctor.id} approved request {request.id}")
    return request, notification


def reject_request(
    session: Session, doctor: Profile, request_id: int, reason: Optional[str] = None
) -> Tuple[PatientDoctorRequest, Optional[Notification]]:
    request = _load_request_for_doctor(session, doctor, request_id)

    if request.status == RequestStatus.REJECTED.value:
        return request, None
    if request.status != RequestStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Request is already {request.status}"
        )

    request.status = RequestStatus.REJECTED.value
    request.responded_at = datetime.utcnow()
    session.add(request)

    notification = create_notification(
        session,
        request.patient_id,
        NotificationType.DOCTOR_REQUEST,
        "Doctor Request Declined",
        render_request_declined(doctor.full_name, reason),
        {
            "request_id": request.id,
            "doctor_id": doctor.id,
            "doctor_name": doctor.full_name,
            "reason": reason,
        },
    )
    session.commit()
    session.refresh(request)
    session.refresh(notification)

    logger.info(f"Doctor {doctor.id} rejected request {request.id}")
    return request, notification


def get_pending_requests(session: Session, doctor: Profile) -> List[Tuple[PatientDoctorRequest, Profile]]:
    _require_role(doctor, UserRole.DOCTOR, "Doctor access required")
    statement = (
        select(PatientDoctorRequest, Profile)
        .join(Profile, Profile.id == PatientDoctorRequest.patient_id)
        .where(
            PatientDoctorRequest.doctor_id == doctor.id,
            PatientDoctorRequest.status == RequestStatus.PENDING.value,
        )
        .order_by(PatientDoctorRequest.requested_at.desc(), PatientDoctorRequest.id.desc())
    )
    return list(session.exec(statement).all())


def get_patient_requests(session: Session, patient: Profile) -> List[Tuple[PatientDoctorRequest, Profile]]:
    _require_role(patient, UserRole.PATIENT, "Patient access required")
    statement = (
        select(PatientDoctorRequest, Profile)
        .join(Profile, Profile.id == PatientDoctorRequest.doctor_id)
        .where(PatientDoctorRequest.patient_id == patient.id)
        .order_by(PatientDoctorRequest.requested_at.desc(), PatientDoctorRequest.id.desc())
    )
    return list(session.exec(statement).all())


def get_my_doctors(session: Session, patient: Profile) -> List[Tuple[Doctor, Profile]]:
    _require_role(patient, UserRole.PATIENT, "Patient access required")
    statement = (
        select(Doctor, Profile)
        .join(Profile, Profile.id == Doctor.profile_id)
        .join(PatientDoctorRelationship, PatientDoctorRelationship.doctor_id == Doctor.profile_id)
        .where(PatientDoctorRelationship.patient_id == patient.id)
        .order_by(PatientDoctorRelationship.established_at.desc())
    )
    return list(session.exec(statement).all())


def get_patients(session: Session, doctor: Profile) -> List[Profile]:
    _require_role(doctor, UserRole.DOCTOR, "Doctor access required")
    statement = (
        select(Profile)
        .join(PatientDoctorRelationship, PatientDoctorRelationship.patient_id == Profile.id)
        .where(PatientDoctorRelationship.doctor_id == doctor.id)
        .order_by(Profile.full_name)
    )
    return list(session.exec(statement).all())

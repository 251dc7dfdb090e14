from fastapi import APIRouter, Depends, HTTPException, status, BackgroundTasks
from sqlalchemy import String, cast, or_
from sqlmodel import Session, select, func
from database import get_session
from models import Doctor, Profile
from schemas import (
    DoctorResponse,
    DoctorUpdate,
    DoctorWithProfile,
    DoctorRequestRejection,
    DoctorRequestResponse,
    ProfileSummary,
)
from dependencies import require_doctor, get_current_profile, get_services
from services import ServiceContainer, Channel
from services import relationship_service
from utils.notification_service import notification_to_dict
from datetime import datetime
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["Doctors"])

BROWSE_LIMIT = 50
SEARCH_LIMIT = 20


def doctor_entry(doctor: Doctor, profile: Profile) -> DoctorWithProfile:
    return DoctorWithProfile(
        **DoctorResponse.model_validate(doctor).model_dump(),
        profile=ProfileSummary.model_validate(profile)
    )


def query_verified_doctors(session: Session, query: str = "") -> List[DoctorWithProfile]:
    """
    Verified doctors with their profiles, most experienced first.
    An empty query browses (up to 50); otherwise name, specialty or clinic
    must contain the query, case-insensitively (up to 20).
    """
    statement = (
        select(Doctor, Profile)
        .join(Profile, Doctor.profile_id == Profile.id)
        .where(Doctor.verified == True)  # noqa: E712
        .order_by(Doctor.years_experience.desc(), Doctor.id)
    )

    query = query.strip()
    if query:
        # Wildcards in the query are literal
        escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        term = f"%{escaped}%"
        statement = statement.where(
            or_(
                func.lower(Profile.full_name).like(term, escape="\\"),
                func.lower(cast(Doctor.specialties, String)).like(term, escape="\\"),
                func.lower(Doctor.clinic_name).like(term, escape="\\"),
            )
        ).limit(SEARCH_LIMIT)
    else:
        statement = statement.limit(BROWSE_LIMIT)

    return [doctor_entry(doctor, profile) for doctor, profile in session.exec(statement).all()]


@router.get("/search", response_model=List[DoctorWithProfile])
def search_doctors(
    q: str = "",
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """Search verified doctors (public endpoint)"""
    if q.strip():
        return query_verified_doctors(session, q)

    cached = services.directory_cache.get_verified_list()
    if cached is not None:
        return cached

    doctors = query_verified_doctors(session)
    services.directory_cache.set_verified_list([d.model_dump(mode="json") for d in doctors])
    return doctors


def _own_doctor_record(session: Session, profile: Profile) -> Doctor:
    doctor = session.exec(select(Doctor).where(Doctor.profile_id == profile.id)).first()
    if not doctor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Doctor profile not found"
        )
    return doctor


@router.get("/profile", response_model=DoctorResponse)
def get_my_doctor_profile(
    current_profile: Profile = Depends(require_doctor),
    session: Session = Depends(get_session)
):
    return _own_doctor_record(session, current_profile)


@router.put("/profile", response_model=DoctorResponse)
def update_doctor_profile(
    doctor_data: DoctorUpdate,
    current_profile: Profile = Depends(require_doctor),
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """Update credentials; a real licence number may only replace the signup placeholder"""
    doctor = _own_doctor_record(session, current_profile)
    updates = doctor_data.model_dump(exclude_unset=True)

    new_license = updates.pop("license_number", None)
    if new_license and new_license != doctor.license_number:
        if not doctor.license_number.startswith("TEMP_"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="License number can only be changed by an operator"
            )
        taken = session.exec(select(Doctor).where(Doctor.license_number == new_license)).first()
        if taken:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="License number already registered"
            )
        doctor.license_number = new_license

    for key, value in updates.items():
        setattr(doctor, key, value)
    doctor.updated_at = datetime.utcnow()

    session.add(doctor)
    session.commit()
    session.refresh(doctor)

    services.directory_cache.invalidate_verified_list()
    logger.info(f"Updated doctor record {doctor.id}, directory cache invalidated")
    return doctor


@router.get("/patients", response_model=List[ProfileSummary])
def get_my_patients(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return relationship_service.get_patients(session, current_profile)


@router.get("/requests", response_model=List[DoctorRequestResponse])
def get_pending_requests(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    """Pending requests addressed to the calling doctor, newest first"""
    return [
        DoctorRequestResponse(
            **request.model_dump(),
            patient=ProfileSummary.model_validate(patient)
        )
        for request, patient in relationship_service.get_pending_requests(session, current_profile)
    ]


@router.post("/requests/{request_id}/approve", response_model=DoctorRequestResponse)
def approve_request(
    request_id: int,
    background_tasks: BackgroundTasks,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    request, notification = relationship_service.approve_request(session, current_profile, request_id)
    if notification is not None:
        services.realtime.publish_after_response(
            background_tasks, notification.user_id, Channel.NOTIFICATIONS, notification_to_dict(notification)
        )
    return DoctorRequestResponse(**request.model_dump())


@router.post("/requests/{request_id}/reject", response_model=DoctorRequestResponse)
def reject_request(
    request_id: int,
    background_tasks: BackgroundTasks,
    rejection: Optional[DoctorRequestRejection] = None,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    reason = rejection.reason if rejection else None
    request, notification = relationship_service.reject_request(session, current_profile, request_id, reason)
    if notification is not None:
        services.realtime.publish_after_response(
            background_tasks, notification.user_id, Channel.NOTIFICATIONS, notification_to_dict(notification)
        )
    return DoctorRequestResponse(**request.model_dump())

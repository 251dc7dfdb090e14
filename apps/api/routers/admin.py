from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from datetime import datetime
from database import get_session
from models import Doctor
from schemas import DoctorResponse
from dependencies import require_operator, get_services
from services import ServiceContainer
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_operator)])


def _set_verified(session: Session, services: ServiceContainer, doctor_id: int, verified: bool) -> Doctor:
    doctor = session.get(Doctor, doctor_id)
    if not doctor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Doctor not found"
        )

    doctor.verified = verified
    doctor.updated_at = datetime.utcnow()
    session.add(doctor)
    session.commit()
    session.refresh(doctor)

    services.directory_cache.invalidate_verified_list()
    logger.info(f"Doctor {doctor_id} verified={verified} by operator")
    return doctor


@router.put("/doctors/{doctor_id}/verify", response_model=DoctorResponse)
def verify_doctor(
    doctor_id: int,
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """Mark a doctor's credentials as checked; they become visible in search"""
    return _set_verified(session, services, doctor_id, True)


@router.put("/doctors/{doctor_id}/unverify", response_model=DoctorResponse)
def unverify_doctor(
    doctor_id: int,
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    return _set_verified(session, services, doctor_id, False)

from fastapi import APIRouter, Depends, status, BackgroundTasks
from sqlmodel import Session
from database import get_session
from models import Profile
from schemas import DoctorRequestCreate, DoctorRequestResponse, DoctorWithProfile, ProfileSummary
from dependencies import get_current_profile, get_services
from services import ServiceContainer, Channel
from services import relationship_service
from routers.doctors import doctor_entry
from utils.notification_service import notification_to_dict
from typing import List

router = APIRouter(prefix="/api/patients", tags=["Patients"])


@router.post("/doctor-requests", response_model=DoctorRequestResponse, status_code=status.HTTP_201_CREATED)
def request_doctor(
    request_data: DoctorRequestCreate,
    background_tasks: BackgroundTasks,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """Ask a doctor to take the caller on as a patient"""
    request, notification = relationship_service.create_request(
        session, current_profile, request_data.doctor_id, request_data.message
    )

    request_record = request.model_dump(mode="json")
    services.realtime.publish_after_response(
        background_tasks, request.doctor_id, Channel.PATIENT_REQUESTS, request_record
    )
    services.realtime.publish_after_response(
        background_tasks, notification.user_id, Channel.NOTIFICATIONS, notification_to_dict(notification)
    )
    return DoctorRequestResponse(**request.model_dump())


@router.get("/doctor-requests", response_model=List[DoctorRequestResponse])
def get_my_requests(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    """Every request the caller has sent, any status, newest first"""
    return [
        DoctorRequestResponse(
            **request.model_dump(),
            doctor=ProfileSummary.model_validate(doctor)
        )
        for request, doctor in relationship_service.get_patient_requests(session, current_profile)
    ]


@router.get("/doctors", response_model=List[DoctorWithProfile])
def get_my_doctors(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return [
        doctor_entry(doctor, profile)
        for doctor, profile in relationship_service.get_my_doctors(session, current_profile)
    ]

from datetime import datetime
from fastapi import APIRouter, Depends
from sqlmodel import Session
from database import get_session
from models import Profile
from schemas import ProfileResponse, ProfileUpdate
from dependencies import get_current_profile

router = APIRouter(prefix="/api/profiles", tags=["Profiles"])


@router.get("/me", response_model=ProfileResponse)
def get_my_profile(current_profile: Profile = Depends(get_current_profile)):
    return current_profile


@router.put("/me", response_model=ProfileResponse)
def update_my_profile(
    profile_data: ProfileUpdate,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    """Owner-only edit; role and email are not editable here"""
    for key, value in profile_data.model_dump(exclude_unset=True).items():
        if hasattr(value, "value"):
            value = value.value
        setattr(current_profile, key, value)
    current_profile.updated_at = datetime.utcnow()

    session.add(current_profile)
    session.commit()
    session.refresh(current_profile)
    return current_profile

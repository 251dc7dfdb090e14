from typing import Optional
from fastapi import Depends, HTTPException, status, Request, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session, select
from database import get_session
from models import User, Profile, UserRole
from auth import decode_token
from services import ServiceContainer

security = HTTPBearer()


def get_services(request: Request) -> ServiceContainer:
    """Shared vendor clients built in the app lifespan"""
    return request.app.state.services


def user_from_token(token: str, session: Session) -> User:
    payload = decode_token(token)

    if not payload or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )

    user_id = payload.get("sub")
    user = session.get(User, int(user_id)) if user_id else None

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )
    return user


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: Session = Depends(get_session)
) -> User:
    """Get current authenticated user"""
    user = user_from_token(credentials.credentials, session)
    request.state.user = user
    return user


def profile_for_user(user: User, session: Session) -> Profile:
    profile = session.exec(select(Profile).where(Profile.user_id == user.id)).first()
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found"
        )
    return profile


def get_current_profile(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
) -> Profile:
    """Profile of the authenticated principal; every ownership check keys on its id"""
    return profile_for_user(current_user, session)


def require_patient(current_profile: Profile = Depends(get_current_profile)) -> Profile:
    if current_profile.role != UserRole.PATIENT.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Patient access required"
        )
    return current_profile


def require_doctor(current_profile: Profile = Depends(get_current_profile)) -> Profile:
    if current_profile.role != UserRole.DOCTOR.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Doctor access required"
        )
    return current_profile


def require_operator(
    x_operator_key: Optional[str] = Header(None),
    services: ServiceContainer = Depends(get_services)
) -> None:
    """Operator-only routes; disabled entirely when OPERATOR_API_KEY is unset"""
    expected = services.settings.operator_api_key
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operator access is not configured"
        )
    if x_operator_key != expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid operator key"
        )

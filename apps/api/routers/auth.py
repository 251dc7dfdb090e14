from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlmodel import Session, select
from database import get_session
from models import User, Profile, Doctor, UserRole
from schemas import UserRegister, UserLogin, ProfileResponse, TokenResponse, TokenRefresh
from auth import get_password_hash, verify_password, create_access_token, create_refresh_token, decode_token
from dependencies import get_current_user, profile_for_user, get_services
from services import ServiceContainer
from validators.password_validator import validate_password
from rate_limit import limiter
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def placeholder_license(profile_id: int) -> str:
    return f"TEMP_{profile_id}"


def _token_response(user: User, profile: Profile) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(data={"sub": str(user.id), "role": profile.role}),
        refresh_token=create_refresh_token(data={"sub": str(user.id)}),
        profile=ProfileResponse.model_validate(profile)
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
def register(request: Request, user_data: UserRegister, session: Session = Depends(get_session)):
    """Register a principal; its profile (and doctor record) is created in the same transaction"""
    existing_user = session.exec(select(User).where(User.email == user_data.email)).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    try:
        validate_password(user_data.password)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    new_user = User(
        email=user_data.email,
        password_hash=get_password_hash(user_data.password)
    )
    session.add(new_user)
    session.flush()

    profile = Profile(
        user_id=new_user.id,
        email=user_data.email,
        full_name=user_data.full_name,
        phone=user_data.phone,
        role=user_data.role.value
    )
    session.add(profile)
    session.flush()

    if user_data.role == UserRole.DOCTOR:
        # Unverified until an operator checks the real licence
        session.add(Doctor(
            profile_id=profile.id,
            license_number=placeholder_license(profile.id),
            specialties=[],
            years_experience=0,
            languages=["English"],
            verified=False
        ))

    session.commit()
    session.refresh(new_user)
    session.refresh(profile)

    logger.info(f"Registered user {new_user.id} with role {profile.role}")
    return _token_response(new_user, profile)


@router.post("/login", response_model=TokenResponse)
@limiter.limit("5/minute")
def login(request: Request, credentials: UserLogin, session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.email == credentials.email)).first()
    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    return _token_response(user, profile_for_user(user, session))


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit("10/minute")
def refresh_token(request: Request, token_data: TokenRefresh, session: Session = Depends(get_session)):
    payload = decode_token(token_data.refresh_token)
    if not payload or payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token"
        )

    user = session.get(User, int(payload.get("sub")))
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return _token_response(user, profile_for_user(user, session))


@router.get("/me", response_model=ProfileResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return profile_for_user(current_user, session)


@router.delete("/account", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """Delete the principal; the profile and everything it owns goes with it via ON DELETE CASCADE"""
    user_id = current_user.id
    profile = session.exec(select(Profile).where(Profile.user_id == user_id)).first()
    was_doctor = profile is not None and profile.role == UserRole.DOCTOR.value

    session.delete(current_user)
    session.commit()

    if was_doctor:
        services.directory_cache.invalidate_verified_list()
    logger.info(f"User {user_id} deleted their account")

"""Chat image upload, presigned access and removal"""
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session
from database import get_session
from dependencies import require_patient, get_services
from models import Profile
from schemas import ImageUploadResponse, ImageUrlResponse
from services import ServiceContainer
from services import chat_history_service
from services.storage_service import MAX_IMAGE_BYTES

router = APIRouter(prefix="/api/storage", tags=["Storage"])


@router.post("/images", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile = File(...),
    session_id: Optional[int] = Form(None),
    current_profile: Profile = Depends(require_patient),
    db: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """Store an image under `{profileId}/{sessionId|general}/`; returns its key and content type"""
    if session_id is not None:
        chat_history_service.get_owned_session(db, current_profile, session_id)

    # One byte past the cap is enough to reject
    data = await file.read(MAX_IMAGE_BYTES + 1)
    stored = await run_in_threadpool(
        services.storage.upload_image, current_profile.id, session_id, data, file.content_type
    )
    return ImageUploadResponse(
        key=stored.key,
        url=stored.url,
        content_type=stored.content_type,
        size=stored.size
    )


@router.get("/images/url", response_model=ImageUrlResponse)
def get_image_url(
    key: str,
    current_profile: Profile = Depends(require_patient),
    services: ServiceContainer = Depends(get_services)
):
    return ImageUrlResponse(key=key, url=services.storage.get_image_url(current_profile.id, key))


@router.delete("/images/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
def delete_image(
    key: str,
    current_profile: Profile = Depends(require_patient),
    services: ServiceContainer = Depends(get_services)
):
    services.storage.delete_image(current_profile.id, key)

"""Notification inbox router"""
from fastapi import APIRouter, Depends, BackgroundTasks, Query
from sqlmodel import Session
from typing import List
from datetime import datetime
from database import get_session
from models import Profile, NotificationType
from schemas import NotificationResponse, UnreadCountResponse
from dependencies import get_current_profile, get_services
from services import ServiceContainer, Channel
from utils.notification_service import (
    DEFAULT_NOTIFICATION_LIMIT,
    count_unread,
    create_notification,
    list_notifications,
    mark_all_as_read,
    mark_as_read,
    notification_to_dict,
    render_test_notification,
)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
def get_notifications(
    limit: int = Query(DEFAULT_NOTIFICATION_LIMIT, ge=1, le=100),
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    """The caller's notifications, newest first"""
    return list_notifications(session, current_profile.id, limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return UnreadCountResponse(unread=count_unread(session, current_profile.id))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def read_notification(
    notification_id: int,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    return mark_as_read(session, current_profile.id, notification_id)


@router.post("/read-all")
def read_all_notifications(
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session)
):
    updated = mark_all_as_read(session, current_profile.id)
    return {"updated": updated}


@router.post("/test", response_model=NotificationResponse)
def send_test_notification(
    background_tasks: BackgroundTasks,
    current_profile: Profile = Depends(get_current_profile),
    session: Session = Depends(get_session),
    services: ServiceContainer = Depends(get_services)
):
    """Diagnostic: drop a system notification into the caller's own inbox"""
    notification = create_notification(
        session,
        current_profile.id,
        NotificationType.SYSTEM,
        "Test Notification",
        render_test_notification(),
        {"test": True, "timestamp": datetime.utcnow().isoformat()}
    )
    session.commit()
    session.refresh(notification)

    services.realtime.publish_after_response(
        background_tasks, current_profile.id, Channel.NOTIFICATIONS, notification_to_dict(notification)
    )
    return notification

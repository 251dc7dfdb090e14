"""In-app notification dispatch and message templates"""
import logging
from typing import Optional, Dict, Any, List
from fastapi import HTTPException, status
from sqlalchemy import update
from sqlmodel import Session, select, func
from models import Notification, NotificationType, Profile

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_LIMIT = 20


def create_notification(
    session: Session,
    target_profile_id: int,
    notification_type: NotificationType,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None
) -> Notification:
    """
    Insert an unread notification for `target_profile_id`.

    Runs inside the caller's transaction: the row is flushed, not committed,
    so it lands or rolls back together with the workflow step that caused it.
    """
    if session.get(Profile, target_profile_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Target profile not found: {target_profile_id}"
        )

    notification = Notification(
        user_id=target_profile_id,
        type=notification_type.value,
        title=title,
        message=message,
        data=data or {},
        read=False
    )
    session.add(notification)
    session.flush()

    logger.info(f"Notification {notification.id} ({notification_type.value}) queued for profile {target_profile_id}")
    return notification


def notification_to_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data or {},
        "read": notification.read,
        "created_at": notification.created_at.isoformat()
    }


def list_notifications(session: Session, profile_id: int, limit: int = DEFAULT_NOTIFICATION_LIMIT) -> List[Notification]:
    statement = (
        select(Notification)
        .where(Notification.user_id == profile_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())


def count_unread(session: Session, profile_id: int) -> int:
    statement = (
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == profile_id, Notification.read == False)  # noqa: E712
    )
    return session.exec(statement).one()


def mark_as_read(session: Session, profile_id: int, notification_id: int) -> Notification:
    notification = session.get(Notification, notification_id)
    # Another profile's notification is reported as missing
    if not notification or notification.user_id != profile_id:
        raise HTTPException(status_code=404, detail="Notification not found")

    notification.read = True
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return notification


def mark_all_as_read(session: Session, profile_id: int) -> int:
    """Mark only the caller's unread notifications; returns how many changed"""
    result = session.exec(
        update(Notification)
        .where(Notification.user_id == profile_id, Notification.read == False)  # noqa: E712
        .values(read=True)
    )
    session.commit()
    return result.rowcount


# Template rendering functions
def render_request_created(patient_name: str) -> str:
    return f"{patient_name} has requested you as their doctor."


def render_request_approved(doctor_name: str) -> str:
    return f"Dr. {doctor_name} has accepted your request to be your doctor."


def render_request_declined(doctor_name: str, reason: Optional[str] = None) -> str:
    message = f"Dr. {doctor_name} has declined your request."
    if reason:
        message += f" Reason: {reason}"
    return message


def render_report_received(patient_name: str) -> str:
    return f"{patient_name} has sent you a consultation report."


def render_report_responded(doctor_name: str) -> str:
    return f"Dr. {doctor_name} has responded to your consultation report."


def render_test_notification() -> str:
    return "This is a test notification to verify the system is working."

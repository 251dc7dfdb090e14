from typing import Optional, List, Dict, Any
from datetime import datetime, date
from sqlmodel import Field, SQLModel
from sqlalchemy import Column, String, Text, JSON, CheckConstraint, UniqueConstraint
from enum import Enum


def _check_in(column: str, enum_cls, name: str) -> CheckConstraint:
    allowed = ", ".join(f"'{member.value}'" for member in enum_cls)
    return CheckConstraint(f"{column} IN ({allowed})", name=name)


class UserRole(str, Enum):
    PATIENT = "patient"
    HEALTH_WORKER = "health-worker"
    DOCTOR = "doctor"

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class NotificationType(str, Enum):
    DOCTOR_REQUEST = "doctor_request"
    REPORT_RECEIVED = "report_received"
    APPOINTMENT_REMINDER = "appointment_reminder"
    SYSTEM = "system"

class ConsultationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

class ConsultationStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"

class ReportStatus(str, Enum):
    SENT = "sent"
    REVIEWED = "reviewed"
    RESPONDED = "responded"

class ChatMessageType(str, Enum):
    USER = "user"
    AI = "ai"

class ConversationMode(str, Enum):
    LIVE = "live"
    MOCK = "mock"
    FALLBACK = "fallback"


# ==================== IDENTITY ====================

class User(SQLModel, table=True):
    """Authentication principal"""
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Profile(SQLModel, table=True):
    """Application-level user record: role plus medical metadata"""
    __tablename__ = "profiles"
    __table_args__ = (
        _check_in("role", UserRole, "ck_profiles_role"),
        CheckConstraint("gender IS NULL OR gender IN ('male', 'female', 'other')", name="ck_profiles_gender"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, ondelete="CASCADE")
    email: str
    full_name: str
    role: str = Field(default=UserRole.PATIENT.value, sa_column=Column(String(20), nullable=False))
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(default=None, sa_column=Column(String(10)))
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_history: Optional[str] = Field(default=None, sa_column=Column(Text))
    allergies: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    current_medications: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    insurance_provider: Optional[str] = None
    insurance_number: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class Doctor(SQLModel, table=True):
    """Credential record extending a doctor profile"""
    __tablename__ = "doctors"

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profiles.id", unique=True, ondelete="CASCADE")
    license_number: str = Field(unique=True, index=True)
    specialties: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    years_experience: int = Field(default=0)
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    consultation_fee: Optional[float] = Field(default=None, ge=0)
    available_hours: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    languages: List[str] = Field(default_factory=lambda: ["English"], sa_column=Column(JSON))
    bio: Optional[str] = Field(default=None, sa_column=Column(Text))
    verified: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# ==================== REQUEST / RELATIONSHIP WORKFLOW ====================

class PatientDoctorRequest(SQLModel, table=True):
    __tablename__ = "patient_doctor_requests"
    __table_args__ = (
        UniqueConstraint("patient_id", "doctor_id", name="uq_request_patient_doctor"),
        _check_in("status", RequestStatus, "ck_request_status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    doctor_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    message: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default=RequestStatus.PENDING.value, sa_column=Column(String(20), nullable=False))
    requested_at: datetime = Field(default_factory=datetime.utcnow)
    responded_at: Optional[datetime] = None

class PatientDoctorRelationship(SQLModel, table=True):
    __tablename__ = "patient_doctor_relationships"
    __table_args__ = (
        UniqueConstraint("patient_id", "doctor_id", name="uq_relationship_patient_doctor"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    doctor_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    is_primary: bool = Field(default=False)
    established_at: datetime = Field(default_factory=datetime.utcnow)


# ==================== NOTIFICATIONS ====================

class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (
        _check_in("type", NotificationType, "ck_notification_type"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    type: str = Field(sa_column=Column(String(30), nullable=False))
    title: str
    message: str = Field(sa_column=Column(Text, nullable=False))
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


# ==================== AI CONSULTATIONS ====================

class AIConsultation(SQLModel, table=True):
    __tablename__ = "ai_consultations"
    __table_args__ = (
        _check_in("priority", ConsultationPriority, "ck_consultation_priority"),
        _check_in("status", ConsultationStatus, "ck_consultation_status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    session_id: str
    messages: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    ai_analysis: Optional[str] = Field(default=None, sa_column=Column(Text))
    symptoms: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    vital_signs: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    images: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    priority: str = Field(default=ConsultationPriority.NORMAL.value, sa_column=Column(String(20), nullable=False))
    status: str = Field(default=ConsultationStatus.ACTIVE.value, sa_column=Column(String(20), nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class ConsultationReport(SQLModel, table=True):
    __tablename__ = "consultation_reports"
    __table_args__ = (
        _check_in("status", ReportStatus, "ck_report_status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    consultation_id: int = Field(foreign_key="ai_consultations.id", ondelete="CASCADE")
    patient_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    doctor_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    report_data: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    patient_message: Optional[str] = Field(default=None, sa_column=Column(Text))
    doctor_response: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default=ReportStatus.SENT.value, sa_column=Column(String(20), nullable=False))
    sent_at: datetime = Field(default_factory=datetime.utcnow)
    reviewed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


# ==================== CHAT HISTORY ====================

class ChatSession(SQLModel, table=True):
    __tablename__ = "chat_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    session_name: str
    last_message_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class ChatSessionMessage(SQLModel, table=True):
    """One entry of a session's append-only message log; order is insertion order"""
    __tablename__ = "chat_session_messages"
    __table_args__ = (
        _check_in("type", ChatMessageType, "ck_chat_message_type"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="chat_sessions.id", index=True, ondelete="CASCADE")
    message_id: str
    type: str = Field(sa_column=Column(String(10), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    audio_url: Optional[str] = None
    image_url: Optional[str] = None
    image_content_type: Optional[str] = None
    is_voice_message: bool = Field(default=False)


# ==================== VIDEO CONSULTATION ====================

class VideoConsultation(SQLModel, table=True):
    __tablename__ = "video_consultations"
    __table_args__ = (
        _check_in("mode", ConversationMode, "ck_video_mode"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="profiles.id", index=True, ondelete="CASCADE")
    conversation_id: str = Field(unique=True, index=True)
    mode: str = Field(sa_column=Column(String(10), nullable=False))
    conversation_url: Optional[str] = None
    status: str = Field(default="active", sa_column=Column(String(20)))
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None

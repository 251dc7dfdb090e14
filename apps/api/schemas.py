from typing import Optional, List, Dict, Any
from pydantic import BaseModel, EmailStr, Field, field_validator
from models import UserRole, Gender, ChatMessageType, ConsultationPriority, ConsultationStatus
from datetime import datetime, date

def _not_null(value):
    """Optional in a partial update, but the column itself is NOT NULL"""
    if value is None:
        raise ValueError("may be omitted but not null")
    return value

# Request schemas
class UserRegister(BaseModel):
    email: EmailStr
    password: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole = UserRole.PATIENT

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class TokenRefresh(BaseModel):
    refresh_token: str

# Profile schemas
class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_history: Optional[str] = None
    allergies: Optional[List[str]] = None
    current_medications: Optional[List[str]] = None
    insurance_provider: Optional[str] = None
    insurance_number: Optional[str] = None
    avatar_url: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def full_name_not_null(cls, value):
        return _not_null(value)

class ProfileResponse(BaseModel):
    id: int
    user_id: int
    email: str
    full_name: str
    role: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_history: Optional[str] = None
    allergies: Optional[List[str]] = None
    current_medications: Optional[List[str]] = None
    insurance_provider: Optional[str] = None
    insurance_number: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class ProfileSummary(BaseModel):
    id: int
    email: str
    full_name: str
    role: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    profile: ProfileResponse

# Doctor schemas
class DoctorUpdate(BaseModel):
    license_number: Optional[str] = None
    specialties: Optional[List[str]] = None
    years_experience: Optional[int] = Field(default=None, ge=0)
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    consultation_fee: Optional[float] = Field(default=None, ge=0)
    available_hours: Optional[Dict[str, Any]] = None
    languages: Optional[List[str]] = None
    bio: Optional[str] = None

    @field_validator("license_number", "specialties", "years_experience")
    @classmethod
    def required_not_null(cls, value):
        return _not_null(value)

class DoctorResponse(BaseModel):
    id: int
    profile_id: int
    license_number: str
    specialties: List[str] = []
    years_experience: int
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    consultation_fee: Optional[float] = None
    available_hours: Dict[str, Any] = {}
    languages: List[str] = []
    bio: Optional[str] = None
    verified: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class DoctorWithProfile(DoctorResponse):
    profile: ProfileSummary

# Request / relationship workflow schemas
class DoctorRequestCreate(BaseModel):
    doctor_id: int
    message: Optional[str] = None

class DoctorRequestRejection(BaseModel):
    reason: Optional[str] = None

class DoctorRequestResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    message: Optional[str] = None
    status: str
    requested_at: datetime
    responded_at: Optional[datetime] = None
    patient: Optional[ProfileSummary] = None
    doctor: Optional[ProfileSummary] = None

    class Config:
        from_attributes = True

# Notification schemas
class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    data: Dict[str, Any] = {}
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True

class UnreadCountResponse(BaseModel):
    unread: int

# Chat history schemas
class ChatSessionCreate(BaseModel):
    session_name: Optional[str] = None

class ChatSessionRename(BaseModel):
    session_name: str = Field(min_length=1, max_length=200)

class ChatMessageCreate(BaseModel):
    message_id: Optional[str] = None
    type: ChatMessageType
    content: str
    timestamp: Optional[datetime] = None
    audio_url: Optional[str] = None
    image_url: Optional[str] = None
    image_content_type: Optional[str] = None
    is_voice_message: bool = False

class ChatMessageResponse(BaseModel):
    id: int
    message_id: str
    type: str
    content: str
    timestamp: datetime
    audio_url: Optional[str] = None
    image_url: Optional[str] = None
    image_content_type: Optional[str] = None
    is_voice_message: bool = False

    class Config:
        from_attributes = True

class ChatSessionResponse(BaseModel):
    id: int
    patient_id: int
    session_name: str
    last_message_at: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class ChatSessionDetail(ChatSessionResponse):
    messages: List[ChatMessageResponse] = []

# Assistant schemas
class AssistantChatRequest(BaseModel):
    message: str = Field(min_length=1)
    session_id: Optional[int] = None
    image_key: Optional[str] = None
    is_voice_message: bool = False
    voice_reply: bool = False

class AssistantChatResponse(BaseModel):
    session_id: int
    user_message: ChatMessageResponse
    ai_message: ChatMessageResponse
    audio_base64: Optional[str] = None

class TranscriptionResponse(BaseModel):
    text: str

# Storage schemas
class ImageUploadResponse(BaseModel):
    key: str
    url: str
    content_type: str
    size: int

class ImageUrlResponse(BaseModel):
    key: str
    url: str

# Consultation schemas
class ConsultationCreate(BaseModel):
    session_id: str

class ConsultationUpdate(BaseModel):
    messages: Optional[List[Dict[str, Any]]] = None
    ai_analysis: Optional[str] = None
    symptoms: Optional[List[str]] = None
    vital_signs: Optional[Dict[str, Any]] = None
    images: Optional[List[str]] = None
    priority: Optional[ConsultationPriority] = None
    status: Optional[ConsultationStatus] = None

    @field_validator("messages", "priority", "status")
    @classmethod
    def required_not_null(cls, value):
        return _not_null(value)

class ConsultationResponse(BaseModel):
    id: int
    patient_id: int
    session_id: str
    messages: List[Dict[str, Any]] = []
    ai_analysis: Optional[str] = None
    symptoms: Optional[List[str]] = None
    vital_signs: Optional[Dict[str, Any]] = None
    images: Optional[List[str]] = None
    priority: str
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class ReportCreate(BaseModel):
    consultation_id: int
    doctor_id: int
    message: Optional[str] = None

class ReportReply(BaseModel):
    response: str = Field(min_length=1)

class ReportResponse(BaseModel):
    id: int
    consultation_id: int
    patient_id: int
    doctor_id: int
    report_data: Dict[str, Any]
    patient_message: Optional[str] = None
    doctor_response: Optional[str] = None
    status: str
    sent_at: datetime
    reviewed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Video consultation schemas
class VideoConversationCreate(BaseModel):
    camera_granted: bool
    microphone_granted: bool

class VideoConversationResponse(BaseModel):
    id: int
    conversation_id: str
    mode: str
    conversation_url: Optional[str] = None
    status: str
    started_at: datetime
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class VideoMessage(BaseModel):
    message: str = Field(min_length=1)

class VideoStatusResponse(BaseModel):
    conversation_id: str
    mode: str
    status: str

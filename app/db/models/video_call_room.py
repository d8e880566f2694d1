from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow
from .enums import VideoCallStatus

class VideoCallRoom(SQLModel, table=True):
    """One row per appointment, kept after the call ends as call history."""
    __tablename__ = "video_call_rooms"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    appointment_id: UUID = Field(foreign_key="appointments.id", unique=True, index=True)
    room_id: str = Field(unique=True, index=True)
    status: VideoCallStatus = Field(default=VideoCallStatus.WAITING)
    practitioner_joined: bool = Field(default=False)
    patient_joined: bool = Field(default=False)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

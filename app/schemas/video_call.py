from datetime import datetime
from typing import Optional
from uuid import UUID

from app.db.models.enums import VideoCallStatus
from app.schemas.common import CamelModel
from app.schemas.user import PersonSummary

class RoomCreatedResponse(CamelModel):
    room_id: str

class RoomAppointmentSummary(CamelModel):
    id: UUID
    scheduled_date: datetime
    patient: PersonSummary
    practitioner: PersonSummary

class VideoCallRoomResponse(CamelModel):
    id: UUID
    room_id: str
    appointment_id: UUID
    status: VideoCallStatus
    practitioner_joined: bool
    patient_joined: bool
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    appointment: RoomAppointmentSummary

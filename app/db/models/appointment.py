from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from app.core.utils import utcnow
from .enums import AppointmentStatus, AppointmentType

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    practitioner_id: UUID = Field(foreign_key="users.id", index=True)
    patient_id: UUID = Field(foreign_key="users.id", index=True)
    appointment_date_time: datetime = Field(index=True) # naive UTC
    duration_in_minutes: int
    type: AppointmentType
    status: AppointmentStatus = Field(default=AppointmentStatus.PENDING_PATIENT_CONFIRMATION)
    notes: Optional[str] = None
    patient_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def end_date_time(self) -> datetime:
        return self.appointment_date_time + timedelta(minutes=self.duration_in_minutes)

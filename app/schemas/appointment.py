from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.core.utils import to_naive_utc
from app.db.models.enums import AppointmentStatus, AppointmentType
from app.schemas.common import CamelModel
from app.schemas.user import PersonSummary

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

class AppointmentOutcome(str, Enum):
    COMPLETED = AppointmentStatus.COMPLETED.value
    NO_SHOW = AppointmentStatus.NO_SHOW.value

class AvailabilityResponse(CamelModel):
    is_available: bool

class AppointmentCreate(CamelModel):
    patient_id: UUID
    appointment_date_time: datetime
    duration_in_minutes: int = Field(default=30, ge=1)
    type: AppointmentType
    notes: Optional[str] = None

    @field_validator("appointment_date_time")
    @classmethod
    def normalize_date_time(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

class AppointmentUpdate(CamelModel):
    """Partial update; only fields present in the request body are applied."""
    appointment_date_time: Optional[datetime] = None
    duration_in_minutes: Optional[int] = Field(default=None, ge=1)
    type: Optional[AppointmentType] = None
    notes: Optional[str] = None

    @field_validator("appointment_date_time")
    @classmethod
    def normalize_date_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value) if value is not None else None

class AppointmentRespond(CamelModel):
    accepted: bool
    message: Optional[str] = None

class AppointmentNotesUpdate(CamelModel):
    notes: str = Field(min_length=1, max_length=2000)

class AppointmentOutcomeUpdate(CamelModel):
    outcome: AppointmentOutcome

class AppointmentResponse(CamelModel):
    id: UUID
    practitioner_id: UUID
    patient_id: UUID
    appointment_date_time: datetime
    duration_in_minutes: int
    type: AppointmentType
    status: AppointmentStatus
    notes: Optional[str] = None
    patient_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class AppointmentListItem(AppointmentResponse):
    patient: Optional[PersonSummary] = None
    practitioner: Optional[PersonSummary] = None

class AppointmentDatesResponse(CamelModel):
    dates: list[date]

from sqlmodel import SQLModel, Field
from datetime import datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow

class Patient(SQLModel, table=True):
    """Links a patient's user account to the practitioner treating them."""
    __tablename__ = "patients"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    app_user_id: UUID = Field(foreign_key="users.id", unique=True, index=True)
    practitioner_id: UUID = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)

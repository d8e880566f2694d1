from sqlmodel import SQLModel, Field
from datetime import datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow
from .enums import UserRole

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    role: UserRole
    first_name: str
    last_name: str
    email: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)

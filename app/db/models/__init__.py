from sqlmodel import SQLModel
from .enums import AppointmentStatus, AppointmentType, UserRole, VideoCallStatus
from .user import User
from .patient import Patient
from .appointment import Appointment
from .video_call_room import VideoCallRoom

__all__ = [
    "SQLModel",
    "AppointmentStatus",
    "AppointmentType",
    "UserRole",
    "VideoCallStatus",
    "User",
    "Patient",
    "Appointment",
    "VideoCallRoom",
]

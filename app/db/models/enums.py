from enum import Enum


class UserRole(str, Enum):
    ADMIN = "Admin"
    PRACTITIONER = "Practitioner"
    PATIENT = "Patient"


class AppointmentType(str, Enum):
    IN_PERSON = "InPerson"
    REMOTE = "Remote"


class AppointmentStatus(str, Enum):
    PENDING_PATIENT_CONFIRMATION = "PendingPatientConfirmation"
    SCHEDULED = "Scheduled"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    NO_SHOW = "NoShow"


class VideoCallStatus(str, Enum):
    WAITING = "Waiting"
    IN_PROGRESS = "InProgress"
    ENDED = "Ended"

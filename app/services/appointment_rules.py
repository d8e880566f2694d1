from typing import Iterable

from app.core.exceptions import ForbiddenError
from app.db.models import AppointmentStatus

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.CANCELLED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
})

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING_PATIENT_CONFIRMATION: frozenset({
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.PENDING_PATIENT_CONFIRMATION,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

# Fields whose presence in an edit invalidates the patient's prior confirmation
CONFIRMATION_FIELDS = frozenset({
    "appointment_date_time",
    "duration_in_minutes",
    "type",
    "notes",
})


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    if not can_transition(current, target):
        raise ForbiddenError(
            f"Cannot move an appointment from '{current.value}' to '{target.value}'."
        )


def ensure_mutable(current: AppointmentStatus) -> None:
    if current in TERMINAL_STATUSES:
        raise ForbiddenError(
            f"Cannot update an appointment with '{current.value}' status."
        )


def status_after_edit(current: AppointmentStatus, patched_fields: Iterable[str]) -> AppointmentStatus:
    """Status an appointment takes once a practitioner edit is applied.

    Any edit to a Scheduled appointment sends it back for patient confirmation,
    even when the submitted values match the stored ones; every other status
    is kept. An empty patch keeps the status.
    """
    if current == AppointmentStatus.SCHEDULED and CONFIRMATION_FIELDS.intersection(patched_fields):
        return AppointmentStatus.PENDING_PATIENT_CONFIRMATION
    return current

"""
Half-open interval overlap checks for a practitioner's booked slots.

An appointment occupies [start, start + duration). Two slots conflict only when
they share at least one instant, so a slot ending at 10:00 and one starting at
10:00 never conflict. Cancelled appointments never occupy a slot.
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.db.models import Appointment, AppointmentStatus


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    return start_a < end_b and end_a > start_b


def find_conflict(
    candidates: Iterable[Appointment],
    proposed_start: datetime,
    duration_minutes: int,
    exclude_appointment_id: Optional[UUID] = None,
) -> Optional[Appointment]:
    """Return the first candidate overlapping the proposed slot, if any.

    Duration must already be validated as positive by the caller.
    """
    proposed_end = proposed_start + timedelta(minutes=duration_minutes)
    for candidate in candidates:
        if candidate.status == AppointmentStatus.CANCELLED:
            continue
        if exclude_appointment_id is not None and candidate.id == exclude_appointment_id:
            continue
        if intervals_overlap(
            proposed_start, proposed_end,
            candidate.appointment_date_time, candidate.end_date_time,
        ):
            return candidate
    return None


async def is_time_slot_taken(
    session: AsyncSession,
    practitioner_id: UUID,
    proposed_start: datetime,
    duration_minutes: int,
    exclude_appointment_id: Optional[UUID] = None,
) -> bool:
    proposed_end = proposed_start + timedelta(minutes=duration_minutes)

    # Only appointments starting before the proposed end can overlap; the exact
    # check happens in memory.
    stmt = select(Appointment).where(
        Appointment.practitioner_id == practitioner_id,
        Appointment.status != AppointmentStatus.CANCELLED,
        Appointment.appointment_date_time < proposed_end,
    )
    if exclude_appointment_id is not None:
        stmt = stmt.where(Appointment.id != exclude_appointment_id)

    result = await session.execute(stmt)
    candidates = result.scalars().all()
    return find_conflict(candidates, proposed_start, duration_minutes, exclude_appointment_id) is not None

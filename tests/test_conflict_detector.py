from uuid import uuid4

import pytest

from app.db.models import Appointment, AppointmentStatus, AppointmentType
from app.services.conflict_detector import find_conflict, intervals_overlap, is_time_slot_taken
from conftest import at, make_appointment


def build(start, duration=30, status=AppointmentStatus.SCHEDULED) -> Appointment:
    return Appointment(
        id=uuid4(),
        practitioner_id=uuid4(),
        patient_id=uuid4(),
        appointment_date_time=start,
        duration_in_minutes=duration,
        type=AppointmentType.IN_PERSON,
        status=status,
    )


def test_touching_intervals_do_not_overlap() -> None:
    assert not intervals_overlap(at(9), at(9, 30), at(9, 30), at(10))
    assert not intervals_overlap(at(9, 30), at(10), at(9), at(9, 30))


def test_partial_and_nested_intervals_overlap() -> None:
    assert intervals_overlap(at(9), at(10), at(9, 30), at(9, 45))
    assert intervals_overlap(at(9, 15), at(9, 45), at(9), at(9, 30))
    assert intervals_overlap(at(9), at(9, 30), at(9), at(9, 30))


def test_find_conflict_returns_overlapping_candidate() -> None:
    existing = build(at(9), 60)

    assert find_conflict([existing], at(9, 30), 15) is existing


def test_find_conflict_ignores_adjacent_slots() -> None:
    assert find_conflict([build(at(9), 30)], at(9, 30), 30) is None


def test_find_conflict_ignores_cancelled_appointments() -> None:
    cancelled = build(at(9), 60, status=AppointmentStatus.CANCELLED)

    assert find_conflict([cancelled], at(9), 30) is None


def test_find_conflict_skips_excluded_appointment() -> None:
    existing = build(at(9), 30)

    assert find_conflict([existing], at(9), 30, exclude_appointment_id=existing.id) is None


@pytest.mark.asyncio
async def test_availability_scenario(session, practitioner, patient) -> None:
    await make_appointment(session, practitioner, patient, at(9), 30)

    assert await is_time_slot_taken(session, practitioner.id, at(9, 15), 30)
    assert not await is_time_slot_taken(session, practitioner.id, at(9, 30), 30)


@pytest.mark.asyncio
async def test_other_practitioners_do_not_conflict(session, practitioner, other_practitioner, patient) -> None:
    await make_appointment(session, practitioner, patient, at(9), 60)

    assert not await is_time_slot_taken(session, other_practitioner.id, at(9), 60)


@pytest.mark.asyncio
async def test_later_appointments_are_not_candidates(session, practitioner, patient) -> None:
    await make_appointment(session, practitioner, patient, at(11), 30)

    assert not await is_time_slot_taken(session, practitioner.id, at(10), 60)
    assert await is_time_slot_taken(session, practitioner.id, at(10), 61)

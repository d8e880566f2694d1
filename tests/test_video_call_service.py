from uuid import uuid4

import pytest
import pytest_asyncio
from sqlmodel import select

from app.core.exceptions import ForbiddenError, NotFoundError
from app.db.models import AppointmentType, VideoCallRoom, VideoCallStatus
from app.services.video_call_service import VideoCallService
from conftest import at, make_appointment


@pytest_asyncio.fixture
async def remote_appointment(session, practitioner, patient):
    return await make_appointment(session, practitioner, patient, at(9), type=AppointmentType.REMOTE)


async def load_room(session, room_id: str) -> VideoCallRoom:
    stmt = (
        select(VideoCallRoom)
        .where(VideoCallRoom.room_id == room_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalars().one()


@pytest.mark.asyncio
async def test_room_creation_is_idempotent(session, remote_appointment) -> None:
    service = VideoCallService(session)

    first = await service.create_room_for_appointment(remote_appointment.id)
    second = await service.create_room_for_appointment(remote_appointment.id)

    assert first == second
    assert first.startswith("room_")
    room = await load_room(session, first)
    assert room.status == VideoCallStatus.WAITING


@pytest.mark.asyncio
async def test_room_for_missing_appointment_is_not_found(session) -> None:
    with pytest.raises(NotFoundError):
        await VideoCallService(session).create_room_for_appointment(uuid4())


@pytest.mark.asyncio
async def test_only_participants_can_join(session, remote_appointment, practitioner, patient, outsider) -> None:
    service = VideoCallService(session)
    room_id = await service.create_room_for_appointment(remote_appointment.id)

    assert await service.can_user_join_room(room_id, practitioner.id)
    assert await service.can_user_join_room(room_id, patient.id)
    assert not await service.can_user_join_room(room_id, outsider.id)
    assert not await service.can_user_join_room("room_missing", practitioner.id)


@pytest.mark.asyncio
async def test_call_starts_once_both_participants_join(session, remote_appointment, practitioner, patient) -> None:
    practitioner_id, patient_id = practitioner.id, patient.id
    service = VideoCallService(session)
    room_id = await service.create_room_for_appointment(remote_appointment.id)

    assert await service.user_joined_room(room_id, practitioner_id) == VideoCallStatus.WAITING
    room = await load_room(session, room_id)
    assert room.practitioner_joined and not room.patient_joined
    assert room.started_at is None

    assert await service.user_joined_room(room_id, patient_id) == VideoCallStatus.IN_PROGRESS
    room = await load_room(session, room_id)
    assert room.practitioner_joined and room.patient_joined
    assert room.started_at is not None


@pytest.mark.asyncio
async def test_leaving_keeps_status(session, remote_appointment, practitioner, patient) -> None:
    practitioner_id, patient_id = practitioner.id, patient.id
    service = VideoCallService(session)
    room_id = await service.create_room_for_appointment(remote_appointment.id)
    await service.user_joined_room(room_id, practitioner_id)
    await service.user_joined_room(room_id, patient_id)

    await service.user_left_room(room_id, patient_id)

    room = await load_room(session, room_id)
    assert room.status == VideoCallStatus.IN_PROGRESS
    assert room.practitioner_joined and not room.patient_joined


@pytest.mark.asyncio
async def test_end_call_is_terminal(session, remote_appointment, practitioner, patient) -> None:
    appointment_id = remote_appointment.id
    practitioner_id, patient_id = practitioner.id, patient.id
    service = VideoCallService(session)
    room_id = await service.create_room_for_appointment(appointment_id)
    await service.user_joined_room(room_id, practitioner_id)
    await service.user_joined_room(room_id, patient_id)

    await service.end_call(room_id)
    assert await service.user_joined_room(room_id, patient_id) == VideoCallStatus.ENDED

    room = await load_room(session, room_id)
    assert room.status == VideoCallStatus.ENDED
    assert room.ended_at is not None
    assert not room.practitioner_joined and not room.patient_joined
    assert await service.create_room_for_appointment(appointment_id) == room_id


@pytest.mark.asyncio
async def test_ending_an_ended_call_keeps_its_end_time(session, remote_appointment) -> None:
    service = VideoCallService(session)
    room_id = await service.create_room_for_appointment(remote_appointment.id)
    await service.end_call(room_id)
    ended_at = (await load_room(session, room_id)).ended_at

    await service.end_call(room_id)

    room = await load_room(session, room_id)
    assert room.status == VideoCallStatus.ENDED
    assert room.ended_at == ended_at


@pytest.mark.asyncio
async def test_only_participants_can_create_a_room(session, remote_appointment, patient, outsider) -> None:
    service = VideoCallService(session)

    with pytest.raises(ForbiddenError):
        await service.create_room_as(remote_appointment.id, outsider.id)
    with pytest.raises(NotFoundError):
        await service.create_room_as(uuid4(), patient.id)

    room_id = await service.create_room_as(remote_appointment.id, patient.id)
    assert room_id.startswith("room_")


@pytest.mark.asyncio
async def test_room_projection_authorization(session, remote_appointment, patient, outsider) -> None:
    service = VideoCallService(session)

    with pytest.raises(NotFoundError):
        await service.get_room_by_appointment_id(remote_appointment.id, patient.id)

    room_id = await service.create_room_for_appointment(remote_appointment.id)
    projection = await service.get_room_by_appointment_id(remote_appointment.id, patient.id)
    assert projection.room_id == room_id
    assert projection.appointment.patient.first_name == "Carol"
    assert projection.appointment.practitioner.first_name == "Alice"

    with pytest.raises(ForbiddenError):
        await service.get_room_by_appointment_id(remote_appointment.id, outsider.id)


@pytest.mark.asyncio
async def test_room_endpoints(client, acting, remote_appointment, practitioner, patient) -> None:
    acting["user"] = practitioner
    created = await client.post(f"/api/v1/video-call/room/appointment/{remote_appointment.id}/create")
    assert created.status_code == 200
    room_id = created.json()["roomId"]

    acting["user"] = patient
    fetched = await client.get(f"/api/v1/video-call/room/appointment/{remote_appointment.id}")
    assert fetched.status_code == 200
    assert fetched.json()["status"] == "Waiting"

    ended = await client.post(f"/api/v1/video-call/room/{room_id}/end")
    assert ended.status_code == 204


@pytest.mark.asyncio
async def test_room_creation_endpoint_rejects_outsiders(client, acting, remote_appointment, outsider) -> None:
    acting["user"] = outsider
    response = await client.post(f"/api/v1/video-call/room/appointment/{remote_appointment.id}/create")

    assert response.status_code == 403

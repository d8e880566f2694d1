"""
Video call room lifecycle: Waiting -> InProgress -> Ended.

The persisted room row is the source of truth. Join and leave touch only the
caller's own flag, so concurrent joins by the two participants never write the
same column, and the Waiting -> InProgress transition is a conditional UPDATE
evaluated against the flags as they are after the join was written.
"""
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.logger import logger
from app.core.utils import generate_room_id, utcnow
from app.db.models import Appointment, User, VideoCallRoom, VideoCallStatus
from app.schemas.user import PersonSummary
from app.schemas.video_call import RoomAppointmentSummary, VideoCallRoomResponse


class VideoCallService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_room(self, room_id: str) -> Optional[VideoCallRoom]:
        stmt = (
            select(VideoCallRoom)
            .where(VideoCallRoom.room_id == room_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_room_with_appointment(self, room_id: str) -> Tuple[Optional[VideoCallRoom], Optional[Appointment]]:
        stmt = (
            select(VideoCallRoom, Appointment)
            .join(Appointment, Appointment.id == VideoCallRoom.appointment_id)
            .where(VideoCallRoom.room_id == room_id)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if not row:
            return None, None
        return row[0], row[1]

    async def create_room_for_appointment(self, appointment_id: UUID) -> str:
        stmt = select(VideoCallRoom).where(VideoCallRoom.appointment_id == appointment_id)
        result = await self.session.execute(stmt)
        existing = result.scalars().first()
        if existing:
            return existing.room_id

        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")

        room = VideoCallRoom(
            appointment_id=appointment_id,
            room_id=generate_room_id(),
            status=VideoCallStatus.WAITING,
        )
        self.session.add(room)
        try:
            await self.session.commit()
        except IntegrityError:
            # Another request created the room first
            await self.session.rollback()
            result = await self.session.execute(stmt)
            return result.scalars().one().room_id

        logger.info(f"Video room {room.room_id} created for appointment {appointment_id}")
        return room.room_id

    async def create_room_as(self, appointment_id: UUID, user_id: UUID) -> str:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        if user_id not in (appointment.practitioner_id, appointment.patient_id):
            raise ForbiddenError("Not authorized to access this appointment")
        return await self.create_room_for_appointment(appointment_id)

    async def can_user_join_room(self, room_id: str, user_id: UUID) -> bool:
        room, appointment = await self.get_room_with_appointment(room_id)
        if not room:
            return False
        return user_id in (appointment.practitioner_id, appointment.patient_id)

    async def user_joined_room(self, room_id: str, user_id: UUID) -> VideoCallStatus:
        room, appointment = await self.get_room_with_appointment(room_id)
        if not room:
            raise NotFoundError("Room not found")
        if room.status == VideoCallStatus.ENDED:
            return room.status

        now = utcnow()
        if user_id == appointment.practitioner_id:
            values = {"practitioner_joined": True}
        elif user_id == appointment.patient_id:
            values = {"patient_joined": True}
        else:
            return room.status

        await self.session.execute(
            update(VideoCallRoom)
            .where(VideoCallRoom.room_id == room_id, VideoCallRoom.status != VideoCallStatus.ENDED)
            .values(updated_at=now, **values)
        )
        started = await self.session.execute(
            update(VideoCallRoom)
            .where(
                VideoCallRoom.room_id == room_id,
                VideoCallRoom.status == VideoCallStatus.WAITING,
                VideoCallRoom.practitioner_joined == True,
                VideoCallRoom.patient_joined == True,
            )
            .values(status=VideoCallStatus.IN_PROGRESS, started_at=now)
        )
        await self.session.commit()

        if started.rowcount:
            logger.info(f"Call started in room {room_id}")
        await self.session.refresh(room)
        return room.status

    async def user_left_room(self, room_id: str, user_id: UUID) -> None:
        # Status is left alone; only end_call moves a room to Ended.
        room, appointment = await self.get_room_with_appointment(room_id)
        if not room or room.status == VideoCallStatus.ENDED:
            return

        if user_id == appointment.practitioner_id:
            values = {"practitioner_joined": False}
        elif user_id == appointment.patient_id:
            values = {"patient_joined": False}
        else:
            return

        await self.session.execute(
            update(VideoCallRoom)
            .where(VideoCallRoom.room_id == room_id, VideoCallRoom.status != VideoCallStatus.ENDED)
            .values(updated_at=utcnow(), **values)
        )
        await self.session.commit()

    async def end_call(self, room_id: str) -> None:
        room = await self.get_room(room_id)
        if not room:
            raise NotFoundError("Room not found")
        if room.status == VideoCallStatus.ENDED:
            return

        now = utcnow()
        room.status = VideoCallStatus.ENDED
        room.ended_at = now
        room.updated_at = now
        room.practitioner_joined = False
        room.patient_joined = False
        self.session.add(room)
        await self.session.commit()
        logger.info(f"Call ended in room {room_id}")

    async def end_call_as(self, room_id: str, user_id: UUID) -> None:
        if not await self.can_user_join_room(room_id, user_id):
            if not await self.get_room(room_id):
                raise NotFoundError("Room not found")
            raise ForbiddenError("Not authorized to access this room")
        await self.end_call(room_id)

    async def get_room_by_appointment_id(self, appointment_id: UUID, user_id: UUID) -> VideoCallRoomResponse:
        stmt = (
            select(VideoCallRoom, Appointment)
            .join(Appointment, Appointment.id == VideoCallRoom.appointment_id)
            .where(VideoCallRoom.appointment_id == appointment_id)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if not row:
            raise NotFoundError("Room not found for this appointment")
        room, appointment = row[0], row[1]

        if user_id not in (appointment.practitioner_id, appointment.patient_id):
            raise ForbiddenError("Not authorized to access this room")

        patient = await self.session.get(User, appointment.patient_id)
        practitioner = await self.session.get(User, appointment.practitioner_id)

        return VideoCallRoomResponse(
            id=room.id,
            room_id=room.room_id,
            appointment_id=room.appointment_id,
            status=room.status,
            practitioner_joined=room.practitioner_joined,
            patient_joined=room.patient_joined,
            started_at=room.started_at,
            ended_at=room.ended_at,
            appointment=RoomAppointmentSummary(
                id=appointment.id,
                scheduled_date=appointment.appointment_date_time,
                patient=PersonSummary.model_validate(patient),
                practitioner=PersonSummary.model_validate(practitioner),
            ),
        )

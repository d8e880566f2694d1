import math
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from app.core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.logger import logger
from app.core.utils import to_naive_utc, utcnow
from app.db.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    Patient,
    User,
    UserRole,
)
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentDatesResponse,
    AppointmentListItem,
    AppointmentOutcome,
    AppointmentRespond,
    AppointmentUpdate,
    AvailabilityResponse,
    SortOrder,
)
from app.schemas.common import Page, PageMeta
from app.schemas.user import PersonSummary
from app.services.appointment_rules import (
    ensure_mutable,
    ensure_transition,
    status_after_edit,
)
from app.services.conflict_detector import is_time_slot_taken
from app.services.video_call_service import VideoCallService

# Patch fields that cannot be cleared by sending null
REQUIRED_PATCH_FIELDS = ("appointment_date_time", "duration_in_minutes", "type")


class AppointmentService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_practitioner(self, practitioner_id: UUID) -> None:
        # Serializes concurrent bookings for one practitioner between the
        # conflict check and the write. SQLite ignores FOR UPDATE.
        stmt = select(User).where(User.id == practitioner_id).with_for_update()
        await self.session.execute(stmt)

    async def get_owned_appointment(self, appointment_id: UUID, practitioner_id: UUID) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment or appointment.practitioner_id != practitioner_id:
            raise NotFoundError("Appointment not found or you do not have permission to edit it.")
        return appointment

    async def check_availability(
        self, practitioner_id: UUID, date_time: datetime, duration_in_minutes: int
    ) -> AvailabilityResponse:
        if duration_in_minutes < 1:
            raise BadRequestError("durationInMinutes must be at least 1.")
        taken = await is_time_slot_taken(
            self.session, practitioner_id, to_naive_utc(date_time), duration_in_minutes
        )
        return AvailabilityResponse(is_available=not taken)

    async def create_appointment(self, practitioner_id: UUID, data: AppointmentCreate) -> Appointment:
        # 1. Patient must be under this practitioner's care
        stmt = select(Patient).where(
            Patient.app_user_id == data.patient_id,
            Patient.practitioner_id == practitioner_id,
        )
        result = await self.session.execute(stmt)
        if not result.scalars().first():
            raise NotFoundError("Patient not found or does not belong to this practitioner.")

        # 2. Re-check the slot inside this transaction
        await self.lock_practitioner(practitioner_id)
        if await is_time_slot_taken(
            self.session, practitioner_id, data.appointment_date_time, data.duration_in_minutes
        ):
            raise ConflictError("This time slot is already booked. Please choose another time.")

        # 3. Persist
        appointment = Appointment(
            practitioner_id=practitioner_id,
            patient_id=data.patient_id,
            appointment_date_time=data.appointment_date_time,
            duration_in_minutes=data.duration_in_minutes,
            type=data.type,
            notes=data.notes,
            status=AppointmentStatus.PENDING_PATIENT_CONFIRMATION,
        )
        self.session.add(appointment)
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(
            f"Appointment {appointment.id} created for practitioner {practitioner_id} "
            f"at {appointment.appointment_date_time.isoformat()}"
        )

        if appointment.type == AppointmentType.REMOTE:
            await VideoCallService(self.session).create_room_for_appointment(appointment.id)

        return appointment

    async def update_appointment(
        self, practitioner_id: UUID, appointment_id: UUID, patch: AppointmentUpdate
    ) -> Appointment:
        await self.lock_practitioner(practitioner_id)
        appointment = await self.get_owned_appointment(appointment_id, practitioner_id)
        ensure_mutable(appointment.status)

        update_data = patch.model_dump(exclude_unset=True)
        for key in REQUIRED_PATCH_FIELDS:
            if key in update_data and update_data[key] is None:
                del update_data[key]

        if "appointment_date_time" in update_data or "duration_in_minutes" in update_data:
            new_start = update_data.get("appointment_date_time", appointment.appointment_date_time)
            new_duration = update_data.get("duration_in_minutes", appointment.duration_in_minutes)
            if await is_time_slot_taken(
                self.session, practitioner_id, new_start, new_duration,
                exclude_appointment_id=appointment.id,
            ):
                raise ConflictError("This time slot conflicts with another appointment.")

        previous_status = appointment.status

        for key, value in update_data.items():
            setattr(appointment, key, value)
        appointment.status = status_after_edit(previous_status, update_data.keys())
        appointment.updated_at = utcnow()

        self.session.add(appointment)
        await self.session.commit()
        await self.session.refresh(appointment)

        if appointment.status != previous_status:
            logger.info(
                f"Appointment {appointment.id} edited; status {previous_status.value} -> {appointment.status.value}"
            )
        return appointment

    async def respond_to_appointment(
        self, patient_id: UUID, appointment_id: UUID, data: AppointmentRespond
    ) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment or appointment.patient_id != patient_id:
            raise NotFoundError("Appointment not found.")

        if appointment.status != AppointmentStatus.PENDING_PATIENT_CONFIRMATION:
            raise ForbiddenError(
                f"Only appointments awaiting confirmation can be answered (current status: '{appointment.status.value}')."
            )

        target = AppointmentStatus.SCHEDULED if data.accepted else AppointmentStatus.CANCELLED
        ensure_transition(appointment.status, target)

        appointment.status = target
        if data.message is not None:
            appointment.patient_message = data.message
        appointment.updated_at = utcnow()

        self.session.add(appointment)
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(f"Patient {patient_id} {'accepted' if data.accepted else 'declined'} appointment {appointment.id}")
        return appointment

    async def cancel_appointment(self, user: User, appointment_id: UUID) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment or user.id not in (appointment.practitioner_id, appointment.patient_id):
            raise NotFoundError("Appointment not found.")

        ensure_mutable(appointment.status)
        ensure_transition(appointment.status, AppointmentStatus.CANCELLED)

        appointment.status = AppointmentStatus.CANCELLED
        appointment.updated_at = utcnow()
        self.session.add(appointment)
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(f"Appointment {appointment.id} cancelled by {user.role.value} {user.id}")
        return appointment

    async def record_outcome(
        self, practitioner_id: UUID, appointment_id: UUID, outcome: AppointmentOutcome
    ) -> Appointment:
        appointment = await self.get_owned_appointment(appointment_id, practitioner_id)
        target = AppointmentStatus(outcome.value)
        ensure_transition(appointment.status, target)

        appointment.status = target
        appointment.updated_at = utcnow()
        self.session.add(appointment)
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(f"Appointment {appointment.id} marked {target.value}")
        return appointment

    async def update_notes(self, practitioner_id: UUID, appointment_id: UUID, notes: str) -> Appointment:
        appointment = await self.get_owned_appointment(appointment_id, practitioner_id)
        if appointment.status == AppointmentStatus.CANCELLED:
            raise ForbiddenError("Cannot add notes to a cancelled appointment.")

        appointment.notes = notes
        appointment.updated_at = utcnow()
        self.session.add(appointment)
        await self.session.commit()
        await self.session.refresh(appointment)
        return appointment

    def visibility_filters(self, user: User, patient_id: Optional[UUID] = None) -> list:
        if user.role == UserRole.PRACTITIONER:
            filters = [Appointment.practitioner_id == user.id]
            if patient_id:
                filters.append(Appointment.patient_id == patient_id)
            return filters
        if user.role == UserRole.PATIENT:
            return [Appointment.patient_id == user.id]
        if patient_id:
            return [Appointment.patient_id == patient_id]
        return []

    async def to_list_items(self, appointments: List[Appointment]) -> List[AppointmentListItem]:
        user_ids = {a.patient_id for a in appointments} | {a.practitioner_id for a in appointments}
        people = {}
        if user_ids:
            result = await self.session.execute(select(User).where(User.id.in_(user_ids)))
            people = {u.id: PersonSummary.model_validate(u) for u in result.scalars().all()}

        items = []
        for appointment in appointments:
            item = AppointmentListItem.model_validate(appointment)
            item.patient = people.get(appointment.patient_id)
            item.practitioner = people.get(appointment.practitioner_id)
            items.append(item)
        return items

    async def get_appointments(
        self,
        user: User,
        page: int = 1,
        page_size: int = 10,
        patient_id: Optional[UUID] = None,
        sort_order: SortOrder = SortOrder.ASC,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Page[AppointmentListItem]:
        filters = self.visibility_filters(user, patient_id)
        if start_date:
            filters.append(Appointment.appointment_date_time >= datetime.combine(start_date, time.min))
        if end_date:
            filters.append(Appointment.appointment_date_time < datetime.combine(end_date + timedelta(days=1), time.min))

        count_stmt = select(func.count()).select_from(Appointment).where(*filters)
        total_count = (await self.session.execute(count_stmt)).scalar() or 0

        order = Appointment.appointment_date_time.asc() if sort_order == SortOrder.ASC else Appointment.appointment_date_time.desc()
        stmt = (
            select(Appointment)
            .where(*filters)
            .order_by(order)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        appointments = result.scalars().all()

        return Page[AppointmentListItem](
            data=await self.to_list_items(appointments),
            meta=PageMeta(
                total_count=total_count,
                current_page=page,
                page_size=page_size,
                total_pages=math.ceil(total_count / page_size),
            ),
        )

    async def get_appointment_dates(self, user: User, start: date, end: date) -> AppointmentDatesResponse:
        if end < start:
            raise BadRequestError("end must not be before start.")

        stmt = select(Appointment.appointment_date_time).where(
            *self.visibility_filters(user),
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.appointment_date_time >= datetime.combine(start, time.min),
            Appointment.appointment_date_time < datetime.combine(end + timedelta(days=1), time.min),
        )
        result = await self.session.execute(stmt)
        dates = sorted({value.date() for value in result.scalars().all()})
        return AppointmentDatesResponse(dates=dates)

    async def get_appointment_details(self, user: User, appointment_id: UUID) -> AppointmentListItem:
        stmt = select(Appointment).where(
            Appointment.id == appointment_id,
            *self.visibility_filters(user),
        )
        result = await self.session.execute(stmt)
        appointment = result.scalars().first()
        if not appointment:
            raise NotFoundError("Appointment not found.")
        items = await self.to_list_items([appointment])
        return items[0]

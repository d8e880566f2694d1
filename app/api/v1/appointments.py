from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_patient, get_current_practitioner, get_current_user
from app.core.config import settings
from app.db.models import Appointment, User
from app.db.session import get_session
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentDatesResponse,
    AppointmentListItem,
    AppointmentNotesUpdate,
    AppointmentOutcomeUpdate,
    AppointmentRespond,
    AppointmentResponse,
    AppointmentUpdate,
    AvailabilityResponse,
    SortOrder,
)
from app.schemas.common import Page
from app.services.appointment_service import AppointmentService
from app.services.notification_service import notification_service

router = APIRouter()

async def get_appointment_service(session: AsyncSession = Depends(get_session)) -> AppointmentService:
    return AppointmentService(session)

async def schedule_update_notice(
    appointment: Appointment, service: AppointmentService, background_tasks: BackgroundTasks
) -> None:
    patient = await service.session.get(User, appointment.patient_id)
    if patient:
        background_tasks.add_task(
            notification_service.send_appointment_update_email,
            patient.email,
            patient.first_name,
            appointment,
        )

@router.get("/check-availability", response_model=AvailabilityResponse)
async def check_availability(
    date_time: datetime = Query(..., alias="dateTime"),
    duration_in_minutes: int = Query(30, alias="durationInMinutes", ge=1),
    practitioner: User = Depends(get_current_practitioner),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.check_availability(practitioner.id, date_time, duration_in_minutes)

@router.post("/schedule", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def schedule_appointment(
    request: AppointmentCreate,
    practitioner: User = Depends(get_current_practitioner),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.create_appointment(practitioner.id, request)

@router.get("", response_model=Page[AppointmentListItem])
async def list_appointments(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, alias="pageSize", ge=1, le=settings.MAX_PAGE_SIZE),
    patient_id: Optional[UUID] = Query(None, alias="patientId"),
    sort_order: SortOrder = Query(SortOrder.ASC, alias="sortOrder"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get_appointments(
        current_user, page, page_size, patient_id, sort_order, start_date, end_date
    )

@router.get("/dates", response_model=AppointmentDatesResponse)
async def list_appointment_dates(
    start: date,
    end: date,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get_appointment_dates(current_user, start, end)

@router.get("/{appointment_id}", response_model=AppointmentListItem)
async def read_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get_appointment_details(current_user, appointment_id)

@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: UUID,
    request: AppointmentUpdate,
    background_tasks: BackgroundTasks,
    practitioner: User = Depends(get_current_practitioner),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.update_appointment(practitioner.id, appointment_id, request)
    await schedule_update_notice(appointment, service, background_tasks)
    return appointment

@router.patch("/{appointment_id}/respond", response_model=AppointmentResponse)
async def respond_to_appointment(
    appointment_id: UUID,
    request: AppointmentRespond,
    patient: User = Depends(get_current_patient),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.respond_to_appointment(patient.id, appointment_id, request)

@router.patch("/{appointment_id}/notes", response_model=AppointmentResponse)
async def update_appointment_notes(
    appointment_id: UUID,
    request: AppointmentNotesUpdate,
    practitioner: User = Depends(get_current_practitioner),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.update_notes(practitioner.id, appointment_id, request.notes)

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.cancel_appointment(current_user, appointment_id)

@router.post("/{appointment_id}/outcome", response_model=AppointmentResponse)
async def record_appointment_outcome(
    appointment_id: UUID,
    request: AppointmentOutcomeUpdate,
    practitioner: User = Depends(get_current_practitioner),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.record_outcome(practitioner.id, appointment_id, request.outcome)

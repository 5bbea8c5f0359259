from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Response
import logging

from clinicflow.core.session import SchedulerSession
from clinicflow.models.appointment import Appointment, Block, TimeOff
from clinicflow.models.professional import Professional
from clinicflow.repositories.appointment_repository import AppointmentRepository
from clinicflow.repositories.block_repository import BlockRepository, TimeOffRepository
from clinicflow.repositories.professional_repository import ProfessionalRepository
from clinicflow.repositories.profile_repository import ProfileRepository
from clinicflow.repositories.service_repository import ServiceRepository
from clinicflow.schemas.scheduler import (
    AppointmentCreate,
    AppointmentUpdate,
    AvailabilityRequest,
    AvailabilityResponse,
    BlockCreate,
    FreeSlot,
    RecurringAppointmentCreate,
    RecurringResult,
    StatusUpdate,
    TimeOffCreate,
    WorkScheduleUpdate,
)
from clinicflow.services.scheduling_service import SchedulingService

# Получаем логгер для этого модуля
logger = logging.getLogger(__name__)

router = APIRouter()


def get_session(
    x_user_id: str = Header(...),
    x_user_role: str = Header(...),
    x_clinic_id: Optional[str] = Header(None),
    x_professional_id: Optional[str] = Header(None),
) -> SchedulerSession:
    """
    Собирает сессию пользователя из заголовков запроса.
    Аутентификацию выполняет шлюз перед сервисом.
    """
    return SchedulerSession(
        user_id=x_user_id,
        role=x_user_role,
        clinic_id=x_clinic_id,
        professional_id=x_professional_id,
    )


def get_scheduling_service() -> SchedulingService:
    """Создает SchedulingService с репозиториями YDB."""
    return SchedulingService(
        professional_repository=ProfessionalRepository(),
        profile_repository=ProfileRepository(),
        appointment_repository=AppointmentRepository(),
        block_repository=BlockRepository(),
        time_off_repository=TimeOffRepository(),
        service_repository=ServiceRepository(),
    )


@router.post("/availability", response_model=AvailabilityResponse)
def check_availability(
    body: AvailabilityRequest,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Проверяет, свободен ли интервал у специалиста."""
    result = service.check_availability(session, body.start, body.end, body.professional_id, body.exclude_id)
    return AvailabilityResponse(available=result.available, reason=result.reason.value)


@router.get("/appointments", response_model=List[Appointment])
def list_appointments(
    professional_id: Optional[str] = Query(None),
    active_only: bool = Query(False),
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.list_appointments(session, professional_id, active_only)


@router.post("/appointments", response_model=Appointment, status_code=201)
def create_appointment(
    body: AppointmentCreate,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.add_appointment(session, body.model_dump())


@router.post("/appointments/recurring", response_model=RecurringResult, status_code=201)
def create_recurring_appointments(
    body: RecurringAppointmentCreate,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Создает серию записей; недоступные даты пропускаются."""
    data = body.model_dump(exclude={'frequency', 'occurrences'})
    return service.book_recurring(session, data, body.frequency, body.occurrences)


@router.patch("/appointments/{appointment_id}", response_model=Appointment)
def update_appointment(
    appointment_id: str,
    body: AppointmentUpdate,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.update_appointment(session, appointment_id, body.model_dump(exclude_unset=True))


@router.post("/appointments/{appointment_id}/status", response_model=Appointment)
def update_appointment_status(
    appointment_id: str,
    body: StatusUpdate,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.update_status(session, appointment_id, body.status)


@router.delete("/appointments/{appointment_id}", status_code=204)
def delete_appointment(
    appointment_id: str,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    service.remove_appointment(session, appointment_id)
    return Response(status_code=204)


@router.post("/blocks", response_model=Block, status_code=201)
def create_block(
    body: BlockCreate,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.add_block(session, body.model_dump())


@router.delete("/blocks/{block_id}", status_code=204)
def delete_block(
    block_id: str,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    service.remove_block(session, block_id)
    return Response(status_code=204)


@router.post("/time-offs", response_model=TimeOff, status_code=201)
def create_time_off(
    body: TimeOffCreate,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.add_time_off(session, body.model_dump())


@router.delete("/time-offs/{time_off_id}", status_code=204)
def delete_time_off(
    time_off_id: str,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    service.remove_time_off(session, time_off_id)
    return Response(status_code=204)


@router.put("/professionals/{professional_id}/work-schedule", response_model=Professional)
def set_work_schedule(
    professional_id: str,
    body: WorkScheduleUpdate,
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    schedule = body.work_schedule.model_dump(by_alias=True, exclude_none=True) if body.work_schedule else None
    return service.set_work_schedule(session, professional_id, schedule)


@router.get("/professionals/{professional_id}/free-slots", response_model=List[FreeSlot])
def get_free_slots(
    professional_id: str,
    day: date = Query(..., alias="date"),
    duration: int = Query(30, ge=1),
    session: SchedulerSession = Depends(get_session),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Свободные интервалы специалиста на дату (?date=YYYY-MM-DD&duration=30)."""
    return service.find_free_slots(session, professional_id, day, duration)

"""
Схемы запросов и ответов HTTP-слоя расписания.
"""

from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from clinicflow.models.professional import WorkSchedule


class AvailabilityRequest(BaseModel):
    start: Union[datetime, str]
    end: Union[datetime, str]
    professional_id: Optional[str] = None
    exclude_id: Optional[str] = None


class AvailabilityResponse(BaseModel):
    available: bool
    reason: str


class AppointmentCreate(BaseModel):
    professional_id: Optional[str] = None
    client_id: Optional[str] = None
    start: Union[datetime, str]
    end: Union[datetime, str]
    status: Optional[str] = None
    service_id: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    """Частичное изменение записи: передаются только меняемые поля."""
    professional_id: Optional[str] = None
    client_id: Optional[str] = None
    start: Optional[Union[datetime, str]] = None
    end: Optional[Union[datetime, str]] = None
    status: Optional[str] = None
    service_id: Optional[str] = None
    notes: Optional[str] = None


class RecurringAppointmentCreate(AppointmentCreate):
    frequency: str = Field(pattern=r'^(weekly|biweekly|monthly)$')
    occurrences: int = Field(ge=1, le=52)


class RecurringResult(BaseModel):
    created: List[str]
    skipped: List[str]


class StatusUpdate(BaseModel):
    status: str


class BlockCreate(BaseModel):
    professional_id: str
    start: Union[datetime, str]
    end: Union[datetime, str]
    reason: Optional[str] = None


class TimeOffCreate(BaseModel):
    professional_id: str
    start_date: date
    end_date: date
    notes: Optional[str] = None


class WorkScheduleUpdate(BaseModel):
    """None в work_schedule удаляет график специалиста."""
    model_config = ConfigDict(populate_by_name=True)

    work_schedule: Optional[WorkSchedule] = Field(default=None, alias="workSchedule")


class FreeSlot(BaseModel):
    start: str
    end: str

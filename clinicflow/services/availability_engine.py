"""
Движок доступности специалиста.

Решает, можно ли записать специалиста на предложенный интервал, с учетом его
графика работы, перерыва, уже существующих записей, блокировок и периодов
отсутствия. Все функции чистые: работают только со снимком данных, переданным
в SchedulingContext, ничего не пишут и не выбрасывают исключений.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple, Optional, Sequence, Union
from zoneinfo import ZoneInfo

from clinicflow.models.appointment import Appointment, Block, TimeOff
from clinicflow.models.professional import Professional
from clinicflow.services.status_normalizer import is_cancelled
from clinicflow.utils.time_utils import (
    DEFAULT_CLINIC_TIMEZONE,
    at_clock,
    day_end,
    day_start,
    parse_clock,
    to_clinic_datetime,
    weekday_number,
)

logger = logging.getLogger(__name__)

TimeValue = Union[str, datetime]


class AvailabilityReason(str, enum.Enum):
    OK = "ok"
    INVALID_INTERVAL = "invalid_interval"
    MALFORMED_TIME = "malformed_time"
    NO_WORK_SCHEDULE = "no_work_schedule"
    OUTSIDE_WORK_DAYS = "outside_work_days"
    OUTSIDE_WORK_HOURS = "outside_work_hours"
    OVERLAPS_BREAK = "overlaps_break"
    APPOINTMENT_CONFLICT = "appointment_conflict"
    BLOCK_CONFLICT = "block_conflict"
    TIME_OFF_CONFLICT = "time_off_conflict"


class AvailabilityResult(NamedTuple):
    available: bool
    reason: AvailabilityReason


@dataclass(frozen=True)
class ProposedSlot:
    """Предлагаемый интервал записи."""
    start: TimeValue
    end: TimeValue
    professional_id: str


@dataclass
class SchedulingContext:
    """
    Снимок данных одной клиники, на котором проверяется доступность.

    Attributes:
        professional: Специалист (None - график не проверяется)
        appointments: Записи клиники с уже сверенными ID специалистов
        blocks: Блокировки
        time_offs: Периоды отсутствия
        timezone: Часовой пояс клиники
        require_work_schedule: True - специалист без графика недоступен
    """
    professional: Optional[Professional] = None
    appointments: Sequence[Appointment] = ()
    blocks: Sequence[Block] = ()
    time_offs: Sequence[TimeOff] = ()
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo(DEFAULT_CLINIC_TIMEZONE))
    require_work_schedule: bool = False


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Строгое пересечение интервалов: касание концами пересечением не считается."""
    return max(a_start, b_start) < min(a_end, b_end)


def _unavailable(reason: AvailabilityReason, message: str) -> AvailabilityResult:
    logger.debug(f"🚫 [AVAILABILITY] {message}")
    return AvailabilityResult(False, reason)


def _check_work_schedule(start: datetime, end: datetime, context: SchedulingContext) -> Optional[AvailabilityResult]:
    """Проверяет день недели, рабочие часы и перерыв. None - проверки пройдены."""
    professional = context.professional
    if professional is None or professional.work_schedule is None:
        if context.require_work_schedule:
            return _unavailable(AvailabilityReason.NO_WORK_SCHEDULE, "У специалиста не настроен график работы")
        return None

    schedule = professional.work_schedule
    tz = context.timezone

    day_of_week = weekday_number(start)
    if day_of_week not in schedule.days:
        return _unavailable(
            AvailabilityReason.OUTSIDE_WORK_DAYS,
            f"День {day_of_week} не входит в график специалиста {professional.id}"
        )

    # Границы смены привязаны к календарному дню начала записи
    work_day = start.date()
    work_start = at_clock(work_day, schedule.start_minutes, tz)
    work_end = at_clock(work_day, schedule.end_minutes, tz)
    if start < work_start or end > work_end:
        return _unavailable(
            AvailabilityReason.OUTSIDE_WORK_HOURS,
            f"Время вне смены ({schedule.start} - {schedule.end})"
        )

    if schedule.has_break:
        break_start = at_clock(work_day, parse_clock(schedule.break_start), tz)
        break_end = at_clock(work_day, parse_clock(schedule.break_end), tz)
        if overlaps(start, end, break_start, break_end):
            return _unavailable(
                AvailabilityReason.OVERLAPS_BREAK,
                f"Время пересекается с перерывом ({schedule.break_start} - {schedule.break_end})"
            )

    return None


def _has_appointment_conflict(
    start: datetime,
    end: datetime,
    professional_id: str,
    context: SchedulingContext,
    exclude_id: Optional[str]
) -> bool:
    tz = context.timezone
    for appointment in context.appointments:
        if exclude_id and appointment.id == exclude_id:
            continue
        if appointment.professional_id != professional_id:
            continue
        if is_cancelled(appointment.status):
            continue
        if overlaps(start, end, to_clinic_datetime(appointment.start, tz), to_clinic_datetime(appointment.end, tz)):
            return True
    return False


def _has_block_conflict(start: datetime, end: datetime, professional_id: str, context: SchedulingContext) -> bool:
    tz = context.timezone
    return any(
        block.professional_id == professional_id
        and overlaps(start, end, to_clinic_datetime(block.start, tz), to_clinic_datetime(block.end, tz))
        for block in context.blocks
    )


def _has_time_off_conflict(start: datetime, end: datetime, professional_id: str, context: SchedulingContext) -> bool:
    tz = context.timezone
    for time_off in context.time_offs:
        if time_off.professional_id != professional_id:
            continue
        # Отсутствие занимает дни целиком, сравнение включительное
        if start <= day_end(time_off.end_date, tz) and end >= day_start(time_off.start_date, tz):
            return True
    return False


def check_availability(
    proposed: ProposedSlot,
    context: SchedulingContext,
    exclude_id: Optional[str] = None
) -> AvailabilityResult:
    """
    Проверяет, можно ли записать специалиста на предложенный интервал.

    Проверки выполняются по порядку до первой неудачной: корректность
    интервала, день недели, рабочие часы, перерыв, пересечение с записями
    (кроме отмененных и exclude_id), с блокировками, с периодами отсутствия.

    Args:
        proposed: Предлагаемый интервал и специалист
        context: Снимок данных клиники
        exclude_id: ID записи, которую нужно игнорировать (перенос записи)

    Returns:
        AvailabilityResult с итогом и причиной отказа
    """
    tz = context.timezone
    start = to_clinic_datetime(proposed.start, tz)
    end = to_clinic_datetime(proposed.end, tz)
    if start is None or end is None:
        return _unavailable(
            AvailabilityReason.MALFORMED_TIME,
            f"Некорректное время: start={proposed.start!r}, end={proposed.end!r}"
        )

    if end <= start:
        return _unavailable(AvailabilityReason.INVALID_INTERVAL, "Некорректный интервал: конец не позже начала")

    schedule_failure = _check_work_schedule(start, end, context)
    if schedule_failure is not None:
        return schedule_failure

    professional_id = proposed.professional_id

    if _has_appointment_conflict(start, end, professional_id, context, exclude_id):
        return _unavailable(AvailabilityReason.APPOINTMENT_CONFLICT, "Конфликт с существующей записью")

    if _has_block_conflict(start, end, professional_id, context):
        return _unavailable(AvailabilityReason.BLOCK_CONFLICT, "Конфликт с блокировкой")

    if _has_time_off_conflict(start, end, professional_id, context):
        return _unavailable(AvailabilityReason.TIME_OFF_CONFLICT, "Конфликт с периодом отсутствия")

    return AvailabilityResult(True, AvailabilityReason.OK)


def is_available(
    proposed: ProposedSlot,
    context: SchedulingContext,
    exclude_id: Optional[str] = None
) -> bool:
    """Булева проекция check_availability."""
    return check_availability(proposed, context, exclude_id).available

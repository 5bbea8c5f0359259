"""
Поиск свободных интервалов специалиста на дату.
Строит сетку слотов в рабочем времени и вычеркивает занятые с помощью
движка доступности.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from clinicflow.services.availability_engine import ProposedSlot, SchedulingContext, is_available
from clinicflow.utils.time_utils import at_clock, format_clock, parse_clock, weekday_number

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_HOURS = ("08:00", "19:00")


def _working_window(
    day: date,
    context: SchedulingContext,
    business_hours: Tuple[str, str]
) -> Optional[Tuple[datetime, datetime]]:
    """
    Определяет рабочее окно специалиста на дату.

    Returns:
        Кортеж (начало, конец) или None, если специалист в этот день не работает
    """
    tz = context.timezone
    professional = context.professional
    schedule = professional.work_schedule if professional else None

    if schedule is None:
        if context.require_work_schedule:
            return None
        start_minutes = parse_clock(business_hours[0])
        end_minutes = parse_clock(business_hours[1])
        if start_minutes is None or end_minutes is None or start_minutes >= end_minutes:
            logger.warning(f"⚠️ [SLOTS] Некорректные часы работы клиники: {business_hours}")
            return None
        return at_clock(day, start_minutes, tz), at_clock(day, end_minutes, tz)

    window_start = at_clock(day, schedule.start_minutes, tz)
    if weekday_number(window_start) not in schedule.days:
        return None
    return window_start, at_clock(day, schedule.end_minutes, tz)


def _earliest_bookable(now: datetime, lead_minutes: int) -> datetime:
    """Текущее время + отступ, округленное вверх до получаса."""
    earliest = now + timedelta(minutes=lead_minutes)
    rounded = earliest.replace(minute=0, second=0, microsecond=0)
    while rounded < earliest:
        rounded += timedelta(minutes=30)
    return rounded


def _generate_timeslot_grid(window_start: datetime, window_end: datetime, step_minutes: int) -> List[datetime]:
    """Генерирует сетку слотов заданного шага внутри окна."""
    slots = []
    current = window_start
    step = timedelta(minutes=step_minutes)
    while current + step <= window_end:
        slots.append(current)
        current += step
    return slots


def _find_contiguous_intervals(
    free_slots: List[datetime],
    step_minutes: int,
    duration_minutes: int
) -> List[Dict[str, str]]:
    """
    Склеивает соседние свободные слоты в интервалы и отбрасывает короткие.

    Returns:
        Список интервалов в формате [{'start': '10:00', 'end': '11:30'}, ...]
    """
    if not free_slots:
        return []

    step = timedelta(minutes=step_minutes)
    intervals = []
    current_start = free_slots[0]
    current_end = free_slots[0] + step

    for slot_start in free_slots[1:]:
        if slot_start == current_end:
            current_end = slot_start + step
            continue
        intervals.append((current_start, current_end))
        current_start = slot_start
        current_end = slot_start + step
    intervals.append((current_start, current_end))

    min_duration = timedelta(minutes=duration_minutes)
    return [
        {'start': format_clock(start), 'end': format_clock(end)}
        for start, end in intervals
        if end - start >= min_duration
    ]


def find_free_slots(
    day: date,
    duration_minutes: int,
    context: SchedulingContext,
    step_minutes: int = 15,
    business_hours: Tuple[str, str] = DEFAULT_BUSINESS_HOURS,
    now: Optional[datetime] = None,
    lead_minutes: int = 60
) -> List[Dict[str, str]]:
    """
    Находит свободные интервалы специалиста на дату.

    Args:
        day: Дата (в часовом поясе клиники)
        duration_minutes: Минимальная длительность интервала
        context: Снимок данных; context.professional - специалист
        step_minutes: Шаг сетки слотов
        business_hours: Часы работы клиники для специалиста без графика
        now: Текущий момент (для отсечения уже прошедшего времени сегодня)
        lead_minutes: Минимальный отступ от текущего момента

    Returns:
        Список свободных интервалов [{'start': 'HH:MM', 'end': 'HH:MM'}, ...]
    """
    professional = context.professional
    if professional is None or step_minutes <= 0:
        return []

    window = _working_window(day, context, business_hours)
    if window is None:
        logger.info(f"📅 [SLOTS] Специалист {professional.id} не работает {day}")
        return []

    window_start, window_end = window
    grid = _generate_timeslot_grid(window_start, window_end, step_minutes)

    if now is not None:
        local_now = now.astimezone(context.timezone) if now.tzinfo else now.replace(tzinfo=context.timezone)
        if local_now.date() == day:
            earliest = _earliest_bookable(local_now, lead_minutes)
            grid = [slot for slot in grid if slot >= earliest]

    step = timedelta(minutes=step_minutes)
    free_slots = [
        slot for slot in grid
        if is_available(ProposedSlot(slot, slot + step, professional.id), context)
    ]
    intervals = _find_contiguous_intervals(free_slots, step_minutes, duration_minutes)
    logger.info(
        f"🆓 [SLOTS] Специалист {professional.id}, {day}: слотов {len(grid)}, "
        f"свободно {len(free_slots)}, интервалов {len(intervals)}"
    )
    return intervals


def deduplicate_and_sort_slots(all_slots: Iterable[Dict[str, str]]) -> List[Dict[str, str]]:
    """Убирает дубликаты интервалов и сортирует по времени начала."""
    unique_slots = []
    seen = set()
    for slot in all_slots:
        slot_key = (slot['start'], slot['end'])
        if slot_key not in seen:
            seen.add(slot_key)
            unique_slots.append(slot)
    unique_slots.sort(key=lambda slot: slot['start'])
    return unique_slots


def find_free_slots_for_professionals(
    day: date,
    duration_minutes: int,
    contexts: Iterable[SchedulingContext],
    **options
) -> List[Dict[str, str]]:
    """Объединяет свободные интервалы нескольких специалистов."""
    all_slots = []
    for context in contexts:
        all_slots.extend(find_free_slots(day, duration_minutes, context, **options))
    return deduplicate_and_sort_slots(all_slots)

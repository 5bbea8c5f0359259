"""
Утилиты для работы с "настенным" временем клиники.

Все вычисления ведутся в одном явно заданном часовом поясе клиники,
а не в часовом поясе хоста.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from dateutil import parser

DEFAULT_CLINIC_TIMEZONE = "America/Sao_Paulo"

MINUTES_PER_DAY = 24 * 60

_CLOCK_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$')


def parse_clock(value: Optional[str]) -> Optional[int]:
    """
    Парсит время суток "HH:MM" (или "HH:MM:SS") в минуты от полуночи.

    Args:
        value: Строка времени, "24:00" допускается как конец дня

    Returns:
        Количество минут от полуночи или None, если строка некорректна

    Examples:
        >>> parse_clock("09:30")
        570
        >>> parse_clock("24:00")
        1440
        >>> parse_clock("9h")
        None
    """
    if not value or not isinstance(value, str):
        return None

    match = _CLOCK_PATTERN.match(value)
    if not match:
        return None

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59:
        return None
    if hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if hours > 23:
        return None
    return hours * 60 + minutes


def to_clinic_datetime(value: Union[str, datetime, None], tz: ZoneInfo) -> Optional[datetime]:
    """
    Приводит момент времени к часовому поясу клиники.
    Наивные значения считаются локальными для клиники, aware - конвертируются.

    Args:
        value: ISO-8601 строка или datetime
        tz: Часовой пояс клиники

    Returns:
        Aware datetime в поясе клиники или None, если значение не распознано
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def day_start(day: date, tz: ZoneInfo) -> datetime:
    """Полночь указанной даты в поясе клиники."""
    return datetime.combine(day, time.min, tzinfo=tz)


def day_end(day: date, tz: ZoneInfo) -> datetime:
    """Последняя микросекунда указанной даты в поясе клиники."""
    return datetime.combine(day, time.max, tzinfo=tz)


def at_clock(day: date, minutes: int, tz: ZoneInfo) -> datetime:
    """Момент "day + minutes от полуночи" по настенным часам клиники."""
    return day_start(day, tz) + timedelta(minutes=minutes)


def weekday_number(moment: datetime) -> int:
    """Номер дня недели: 0 = воскресенье, 6 = суббота."""
    return (moment.weekday() + 1) % 7


def format_clock(moment: datetime) -> str:
    return moment.strftime('%H:%M')

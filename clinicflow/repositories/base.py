"""
Базовый репозиторий для работы с YDB.
Все запросы ограничены одной клиникой (clinic_id).
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser

from clinicflow.core.database import delete_record, select_records, upsert_record

EPOCH = date(1970, 1, 1)


def decode_text(value: Any) -> Any:
    """Декодирует байтовую строку в обычную строку, если необходимо."""
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return value


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Приводит значение колонки Timestamp к aware datetime (UTC для наивных значений).
    YDB может вернуть микросекунды от эпохи, datetime или ISO-строку.
    """
    value = decode_text(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000000, tz=timezone.utc)
    if isinstance(value, str):
        parsed = parser.isoparse(value)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Неподдерживаемое значение времени: {value!r}")


def to_date(value: Any) -> Optional[date]:
    """Приводит значение колонки Date к date (YDB может вернуть число дней от эпохи)."""
    value = decode_text(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int):
        return EPOCH + timedelta(days=value)
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Неподдерживаемое значение даты: {value!r}")


class BaseRepository:
    """Базовый репозиторий для работы с YDB"""

    def __init__(self, table_name: str):
        self.table_name = table_name

    def get_by_id(self, clinic_id: str, id: str) -> Optional[Dict[str, Any]]:
        """Получает запись по ID"""
        rows = select_records(self.table_name, {'clinic_id': clinic_id, 'id': id})
        if rows:
            return self._row_to_dict(rows[0])
        return None

    def find_by(self, clinic_id: str, order_by: Optional[str] = None, **filters: Any) -> List[Dict[str, Any]]:
        """Получает записи клиники по фильтру"""
        rows = select_records(self.table_name, {'clinic_id': clinic_id, **filters}, order_by=order_by)
        return [self._row_to_dict(row) for row in rows]

    def create(self, clinic_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Создает новую запись с новым UUID"""
        record = dict(data)
        record['id'] = str(uuid.uuid4())
        record['clinic_id'] = clinic_id
        upsert_record(self.table_name, record)
        return self.get_by_id(clinic_id, record['id'])

    def update(self, clinic_id: str, id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Обновляет запись; возвращает None, если записи нет"""
        if not self.get_by_id(clinic_id, id):
            return None
        record = dict(data)
        record['id'] = id
        record['clinic_id'] = clinic_id
        upsert_record(self.table_name, record)
        return self.get_by_id(clinic_id, id)

    def delete(self, clinic_id: str, id: str) -> bool:
        """Удаляет запись по ID; возвращает False, если записи нет"""
        if not self.get_by_id(clinic_id, id):
            return False
        delete_record(self.table_name, {'clinic_id': clinic_id, 'id': id})
        return True

    def _row_to_dict(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Конвертирует строку результата в словарь с декодированными строками"""
        return {key: decode_text(value) for key, value in row.items()}

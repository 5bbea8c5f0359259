"""
Репозиторий для работы со специалистами клиники
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from clinicflow.models.professional import Professional, WorkSchedule
from .base import BaseRepository

logger = logging.getLogger(__name__)


class ProfessionalRepository(BaseRepository):
    """Репозиторий для работы со специалистами"""

    def __init__(self):
        super().__init__("professionals")

    def list_professionals(self, clinic_id: str) -> List[Professional]:
        """Все специалисты клиники в порядке имени"""
        return [self.to_model(row) for row in self.find_by(clinic_id, order_by="name")]

    def update_work_schedule(self, clinic_id: str, professional_id: str, schedule: Optional[WorkSchedule]) -> Optional[Professional]:
        """Сохраняет график работы (None - удалить график)"""
        payload = schedule.model_dump(by_alias=True, exclude_none=True) if schedule else None
        row = self.update(clinic_id, professional_id, {'work_schedule': payload})
        return self.to_model(row) if row else None

    def to_model(self, row: Dict[str, Any]) -> Professional:
        return Professional(
            id=row['id'],
            name=row.get('name') or '',
            specialty=row.get('specialty'),
            color=row.get('color'),
            work_schedule=self._parse_work_schedule(row['id'], row.get('work_schedule')),
            clinic_id=row.get('clinic_id'),
        )

    def _parse_work_schedule(self, professional_id: str, raw: Any) -> Optional[WorkSchedule]:
        """
        Разбирает график из колонки Json.
        Некорректный график логируется и считается отсутствующим.
        """
        if not raw:
            return None
        try:
            data = json.loads(raw) if isinstance(raw, str) else raw
            return WorkSchedule.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"⚠️ [PROFESSIONALS] Некорректный график специалиста {professional_id}: {e}")
            return None

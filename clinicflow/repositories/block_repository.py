"""
Репозитории блокировок и периодов отсутствия специалистов
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from clinicflow.models.appointment import Block, TimeOff
from .base import BaseRepository, to_date, to_datetime

logger = logging.getLogger(__name__)


class BlockRepository(BaseRepository):
    """Блокировки агенды (совещания, обслуживание и т.п.)"""

    def __init__(self):
        super().__init__("blocks")

    def list_blocks(self, clinic_id: str, professional_id: Optional[str] = None) -> List[Block]:
        filters = {'professional_id': professional_id} if professional_id else {}
        blocks = []
        for row in self.find_by(clinic_id, order_by="start_time", **filters):
            block = self.to_model(row)
            if block:
                blocks.append(block)
        return blocks

    def to_model(self, row: Dict[str, Any]) -> Optional[Block]:
        try:
            return Block(
                id=row['id'],
                professional_id=row.get('professional_id') or '',
                start=to_datetime(row.get('start_time')),
                end=to_datetime(row.get('end_time')),
                reason=row.get('reason'),
                clinic_id=row.get('clinic_id'),
            )
        except (ValueError, ValidationError) as e:
            logger.warning(f"⚠️ [BLOCKS] Блокировка {row.get('id')} пропущена: {e}")
            return None


class TimeOffRepository(BaseRepository):
    """Периоды отсутствия (отпуск, больничный)"""

    def __init__(self):
        super().__init__("time_offs")

    def list_time_offs(self, clinic_id: str, professional_id: Optional[str] = None) -> List[TimeOff]:
        filters = {'professional_id': professional_id} if professional_id else {}
        time_offs = []
        for row in self.find_by(clinic_id, order_by="start_date", **filters):
            time_off = self.to_model(row)
            if time_off:
                time_offs.append(time_off)
        return time_offs

    def to_model(self, row: Dict[str, Any]) -> Optional[TimeOff]:
        try:
            return TimeOff(
                id=row['id'],
                professional_id=row.get('professional_id') or '',
                start_date=to_date(row.get('start_date')),
                end_date=to_date(row.get('end_date')),
                notes=row.get('notes'),
                clinic_id=row.get('clinic_id'),
            )
        except (ValueError, ValidationError) as e:
            logger.warning(f"⚠️ [TIME OFFS] Период {row.get('id')} пропущен: {e}")
            return None

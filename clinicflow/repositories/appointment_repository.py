"""
Репозиторий для работы с записями клиентов
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from clinicflow.models.appointment import Appointment
from clinicflow.services.status_normalizer import normalize
from .base import BaseRepository, to_datetime

logger = logging.getLogger(__name__)


class AppointmentRepository(BaseRepository):
    """Репозиторий для работы с записями клиентов"""

    def __init__(self):
        super().__init__("appointments")

    def list_rows(self, clinic_id: str) -> List[Dict[str, Any]]:
        """Все записи клиники в порядке начала"""
        return self.find_by(clinic_id, order_by="start_time")

    def to_model(self, row: Dict[str, Any], professional_id: str, unresolved: bool = False) -> Optional[Appointment]:
        """
        Конвертирует строку в Appointment с уже сверенным ID специалиста.
        Строки с некорректным временем логируются и пропускаются.
        """
        try:
            return Appointment(
                id=row['id'],
                professional_id=professional_id,
                client_id=row.get('client_id'),
                start=to_datetime(row.get('start_time')),
                end=to_datetime(row.get('end_time')),
                status=normalize(row.get('status')),
                service_id=row.get('service_id'),
                clinic_id=row.get('clinic_id'),
                notes=row.get('notes'),
                raw_professional_ref=row.get('professional_id'),
                unresolved_professional=unresolved,
            )
        except (ValueError, ValidationError) as e:
            logger.warning(f"⚠️ [APPOINTMENTS] Запись {row.get('id')} пропущена: {e}")
            return None

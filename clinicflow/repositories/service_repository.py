"""
Репозиторий квалификаций специалистов (какие услуги выполняет специалист)
"""

from typing import Set

from .base import BaseRepository


class ServiceRepository(BaseRepository):
    """Связь специалист - услуга (professional_services)"""

    def __init__(self):
        super().__init__("professional_services")

    def get_qualified_service_ids(self, clinic_id: str, professional_id: str) -> Set[str]:
        """ID услуг, которые выполняет специалист (пустое множество - данных нет)"""
        rows = self.find_by(clinic_id, professional_id=professional_id)
        return {row['service_id'] for row in rows if row.get('service_id')}

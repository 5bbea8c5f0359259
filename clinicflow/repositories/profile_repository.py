"""
Репозиторий справочника профилей входа
"""

from typing import Dict

from clinicflow.models.professional import ProfileEntry
from .base import BaseRepository


class ProfileRepository(BaseRepository):
    """Профили пользователей (profiles) со ссылкой на специалиста"""

    def __init__(self):
        super().__init__("profiles")

    def get_directory(self, clinic_id: str) -> Dict[str, ProfileEntry]:
        """Справочник профилей клиники по ID"""
        directory = {}
        for row in self.find_by(clinic_id):
            directory[row['id']] = ProfileEntry(
                id=row['id'],
                display_name=row.get('full_name'),
                linked_professional_id=row.get('professional_id'),
            )
        return directory

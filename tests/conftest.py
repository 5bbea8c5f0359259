"""
Общие фикстуры: таблицы YDB в памяти, сессии пользователей и сервис расписания.
"""

import copy
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest

from clinicflow.core.config import Settings
from clinicflow.core.session import SchedulerSession
from clinicflow.repositories import base
from clinicflow.repositories.appointment_repository import AppointmentRepository
from clinicflow.repositories.block_repository import BlockRepository, TimeOffRepository
from clinicflow.repositories.professional_repository import ProfessionalRepository
from clinicflow.repositories.profile_repository import ProfileRepository
from clinicflow.repositories.service_repository import ServiceRepository
from clinicflow.services.scheduling_service import SchedulingService

CLINIC_ID = "clinic-1"
OTHER_CLINIC_ID = "clinic-2"

ANA_ID = "11111111-1111-4111-8111-111111111111"
BRUNO_ID = "22222222-2222-4222-8222-222222222222"
ANA_PROFILE_ID = "33333333-3333-4333-8333-333333333333"
BRUNO_PROFILE_ID = "44444444-4444-4444-8444-444444444444"

WEEKDAY_SCHEDULE = {
    "days": [1, 2, 3, 4, 5],
    "start": "09:00",
    "end": "18:00",
    "breakStart": "12:00",
    "breakEnd": "13:00",
}


def _matches(row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for column, value in filters.items():
        if value is None:
            if row.get(column) is not None:
                return False
        elif isinstance(value, (list, tuple, set)):
            if row.get(column) not in value:
                return False
        elif row.get(column) != value:
            return False
    return True


class InMemoryTables:
    """Подмена select_records / upsert_record / delete_record из clinicflow.core.database."""

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)

    def select_records(self, table: str, filters: Dict[str, Any], order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = [copy.deepcopy(row) for row in self.tables[table].values() if _matches(row, filters)]
        if order_by:
            rows.sort(key=lambda row: (row.get(order_by) is None, str(row.get(order_by))))
        return rows

    def upsert_record(self, table: str, data: Dict[str, Any]) -> None:
        row = self.tables[table].setdefault(data['id'], {})
        row.update(copy.deepcopy(data))

    def delete_record(self, table: str, filters: Dict[str, Any]) -> None:
        for row_id in [row_id for row_id, row in self.tables[table].items() if _matches(row, filters)]:
            del self.tables[table][row_id]

    def insert(self, table: str, clinic_id: str = CLINIC_ID, **row: Any) -> str:
        """Добавляет строку напрямую в таблицу (подготовка данных теста)."""
        row.setdefault('id', str(uuid.uuid4()))
        row['clinic_id'] = clinic_id
        self.upsert_record(table, row)
        return row['id']

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return list(self.tables[table].values())


@pytest.fixture
def db(monkeypatch):
    tables = InMemoryTables()
    monkeypatch.setattr(base, "select_records", tables.select_records)
    monkeypatch.setattr(base, "upsert_record", tables.upsert_record)
    monkeypatch.setattr(base, "delete_record", tables.delete_record)
    return tables


@pytest.fixture
def clinic(db):
    """Клиника с двумя специалистами и их профилями входа."""
    db.insert("professionals", id=ANA_ID, name="Dra. Ana Souza", specialty="Fisioterapia",
              work_schedule=dict(WEEKDAY_SCHEDULE))
    db.insert("professionals", id=BRUNO_ID, name="Dr. Bruno Lima", specialty="Ortopedia")
    db.insert("profiles", id=ANA_PROFILE_ID, full_name="Ana Souza", professional_id=ANA_ID)
    db.insert("profiles", id=BRUNO_PROFILE_ID, full_name="Bruno Lima")
    return db


@pytest.fixture
def settings():
    return Settings(
        CLINIC_TIMEZONE="America/Sao_Paulo",
        BUSINESS_HOURS_START="08:00",
        BUSINESS_HOURS_END="19:00",
        SLOT_STEP_MINUTES=15,
        MIN_BOOKING_LEAD_MINUTES=60,
        REQUIRE_WORK_SCHEDULE=False,
    )


@pytest.fixture
def service(clinic, settings):
    return SchedulingService(
        professional_repository=ProfessionalRepository(),
        profile_repository=ProfileRepository(),
        appointment_repository=AppointmentRepository(),
        block_repository=BlockRepository(),
        time_off_repository=TimeOffRepository(),
        service_repository=ServiceRepository(),
        settings=settings,
    )


@pytest.fixture
def admin_session():
    return SchedulerSession(user_id="user-admin", role="admin", clinic_id=CLINIC_ID)


@pytest.fixture
def receptionist_session():
    return SchedulerSession(user_id="user-reception", role="receptionist", clinic_id=CLINIC_ID)


@pytest.fixture
def ana_session():
    return SchedulerSession(user_id=ANA_PROFILE_ID, role="professional", clinic_id=CLINIC_ID, professional_id=ANA_ID)

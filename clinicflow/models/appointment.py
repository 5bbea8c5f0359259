from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, model_validator

from clinicflow.models.status import CanonicalStatus


class Appointment(BaseModel):
    """Запись клиента к специалисту."""
    id: str
    professional_id: str
    client_id: Optional[str] = None
    start: datetime
    end: datetime
    status: CanonicalStatus = CanonicalStatus.PENDING
    service_id: Optional[str] = None
    clinic_id: Optional[str] = None
    notes: Optional[str] = None
    # Исходная ссылка на специалиста, как она хранится в базе
    raw_professional_ref: Optional[str] = None
    # True, если ссылку не удалось однозначно сопоставить со специалистом
    unresolved_professional: bool = False

    @model_validator(mode='after')
    def check_interval(self) -> 'Appointment':
        same_awareness = (self.start.tzinfo is None) == (self.end.tzinfo is None)
        if same_awareness and self.start >= self.end:
            raise ValueError("fim do agendamento deve ser posterior ao início")
        return self


class Block(BaseModel):
    """Интервал, в который специалист намеренно недоступен."""
    id: str
    professional_id: str
    start: datetime
    end: datetime
    reason: Optional[str] = None
    clinic_id: Optional[str] = None


class TimeOff(BaseModel):
    """Многодневное отсутствие специалиста (отпуск, больничный)."""
    id: str
    professional_id: str
    start_date: date
    end_date: date
    notes: Optional[str] = None
    clinic_id: Optional[str] = None

    @model_validator(mode='after')
    def check_dates(self) -> 'TimeOff':
        if self.start_date > self.end_date:
            raise ValueError("data final deve ser igual ou posterior à inicial")
        return self

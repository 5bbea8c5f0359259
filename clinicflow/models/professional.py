from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from clinicflow.utils.time_utils import MINUTES_PER_DAY, parse_clock


class WorkSchedule(BaseModel):
    """Недельный шаблон рабочего времени специалиста (время - локальное для клиники)."""
    model_config = ConfigDict(populate_by_name=True)

    days: List[int]
    start: str
    end: str
    break_start: Optional[str] = Field(None, alias="breakStart")
    break_end: Optional[str] = Field(None, alias="breakEnd")

    @field_validator('days')
    @classmethod
    def check_days(cls, days: List[int]) -> List[int]:
        for day in days:
            if not 0 <= day <= 6:
                raise ValueError(f"dia da semana inválido: {day}")
        return sorted(set(days))

    @model_validator(mode='after')
    def check_bounds(self) -> 'WorkSchedule':
        start = parse_clock(self.start)
        end = parse_clock(self.end)
        if start is None or end is None or start >= MINUTES_PER_DAY:
            raise ValueError("horário de turno inválido")
        if start >= end:
            raise ValueError("início do turno deve ser anterior ao fim")

        # Перерыв задается либо целиком, либо не задается вовсе
        if bool(self.break_start) != bool(self.break_end):
            raise ValueError("intervalo deve ter início e fim")
        if self.break_start:
            break_start = parse_clock(self.break_start)
            break_end = parse_clock(self.break_end)
            if break_start is None or break_end is None:
                raise ValueError("horário de intervalo inválido")
            if not start <= break_start < break_end <= end:
                raise ValueError("intervalo deve estar dentro do turno")
        return self

    @property
    def start_minutes(self) -> int:
        return parse_clock(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_clock(self.end)

    @property
    def has_break(self) -> bool:
        return bool(self.break_start and self.break_end)


class Professional(BaseModel):
    id: str
    name: str
    specialty: Optional[str] = None
    color: Optional[str] = None
    work_schedule: Optional[WorkSchedule] = None
    clinic_id: Optional[str] = None


class ProfileEntry(BaseModel):
    """Запись справочника профилей входа (profiles)."""
    id: str
    display_name: Optional[str] = None
    linked_professional_id: Optional[str] = None

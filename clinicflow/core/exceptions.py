"""
Исключения слоя оркестрации расписания.
Чистые компоненты (нормализатор статусов, сверка идентификаторов, движок
доступности) исключений не выбрасывают.
"""


class SchedulingError(Exception):
    """Базовая ошибка операций с расписанием."""


class PermissionDeniedError(SchedulingError):
    def __init__(self, action: str, resource: str):
        self.action = action
        self.resource = resource
        super().__init__(f"Acesso negado: {action} {resource}")


class ClinicNotSetError(SchedulingError):
    def __init__(self):
        super().__init__("Clínica não definida")


class NotFoundError(SchedulingError):
    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} não encontrado")


class SlotUnavailableError(SchedulingError):
    """Выбранный интервал недоступен для записи."""

    def __init__(self, reason):
        self.reason = reason
        super().__init__(f"Horário indisponível ({reason.value})")


class ProfessionalNotQualifiedError(SchedulingError):
    def __init__(self, professional_id: str, service_id: str):
        self.professional_id = professional_id
        self.service_id = service_id
        super().__init__("Este profissional não está habilitado para realizar este serviço")


class InvalidScheduleError(SchedulingError):
    """Некорректный график работы или период отсутствия."""

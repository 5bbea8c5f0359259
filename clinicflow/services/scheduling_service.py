"""
Сервис расписания клиники.

Оркестрирует запросы интерфейса: загружает снимок данных клиники, сверяет
ссылки на специалистов, проверяет доступность и сохраняет изменения через
репозитории. Каждая операция получает явную сессию пользователя.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from clinicflow.core.config import Settings, get_settings
from clinicflow.core.exceptions import (
    ClinicNotSetError,
    InvalidScheduleError,
    NotFoundError,
    PermissionDeniedError,
    ProfessionalNotQualifiedError,
    SlotUnavailableError,
)
from clinicflow.core.session import SchedulerSession, can_user
from clinicflow.models.appointment import Appointment, Block, TimeOff
from clinicflow.models.professional import Professional, WorkSchedule
from clinicflow.models.status import CanonicalStatus
from clinicflow.repositories.appointment_repository import AppointmentRepository
from clinicflow.repositories.block_repository import BlockRepository, TimeOffRepository
from clinicflow.repositories.professional_repository import ProfessionalRepository
from clinicflow.repositories.profile_repository import ProfileRepository
from clinicflow.repositories.service_repository import ServiceRepository
from clinicflow.services.availability_engine import (
    AvailabilityResult,
    ProposedSlot,
    SchedulingContext,
    check_availability,
)
from clinicflow.services.identifier_reconciler import (
    ALL_PROFESSIONALS,
    Resolution,
    build_profile_map,
    resolve_with_strategy,
    to_storage_ref,
)
from clinicflow.services.slot_finder import find_free_slots
from clinicflow.services.status_normalizer import is_active, normalize
from clinicflow.utils.time_utils import to_clinic_datetime

logger = logging.getLogger(__name__)

RECURRENCE_STEPS = {
    'weekly': relativedelta(weeks=1),
    'biweekly': relativedelta(weeks=2),
    'monthly': relativedelta(months=1),
}


class SchedulingService:
    """
    Сервис для управления агендой клиники.
    Отвечает за бизнес-логику создания, переноса, отмены записей, блокировок
    и периодов отсутствия.
    """

    def __init__(
        self,
        professional_repository: ProfessionalRepository,
        profile_repository: ProfileRepository,
        appointment_repository: AppointmentRepository,
        block_repository: BlockRepository,
        time_off_repository: TimeOffRepository,
        service_repository: ServiceRepository,
        settings: Optional[Settings] = None
    ):
        """
        Инициализирует SchedulingService с необходимыми репозиториями.

        Args:
            professional_repository: Репозиторий специалистов
            profile_repository: Репозиторий профилей входа
            appointment_repository: Репозиторий записей
            block_repository: Репозиторий блокировок
            time_off_repository: Репозиторий периодов отсутствия
            service_repository: Репозиторий квалификаций специалистов
            settings: Настройки (по умолчанию - глобальные)
        """
        self.professional_repository = professional_repository
        self.profile_repository = profile_repository
        self.appointment_repository = appointment_repository
        self.block_repository = block_repository
        self.time_off_repository = time_off_repository
        self.service_repository = service_repository
        self.settings = settings or get_settings()
        self.timezone = ZoneInfo(self.settings.CLINIC_TIMEZONE)

    # ------------------------------------------------------------------
    # Сессия и права
    # ------------------------------------------------------------------

    def _require_clinic(self, session: SchedulerSession) -> str:
        if not session.clinic_id:
            logger.error(f"❌ [SCHEDULING] У пользователя {session.user_id} не задана клиника")
            raise ClinicNotSetError()
        return session.clinic_id

    def _require_permission(
        self,
        session: SchedulerSession,
        action: str,
        resource: str,
        professional_id: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> None:
        if not can_user(session, action, resource, professional_id, resource_id):
            logger.warning(
                f"❌ [SCHEDULING] Доступ запрещен: user={session.user_id}, role={session.role}, "
                f"action={action}, resource={resource}, professional={professional_id}"
            )
            raise PermissionDeniedError(action, resource)

    # ------------------------------------------------------------------
    # Снимок данных
    # ------------------------------------------------------------------

    def _resolve_appointments(self, clinic_id: str, professionals: List[Professional]) -> List[Appointment]:
        """Загружает записи клиники и сверяет ссылки на специалистов."""
        rows = self.appointment_repository.list_rows(clinic_id)
        known_professionals = {professional.id: professional.name for professional in professionals}

        raw_refs = [row.get('professional_id') for row in rows]
        needs_directory = any(ref and ref not in known_professionals for ref in raw_refs)
        directory = self.profile_repository.get_directory(clinic_id) if needs_directory else {}
        resolutions = build_profile_map(raw_refs, known_professionals, directory)

        appointments = []
        for row in rows:
            raw_ref = row.get('professional_id')
            resolution = resolutions.get(raw_ref) if raw_ref else None
            if resolution is None:
                resolution = resolve_with_strategy(None, known_professionals, directory)
            if resolution.unresolved:
                logger.warning(
                    f"⚠️ [SCHEDULING] Запись {row.get('id')}: ссылка {raw_ref} не разрешена, "
                    f"отображается у специалиста {resolution.professional_id}"
                )
            appointment = self.appointment_repository.to_model(row, resolution.professional_id, resolution.unresolved)
            if appointment:
                appointments.append(appointment)
        return appointments

    def _resolve_professional_ref(self, clinic_id: str, professional_ref: Optional[str]) -> Tuple[Resolution, List[Professional]]:
        professionals = self.professional_repository.list_professionals(clinic_id)
        known_professionals = {professional.id: professional.name for professional in professionals}
        directory = {}
        if professional_ref and professional_ref not in known_professionals:
            directory = self.profile_repository.get_directory(clinic_id)
        return resolve_with_strategy(professional_ref, known_professionals, directory), professionals

    def _resolve_target_professional(self, clinic_id: str, professional_ref: Optional[str]) -> Tuple[Resolution, List[Professional]]:
        """
        Разрешает ссылку на специалиста для записи в базу.
        Запасной вариант сверки допустим только для отображения, поэтому
        неразрешенная ссылка отклоняется.
        """
        resolution, professionals = self._resolve_professional_ref(clinic_id, professional_ref)
        if resolution.unresolved:
            logger.warning(f"🚫 [SCHEDULING] Специалист {professional_ref} не найден в клинике {clinic_id}")
            raise NotFoundError("Profissional", professional_ref)
        return resolution, professionals

    def _build_context(
        self,
        clinic_id: str,
        professional_id: str,
        professionals: Optional[List[Professional]] = None
    ) -> SchedulingContext:
        if professionals is None:
            professionals = self.professional_repository.list_professionals(clinic_id)
        professional = next((p for p in professionals if p.id == professional_id), None)
        appointments = [
            appointment for appointment in self._resolve_appointments(clinic_id, professionals)
            if appointment.professional_id == professional_id
        ]
        return SchedulingContext(
            professional=professional,
            appointments=appointments,
            blocks=self.block_repository.list_blocks(clinic_id, professional_id),
            time_offs=self.time_off_repository.list_time_offs(clinic_id, professional_id),
            timezone=self.timezone,
            require_work_schedule=self.settings.REQUIRE_WORK_SCHEDULE,
        )

    def load_context(self, session: SchedulerSession, professional_id: str) -> SchedulingContext:
        """
        Загружает снимок данных специалиста для проверки доступности.

        Args:
            session: Сессия пользователя
            professional_id: ID специалиста

        Returns:
            SchedulingContext со специалистом, его записями, блокировками и отсутствиями
        """
        clinic_id = self._require_clinic(session)
        self._require_permission(session, 'read', 'slot', professional_id)
        return self._build_context(clinic_id, professional_id)

    def list_appointments(
        self,
        session: SchedulerSession,
        professional_id: Optional[str] = None,
        active_only: bool = False
    ) -> List[Appointment]:
        """
        Записи клиники со сверенными специалистами и каноническими статусами.

        Args:
            session: Сессия пользователя
            professional_id: Фильтр по специалисту ("all" или None - все)
            active_only: Только незавершенные и неотмененные записи
        """
        clinic_id = self._require_clinic(session)
        self._require_permission(session, 'read', 'appointment', professional_id)

        professionals = self.professional_repository.list_professionals(clinic_id)
        appointments = self._resolve_appointments(clinic_id, professionals)

        if professional_id and professional_id != ALL_PROFESSIONALS:
            appointments = [a for a in appointments if a.professional_id == professional_id]
        if active_only:
            appointments = [a for a in appointments if is_active(a.status)]

        mapped_count = sum(1 for a in appointments if a.professional_id != ALL_PROFESSIONALS)
        logger.info(
            f"📋 [SCHEDULING] Клиника {clinic_id}: записей {len(appointments)}, "
            f"со специалистом {mapped_count}, без специалиста {len(appointments) - mapped_count}"
        )
        return appointments

    def _get_appointment(self, clinic_id: str, appointment_id: str, professionals: List[Professional]) -> Appointment:
        appointment = next(
            (a for a in self._resolve_appointments(clinic_id, professionals) if a.id == appointment_id),
            None
        )
        if appointment is None:
            raise NotFoundError("Agendamento", appointment_id)
        return appointment

    # ------------------------------------------------------------------
    # Доступность
    # ------------------------------------------------------------------

    def check_availability(
        self,
        session: SchedulerSession,
        start: Any,
        end: Any,
        professional_ref: Optional[str],
        exclude_id: Optional[str] = None
    ) -> AvailabilityResult:
        """
        Проверяет доступность интервала для специалиста.

        Args:
            session: Сессия пользователя
            start: Начало (ISO-строка или datetime)
            end: Конец (ISO-строка или datetime)
            professional_ref: ID специалиста или связанного профиля
            exclude_id: ID записи, которую нужно игнорировать при переносе
        """
        clinic_id = self._require_clinic(session)
        resolution, professionals = self._resolve_professional_ref(clinic_id, professional_ref)
        self._require_permission(session, 'read', 'slot', resolution.professional_id)

        context = self._build_context(clinic_id, resolution.professional_id, professionals)
        result = check_availability(ProposedSlot(start, end, resolution.professional_id), context, exclude_id)
        logger.info(
            f"🔍 [SCHEDULING] Доступность {start} - {end} для {resolution.professional_id}: "
            f"{'свободно' if result.available else result.reason.value}"
        )
        return result

    def _ensure_available(
        self,
        clinic_id: str,
        start: Any,
        end: Any,
        professional_id: str,
        professionals: List[Professional],
        exclude_id: Optional[str] = None
    ) -> None:
        context = self._build_context(clinic_id, professional_id, professionals)
        result = check_availability(ProposedSlot(start, end, professional_id), context, exclude_id)
        if not result.available:
            logger.warning(
                f"🚫 [SCHEDULING] Интервал {start} - {end} недоступен для {professional_id}: {result.reason.value}"
            )
            raise SlotUnavailableError(result.reason)

    # ------------------------------------------------------------------
    # Записи
    # ------------------------------------------------------------------

    def add_appointment(self, session: SchedulerSession, data: Dict[str, Any]) -> Appointment:
        """
        Создает запись после проверки прав и доступности.

        Args:
            session: Сессия пользователя
            data: professional_id, client_id, start, end, status, service_id, notes

        Returns:
            Созданная запись

        Raises:
            PermissionDeniedError, ClinicNotSetError, NotFoundError, SlotUnavailableError
        """
        clinic_id = self._require_clinic(session)
        resolution, professionals = self._resolve_target_professional(clinic_id, data.get('professional_id'))
        professional_id = resolution.professional_id
        self._require_permission(session, 'create', 'appointment', professional_id)

        logger.info(
            f"📝 [SCHEDULING] Создание записи: clinic={clinic_id}, professional={professional_id} "
            f"({resolution.strategy.value}), client={data.get('client_id')}, {data.get('start')} - {data.get('end')}"
        )
        self._ensure_available(clinic_id, data.get('start'), data.get('end'), professional_id, professionals)

        status = normalize(data.get('status'))
        record = {
            'professional_id': to_storage_ref(professional_id),
            'client_id': data.get('client_id'),
            'service_id': data.get('service_id'),
            'start_time': to_clinic_datetime(data.get('start'), self.timezone),
            'end_time': to_clinic_datetime(data.get('end'), self.timezone),
            'status': status.value,
            'notes': data.get('notes'),
        }
        row = self.appointment_repository.create(clinic_id, record)
        appointment = self.appointment_repository.to_model(row, professional_id, resolution.unresolved)
        logger.info(f"✅ [SCHEDULING] Запись создана: id={row['id']}, status={status.value}")
        return appointment

    def update_appointment(self, session: SchedulerSession, appointment_id: str, changes: Dict[str, Any]) -> Appointment:
        """
        Переносит или изменяет запись.
        Новое время проверяется без учета самой записи; при смене специалиста
        проверяется его квалификация на услугу.

        Args:
            session: Сессия пользователя
            appointment_id: ID записи
            changes: Любые из professional_id, start, end, client_id, service_id, status, notes
        """
        clinic_id = self._require_clinic(session)
        professionals = self.professional_repository.list_professionals(clinic_id)
        current = self._get_appointment(clinic_id, appointment_id, professionals)

        self._require_permission(session, 'update', 'appointment', current.professional_id, appointment_id)

        professional_id = current.professional_id
        unresolved = current.unresolved_professional
        if changes.get('professional_id'):
            resolution, _ = self._resolve_target_professional(clinic_id, changes['professional_id'])
            professional_id = resolution.professional_id
            unresolved = False
            # Перенос на другого специалиста проверяется и по его агенде
            self._require_permission(session, 'update', 'appointment', professional_id, appointment_id)

        start = changes.get('start') or current.start
        end = changes.get('end') or current.end
        service_id = changes.get('service_id', current.service_id)

        logger.info(
            f"📅 [SCHEDULING] Перенос записи {appointment_id}: {current.professional_id} -> {professional_id}, "
            f"{start} - {end}"
        )

        if service_id and (professional_id != current.professional_id or service_id != current.service_id):
            qualified = self.service_repository.get_qualified_service_ids(clinic_id, professional_id)
            if qualified and service_id not in qualified:
                logger.warning(
                    f"🚫 [SCHEDULING] Специалист {professional_id} не выполняет услугу {service_id}"
                )
                raise ProfessionalNotQualifiedError(professional_id, service_id)

        moved = (
            'start' in changes or 'end' in changes or professional_id != current.professional_id
        )
        if moved:
            self._ensure_available(clinic_id, start, end, professional_id, professionals, exclude_id=appointment_id)

        payload: Dict[str, Any] = {}
        if 'start' in changes:
            payload['start_time'] = to_clinic_datetime(start, self.timezone)
        if 'end' in changes:
            payload['end_time'] = to_clinic_datetime(end, self.timezone)
        if changes.get('professional_id'):
            payload['professional_id'] = to_storage_ref(professional_id)
        if changes.get('client_id'):
            payload['client_id'] = changes['client_id']
        if 'service_id' in changes:
            payload['service_id'] = changes['service_id'] or None
        if changes.get('status'):
            payload['status'] = normalize(changes['status']).value
        if 'notes' in changes:
            payload['notes'] = changes['notes'] or None

        row = self.appointment_repository.update(clinic_id, appointment_id, payload)
        if row is None:
            raise NotFoundError("Agendamento", appointment_id)
        logger.info(f"✅ [SCHEDULING] Запись обновлена: id={appointment_id}")
        return self.appointment_repository.to_model(row, professional_id, unresolved)

    def update_status(self, session: SchedulerSession, appointment_id: str, status: Any) -> Appointment:
        """Меняет статус записи; статус нормализуется перед сохранением."""
        clinic_id = self._require_clinic(session)
        professionals = self.professional_repository.list_professionals(clinic_id)
        current = self._get_appointment(clinic_id, appointment_id, professionals)
        self._require_permission(session, 'update', 'appointment', current.professional_id, appointment_id)

        canonical = normalize(status)
        row = self.appointment_repository.update(clinic_id, appointment_id, {'status': canonical.value})
        if row is None:
            raise NotFoundError("Agendamento", appointment_id)
        logger.info(f"✅ [SCHEDULING] Статус записи {appointment_id}: {current.status.value} -> {canonical.value}")
        return self.appointment_repository.to_model(row, current.professional_id, current.unresolved_professional)

    def cancel_appointment(self, session: SchedulerSession, appointment_id: str) -> Appointment:
        """Отмена - это смена статуса, запись физически не удаляется."""
        return self.update_status(session, appointment_id, CanonicalStatus.CANCELLED)

    def remove_appointment(self, session: SchedulerSession, appointment_id: str) -> None:
        """Физически удаляет запись (операция оператора)."""
        clinic_id = self._require_clinic(session)
        professionals = self.professional_repository.list_professionals(clinic_id)
        current = self._get_appointment(clinic_id, appointment_id, professionals)
        self._require_permission(session, 'delete', 'appointment', current.professional_id, appointment_id)

        if not self.appointment_repository.delete(clinic_id, appointment_id):
            raise NotFoundError("Agendamento", appointment_id)
        logger.info(f"🗑️ [SCHEDULING] Запись удалена: id={appointment_id}")

    def book_recurring(
        self,
        session: SchedulerSession,
        data: Dict[str, Any],
        frequency: str,
        occurrences: int
    ) -> Dict[str, List[str]]:
        """
        Создает серию записей (еженедельно, раз в две недели или ежемесячно).
        Каждая запись проверяется отдельно, недоступные пропускаются.

        Args:
            session: Сессия пользователя
            data: Данные первой записи серии (как для add_appointment)
            frequency: weekly, biweekly или monthly
            occurrences: Количество записей в серии

        Returns:
            {'created': [ID созданных записей], 'skipped': [начала пропущенных записей]}
        """
        step = RECURRENCE_STEPS.get(frequency)
        if step is None:
            raise InvalidScheduleError(f"Frequência de recorrência inválida: {frequency}")
        if occurrences < 1:
            raise InvalidScheduleError("Número de ocorrências deve ser positivo")

        first_start = to_clinic_datetime(data.get('start'), self.timezone)
        first_end = to_clinic_datetime(data.get('end'), self.timezone)
        if first_start is None or first_end is None:
            raise InvalidScheduleError("Horário inválido")

        created: List[str] = []
        skipped: List[str] = []
        for index in range(occurrences):
            occurrence = dict(data)
            occurrence['start'] = first_start + step * index
            occurrence['end'] = first_end + step * index
            try:
                appointment = self.add_appointment(session, occurrence)
            except SlotUnavailableError:
                skipped.append(occurrence['start'].isoformat())
                continue
            created.append(appointment.id)

        logger.info(f"🔁 [SCHEDULING] Серия {frequency}: создано {len(created)}, пропущено {len(skipped)}")
        return {'created': created, 'skipped': skipped}

    # ------------------------------------------------------------------
    # Блокировки и отсутствия
    # ------------------------------------------------------------------

    def add_block(self, session: SchedulerSession, data: Dict[str, Any]) -> Block:
        """Создает блокировку, если интервал свободен."""
        clinic_id = self._require_clinic(session)
        professional_id = data.get('professional_id')
        if not professional_id:
            raise InvalidScheduleError("Profissional não informado")
        self._require_permission(session, 'block', 'schedule', professional_id)

        professionals = self.professional_repository.list_professionals(clinic_id)
        self._ensure_available(clinic_id, data.get('start'), data.get('end'), professional_id, professionals)

        row = self.block_repository.create(clinic_id, {
            'professional_id': professional_id,
            'start_time': to_clinic_datetime(data.get('start'), self.timezone),
            'end_time': to_clinic_datetime(data.get('end'), self.timezone),
            'reason': data.get('reason'),
        })
        logger.info(f"✅ [SCHEDULING] Блокировка создана: id={row['id']}, professional={professional_id}")
        return self.block_repository.to_model(row)

    def remove_block(self, session: SchedulerSession, block_id: str) -> None:
        clinic_id = self._require_clinic(session)
        row = self.block_repository.get_by_id(clinic_id, block_id)
        if row is None:
            raise NotFoundError("Bloqueio", block_id)
        self._require_permission(session, 'block', 'schedule', row.get('professional_id'))
        self.block_repository.delete(clinic_id, block_id)
        logger.info(f"🗑️ [SCHEDULING] Блокировка удалена: id={block_id}")

    def add_time_off(self, session: SchedulerSession, data: Dict[str, Any]) -> TimeOff:
        """Создает период отсутствия (даты включительно)."""
        clinic_id = self._require_clinic(session)
        professional_id = data.get('professional_id')
        if not professional_id:
            raise InvalidScheduleError("Profissional não informado")
        self._require_permission(session, 'time_off', 'schedule', professional_id)

        start_date = _as_date(data.get('start_date'))
        end_date = _as_date(data.get('end_date'))
        if start_date is None or end_date is None:
            raise InvalidScheduleError("Datas de afastamento inválidas")
        if start_date > end_date:
            raise InvalidScheduleError("Data final deve ser igual ou posterior à inicial")

        row = self.time_off_repository.create(clinic_id, {
            'professional_id': professional_id,
            'start_date': start_date,
            'end_date': end_date,
            'notes': data.get('notes'),
        })
        logger.info(f"✅ [SCHEDULING] Отсутствие создано: id={row['id']}, {start_date} - {end_date}")
        return self.time_off_repository.to_model(row)

    def remove_time_off(self, session: SchedulerSession, time_off_id: str) -> None:
        clinic_id = self._require_clinic(session)
        row = self.time_off_repository.get_by_id(clinic_id, time_off_id)
        if row is None:
            raise NotFoundError("Afastamento", time_off_id)
        self._require_permission(session, 'time_off', 'schedule', row.get('professional_id'))
        self.time_off_repository.delete(clinic_id, time_off_id)
        logger.info(f"🗑️ [SCHEDULING] Отсутствие удалено: id={time_off_id}")

    # ------------------------------------------------------------------
    # График работы и свободные слоты
    # ------------------------------------------------------------------

    def set_work_schedule(
        self,
        session: SchedulerSession,
        professional_id: str,
        schedule: Optional[Dict[str, Any]]
    ) -> Professional:
        """
        Сохраняет график работы специалиста (None - удалить график).

        Raises:
            InvalidScheduleError: график нарушает инварианты смены и перерыва
        """
        clinic_id = self._require_clinic(session)
        self._require_permission(session, 'update', 'professional', professional_id)

        work_schedule = None
        if schedule is not None:
            try:
                work_schedule = WorkSchedule.model_validate(schedule)
            except ValueError as e:
                raise InvalidScheduleError(str(e)) from e

        professional = self.professional_repository.update_work_schedule(clinic_id, professional_id, work_schedule)
        if professional is None:
            raise NotFoundError("Profissional", professional_id)
        logger.info(f"✅ [SCHEDULING] График специалиста {professional_id} сохранен")
        return professional

    def find_free_slots(
        self,
        session: SchedulerSession,
        professional_id: str,
        day: date,
        duration_minutes: int,
        now: Optional[datetime] = None
    ) -> List[Dict[str, str]]:
        """Свободные интервалы специалиста на дату."""
        context = self.load_context(session, professional_id)
        if context.professional is None:
            raise NotFoundError("Profissional", professional_id)
        return find_free_slots(
            day,
            duration_minutes,
            context,
            step_minutes=self.settings.SLOT_STEP_MINUTES,
            business_hours=(self.settings.BUSINESS_HOURS_START, self.settings.BUSINESS_HOURS_END),
            now=now or datetime.now(self.timezone),
            lead_minutes=self.settings.MIN_BOOKING_LEAD_MINUTES,
        )


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None

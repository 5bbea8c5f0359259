"""
Нормализация статусов записей.

В базе и в интерфейсе исторически встречаются статусы на португальском и
английском, а также устаревшие синонимы этапов приема. Здесь они сводятся к
закрытому набору CanonicalStatus. Функции тотальны и никогда не выбрасывают
исключений.
"""

from typing import Optional, Union

from clinicflow.models.status import CanonicalStatus

STATUS_MAP = {
    # Португальские значения интерфейса
    'agendado': CanonicalStatus.PENDING,
    'pendente': CanonicalStatus.PENDING,
    'confirmado': CanonicalStatus.CONFIRMED,
    'aguardando': CanonicalStatus.IN_PROGRESS,
    'atendimento': CanonicalStatus.IN_PROGRESS,
    'em atendimento': CanonicalStatus.IN_PROGRESS,
    'em_atendimento': CanonicalStatus.IN_PROGRESS,
    'concluído': CanonicalStatus.COMPLETED,
    'concluido': CanonicalStatus.COMPLETED,
    'finalizado': CanonicalStatus.COMPLETED,
    'cancelado': CanonicalStatus.CANCELLED,
    'falta': CanonicalStatus.CANCELLED,
    'solicitado': CanonicalStatus.REQUESTED,
    # Английские и канонические значения
    'pending': CanonicalStatus.PENDING,
    'confirmed': CanonicalStatus.CONFIRMED,
    'in_progress': CanonicalStatus.IN_PROGRESS,
    'waiting': CanonicalStatus.IN_PROGRESS,
    'medical_done': CanonicalStatus.COMPLETED,
    'completed': CanonicalStatus.COMPLETED,
    'finalized': CanonicalStatus.COMPLETED,
    'cancelled': CanonicalStatus.CANCELLED,
    'canceled': CanonicalStatus.CANCELLED,
    'no_show': CanonicalStatus.CANCELLED,
    'requested': CanonicalStatus.REQUESTED,
}


def normalize(raw: Union[str, CanonicalStatus, None]) -> CanonicalStatus:
    """
    Сводит произвольный статус к каноническому.

    Args:
        raw: Статус в любом известном написании (регистр не важен)

    Returns:
        Канонический статус; пустой или неизвестный статус дает PENDING

    Examples:
        >>> normalize("Confirmado")
        <CanonicalStatus.CONFIRMED: 'confirmed'>
        >>> normalize("xyz-unknown")
        <CanonicalStatus.PENDING: 'pending'>
    """
    if isinstance(raw, CanonicalStatus):
        return raw
    if not raw or not isinstance(raw, str):
        return CanonicalStatus.PENDING
    return STATUS_MAP.get(raw.strip().lower(), CanonicalStatus.PENDING)


def is_cancelled(raw: Union[str, CanonicalStatus, None]) -> bool:
    """Запись отменена (включая неявку) и не занимает время специалиста."""
    return normalize(raw) is CanonicalStatus.CANCELLED


def is_active(raw: Optional[Union[str, CanonicalStatus]]) -> bool:
    """Запись еще не завершена и не отменена."""
    return normalize(raw) not in (CanonicalStatus.CANCELLED, CanonicalStatus.COMPLETED)

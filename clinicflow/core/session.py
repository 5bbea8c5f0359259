"""
Явная сессия пользователя и проверка прав доступа по ролям.

Сессия передается в каждую операцию сервиса расписания, глобального
состояния текущего пользователя нет.
"""

import logging
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ADMIN_ROLES = {'super_admin', 'admin', 'clinic_owner'}

RECEPTIONIST_ACTIONS = {'create', 'update', 'read', 'delete', 'block', 'time_off'}
RECEPTIONIST_RESOURCES = {'appointment', 'client', 'slot', 'schedule', 'professional', 'service'}


class SchedulerSession(BaseModel):
    """Пользователь, от имени которого выполняется операция."""
    user_id: str
    role: str
    clinic_id: Optional[str] = None
    professional_id: Optional[str] = None


def can_user(
    session: SchedulerSession,
    action: str,
    resource: str,
    professional_id: Optional[str] = None,
    resource_id: Optional[str] = None
) -> bool:
    """
    Проверяет, может ли пользователь выполнить действие над ресурсом.

    Args:
        session: Сессия пользователя
        action: Действие (create, read, update, delete, block, time_off)
        resource: Ресурс (appointment, client, schedule, professional, ...)
        professional_id: Специалист, к агенде которого относится операция
        resource_id: ID конкретного ресурса (для проверки "только свой профиль")

    Returns:
        True, если действие разрешено
    """
    role = session.role

    if role in ADMIN_ROLES:
        return True

    if role == 'receptionist':
        return action in RECEPTIONIST_ACTIONS and resource in RECEPTIONIST_RESOURCES

    if role == 'professional':
        # Специалист работает только со своей агендой
        if professional_id and session.professional_id and professional_id != session.professional_id:
            return False
        if resource == 'appointment':
            return action in ('read', 'update', 'delete')
        if resource == 'client':
            return action in ('read', 'update')
        if resource in ('professional', 'profile'):
            if action not in ('read', 'update'):
                return False
            return not (resource_id and resource_id != session.user_id)
        if resource in ('report', 'financial', 'service', 'slot'):
            return action == 'read'
        if resource in ('block', 'time_off', 'schedule'):
            return True
        return False

    if role == 'client':
        if resource == 'appointment':
            return action in ('read', 'create', 'update', 'delete')
        if resource in ('client', 'profile'):
            if action not in ('read', 'update'):
                return False
            return not (resource_id and resource_id != session.user_id)
        if resource == 'history':
            return action == 'read'
        if resource in ('professional', 'service', 'slot'):
            return action == 'read'
        return False

    logger.warning(f"⚠️ [PERMISSIONS] Неизвестная роль: {role}")
    return False

"""
Сверка ссылок на специалиста.

Исторически записи хранят в professional_id либо ID из таблицы professionals,
либо ID профиля входа (profiles), связанного со специалистом. Функции модуля
восстанавливают настоящий ID специалиста по цепочке стратегий и никогда не
выбрасывают исключений: неразрешенная ссылка только логируется.
"""

import enum
import logging
import re
from collections import abc
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Union

from clinicflow.models.professional import ProfileEntry

logger = logging.getLogger(__name__)

ALL_PROFESSIONALS = "all"

_UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)

KnownProfessionals = Union[Mapping[str, Optional[str]], Iterable[str]]


class ResolutionStrategy(str, enum.Enum):
    UNASSIGNED = "unassigned"
    DIRECT = "direct"
    LINKED_PROFILE = "linked_profile"
    NAME_MATCH = "name_match"
    FALLBACK = "fallback"


class Resolution(NamedTuple):
    professional_id: str
    strategy: ResolutionStrategy
    unresolved: bool = False


def _ordered_ids(known_professionals: KnownProfessionals) -> List[str]:
    """
    Возвращает ID специалистов в стабильном порядке.
    Множество сортируется, последовательность и словарь сохраняют порядок вызывающего.
    """
    if isinstance(known_professionals, (set, frozenset)):
        return sorted(known_professionals)
    return list(known_professionals)


def _names_match(left: Optional[str], right: Optional[str]) -> bool:
    """Имена совпадают, если одно содержит другое (без учета регистра)."""
    if not left or not right:
        return False
    left, right = left.strip().lower(), right.strip().lower()
    if not left or not right:
        return False
    return left in right or right in left


def resolve_with_strategy(
    raw_professional_ref: Optional[str],
    known_professionals: KnownProfessionals,
    profile_directory: Mapping[str, ProfileEntry],
) -> Resolution:
    """
    Восстанавливает ID специалиста по "сырой" ссылке.

    Стратегии применяются по порядку, побеждает первая сработавшая:
    пустая ссылка или "all" -> "all"; прямая ссылка на специалиста; профиль со связанным
    специалистом; совпадение имени профиля с именем специалиста; первый
    специалист клиники как запасной вариант (с пометкой unresolved).

    Args:
        raw_professional_ref: Ссылка из записи (ID специалиста или профиля)
        known_professionals: ID специалистов клиники; словарь ID -> имя
            дополнительно включает сопоставление по имени
        profile_directory: Справочник профилей по ID

    Returns:
        Resolution с ID специалиста (или "all") и примененной стратегией
    """
    if not raw_professional_ref or raw_professional_ref == ALL_PROFESSIONALS:
        return Resolution(ALL_PROFESSIONALS, ResolutionStrategy.UNASSIGNED)

    ordered_ids = _ordered_ids(known_professionals)
    known_ids = set(ordered_ids)

    if raw_professional_ref in known_ids:
        return Resolution(raw_professional_ref, ResolutionStrategy.DIRECT)

    profile = profile_directory.get(raw_professional_ref)
    if profile is not None:
        if profile.linked_professional_id and profile.linked_professional_id in known_ids:
            return Resolution(profile.linked_professional_id, ResolutionStrategy.LINKED_PROFILE)

        if isinstance(known_professionals, abc.Mapping):
            for professional_id in ordered_ids:
                if _names_match(profile.display_name, known_professionals.get(professional_id)):
                    logger.info(
                        f"🔗 [RECONCILER] Профиль {raw_professional_ref} ('{profile.display_name}') "
                        f"сопоставлен по имени со специалистом {professional_id}"
                    )
                    return Resolution(professional_id, ResolutionStrategy.NAME_MATCH)

    if not ordered_ids:
        logger.warning(
            f"⚠️ [RECONCILER] Ссылка {raw_professional_ref} не разрешена: в клинике нет специалистов"
        )
        return Resolution(raw_professional_ref, ResolutionStrategy.FALLBACK, unresolved=True)

    fallback_id = ordered_ids[0]
    logger.warning(
        f"⚠️ [RECONCILER] Ссылка {raw_professional_ref} не разрешена, "
        f"используется первый специалист {fallback_id}. Требуется исправление данных"
    )
    return Resolution(fallback_id, ResolutionStrategy.FALLBACK, unresolved=True)


def resolve(
    raw_professional_ref: Optional[str],
    known_professionals: KnownProfessionals,
    profile_directory: Mapping[str, ProfileEntry],
) -> str:
    """Возвращает только ID специалиста (или "all"), см. resolve_with_strategy."""
    return resolve_with_strategy(raw_professional_ref, known_professionals, profile_directory).professional_id


def build_profile_map(
    raw_refs: Iterable[Optional[str]],
    known_professionals: KnownProfessionals,
    profile_directory: Mapping[str, ProfileEntry],
) -> Dict[str, Resolution]:
    """
    Разрешает пачку ссылок за один проход (при загрузке записей клиники).

    Returns:
        Словарь "сырая ссылка -> Resolution" для всех непустых ссылок
    """
    resolutions: Dict[str, Resolution] = {}
    for raw_ref in raw_refs:
        if not raw_ref or raw_ref in resolutions:
            continue
        resolutions[raw_ref] = resolve_with_strategy(raw_ref, known_professionals, profile_directory)

    unresolved_count = sum(1 for resolution in resolutions.values() if resolution.unresolved)
    if unresolved_count:
        logger.warning(f"⚠️ [RECONCILER] Не разрешено ссылок: {unresolved_count} из {len(resolutions)}")
    return resolutions


def to_storage_ref(professional_id: Optional[str]) -> Optional[str]:
    """
    Готовит ID специалиста к записи в базу.
    Сентинел "all" и значения, не являющиеся UUID, сохраняются как NULL.
    """
    if not professional_id or professional_id == ALL_PROFESSIONALS:
        return None
    if not _UUID_PATTERN.match(professional_id):
        logger.warning(f"⚠️ [RECONCILER] ID специалиста '{professional_id}' не UUID, сохраняется как NULL")
        return None
    return professional_id

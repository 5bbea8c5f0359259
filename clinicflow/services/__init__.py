from .status_normalizer import normalize, is_cancelled, is_active
from .identifier_reconciler import resolve, resolve_with_strategy, build_profile_map, to_storage_ref
from .availability_engine import check_availability, is_available, SchedulingContext, ProposedSlot
from .slot_finder import find_free_slots, find_free_slots_for_professionals

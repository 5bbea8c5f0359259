import enum


class CanonicalStatus(str, enum.Enum):
    """Канонический статус записи. Любой "сырой" статус сводится к одному из шести."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REQUESTED = "requested"

    def __str__(self) -> str:
        return self.value

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from focusflux.config import DeliveryChannel, ReminderKind


class TimerHandle(Protocol):
    """Anything that can cancel a pending callback (asyncio.TimerHandle qualifies)."""

    def cancel(self) -> None: ...


@dataclass(frozen=True)
class ReminderKey:
    """Identifies one reminder-bearing entity.

    One entity maps to exactly one key; the kind namespaces the id.
    """
    kind: ReminderKind
    entity_id: str

    @classmethod
    def for_task(cls, entity_id: str) -> "ReminderKey":
        return cls(ReminderKind.TASK, entity_id)

    @classmethod
    def for_daily_task(cls, entity_id: str) -> "ReminderKey":
        return cls(ReminderKind.DAILY, entity_id)

    @property
    def is_valid(self) -> bool:
        return isinstance(self.entity_id, str) and self.entity_id.strip() != ""

    def __str__(self) -> str:
        return f"{self.kind.value}-{self.entity_id}"


@dataclass
class ReminderEntity:
    """A task-like record from the entity feed.

    Only the fields the reminder engine reads; everything else about the
    task stays with the persistence layer.
    """
    id: str
    title: str
    reminder_time: Optional[str] = None
    completed: bool = False
    kind: ReminderKind = ReminderKind.TASK

    @property
    def key(self) -> ReminderKey:
        return ReminderKey(self.kind, self.id)

    @property
    def has_reminder(self) -> bool:
        return bool(self.reminder_time)

    @property
    def wants_reminder(self) -> bool:
        """True when the entity should currently have a scheduled reminder."""
        return self.has_reminder and not self.completed

    @classmethod
    def from_document(cls, doc: Mapping[str, Any], kind: ReminderKind = ReminderKind.TASK) -> "ReminderEntity":
        """Create an entity from a document-store record.

        Store documents carry their id as "$id"; plain dicts may use "id".
        """
        entity_id = doc.get("$id", doc.get("id"))
        reminder_time = doc.get("reminderTime", doc.get("reminder_time"))
        return cls(
            id="" if entity_id is None else str(entity_id),
            title=doc.get("title") or "",
            reminder_time=reminder_time or None,
            completed=bool(doc.get("completed", False)),
            kind=kind,
        )


@dataclass
class ReminderSpec:
    """What to schedule: a label at a wall-clock time of day for a key."""
    key: ReminderKey
    label: str
    time_of_day: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_entity(cls, entity: ReminderEntity, metadata: Optional[Dict[str, Any]] = None) -> "ReminderSpec":
        return cls(
            key=entity.key,
            label=entity.title,
            time_of_day=entity.reminder_time or "",
            metadata=dict(metadata or {}),
        )


@dataclass
class ScheduledReminder:
    """Registry entry for a pending reminder timer."""
    key: ReminderKey
    timer_handle: TimerHandle
    fire_at: datetime


@dataclass
class NotificationPayload:
    """Everything needed for one delivery. Built per fire, never stored."""
    title: str
    body: str
    tag: str
    require_interaction: bool = True
    on_activate: Optional[Callable[[], None]] = None


@dataclass(frozen=True)
class DeliveryResult:
    delivered: bool
    via: DeliveryChannel


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconciliation pass.

    scheduled < total means some reminders were skipped (disabled, or a
    malformed time); callers can detect degraded completion from this alone.
    """
    scheduled: int
    total: int


def reminders_enabled_from_settings(settings: Optional[Mapping[str, Any]]) -> bool:
    """Read the reminders toggle from a user settings document.

    Missing settings, or a missing toggle, mean reminders are on.
    """
    if not settings:
        return True
    notifications = settings.get("notifications") or {}
    return notifications.get("reminders") is not False

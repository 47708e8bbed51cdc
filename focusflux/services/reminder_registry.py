import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from focusflux.config import ReminderKind
from focusflux.models.entities import ReminderKey, ScheduledReminder, TimerHandle

logger = logging.getLogger(__name__)


class ReminderRegistry:
    """In-memory map of reminder key -> pending timer.

    The single source of truth for what is currently scheduled. The registry
    owns every timer handle: nothing else cancels them, and at most one entry
    exists per key.
    """

    def __init__(self) -> None:
        self._entries: Dict[ReminderKey, ScheduledReminder] = {}

    def has(self, key: ReminderKey) -> bool:
        return key in self._entries

    def get(self, key: ReminderKey) -> Optional[ScheduledReminder]:
        return self._entries.get(key)

    def set(self, key: ReminderKey, timer_handle: TimerHandle, fire_at: datetime) -> None:
        """Insert an entry, cancelling the timer of any entry it replaces."""
        previous = self._entries.pop(key, None)
        if previous is not None:
            previous.timer_handle.cancel()
            logger.debug(f"Replaced pending reminder {key}")
        self._entries[key] = ScheduledReminder(key=key, timer_handle=timer_handle, fire_at=fire_at)

    def clear(self, key: ReminderKey) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        entry.timer_handle.cancel()
        logger.debug(f"Cleared reminder {key}")
        return True

    def discard(self, key: ReminderKey, timer_handle: TimerHandle) -> bool:
        """Remove the entry for key only if it still holds this timer.

        Used by a firing timer to deregister itself without removing a newer
        entry that replaced it. The timer is not cancelled: it is the caller.
        """
        entry = self._entries.get(key)
        if entry is None or entry.timer_handle is not timer_handle:
            return False
        del self._entries[key]
        return True

    def clear_all(self) -> int:
        """Cancel every timer. Returns how many were cleared."""
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            entry.timer_handle.cancel()
        if entries:
            logger.info(f"Cleared all {len(entries)} active reminders")
        return len(entries)

    def size(self) -> int:
        return len(self._entries)

    def keys(self, kind: Optional[ReminderKind] = None) -> List[ReminderKey]:
        return [key for key in self._entries if kind is None or key.kind == kind]

    def entries(self) -> Iterable[ScheduledReminder]:
        return list(self._entries.values())

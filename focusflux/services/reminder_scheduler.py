"""
Reminder scheduler for FocusFlux.

Turns a wall-clock time of day ("09:00") into a one-shot timer:
- fire_at is today at that time, or the same time tomorrow when today's
  instant is not strictly in the future
- the timer is registered in the ReminderRegistry under the reminder key,
  replacing any earlier timer for the same key
- on fire the timer deregisters itself and hands a NotificationPayload to
  the NotificationEmitter

Timers are one-shot. A reminder recurs daily only because reconciliation is
re-run (app start, settings change, task edits) and re-arms it.
"""
import logging
import re
from datetime import datetime, time, timedelta
from typing import Optional

from focusflux.config import ROLLOVER_HOURS, ReminderKind
from focusflux.events import AppEvent, EventBus
from focusflux.formatters import TimeFormatter
from focusflux.i18n import t
from focusflux.models.entities import NotificationPayload, ReminderKey, ReminderSpec, TimerHandle
from focusflux.services.notification_emitter import NotificationEmitter
from focusflux.services.reminder_registry import ReminderRegistry
from focusflux.services.timers import AsyncScheduler, Clock, TimerFactory

logger = logging.getLogger(__name__)

# "14:30", "9:05", "2:30 PM"
_TIME_OF_DAY_RE = re.compile(r"^(\d{1,2}):(\d{2})(?:\s*([AaPp][Mm]))?$")

_BANNER_KEYS = {
    ReminderKind.TASK: "task_reminder",
    ReminderKind.DAILY: "daily_task_reminder",
}

ON_ACTIVATE = "on_activate"


def parse_time_of_day(value: object) -> Optional[time]:
    """Parse a time-of-day string, returning None if it is malformed.

    Accepts 24-hour "HH:MM" (one-digit hours allowed) and 12-hour times with
    an AM/PM suffix.
    """
    if not isinstance(value, str):
        return None
    match = _TIME_OF_DAY_RE.match(value.strip())
    if match is None:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2))
    meridiem = match.group(3)

    if meridiem:
        if not 1 <= hours <= 12:
            return None
        if meridiem.upper() == "PM" and hours != 12:
            hours += 12
        elif meridiem.upper() == "AM" and hours == 12:
            hours = 0

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return time(hours, minutes)


def compute_fire_at(time_of_day: time, now: datetime) -> datetime:
    """Next instant at time_of_day that is strictly after now."""
    fire_at = now.replace(hour=time_of_day.hour, minute=time_of_day.minute, second=0, microsecond=0)
    if fire_at <= now:
        fire_at += timedelta(hours=ROLLOVER_HOURS)
    return fire_at


class ReminderScheduler:
    """Arms, replaces and cancels reminder timers.

    Dependencies are injected so the scheduler never reaches into ambient
    state: the registry it writes to, the emitter it delivers through, the
    timer factory, the async scheduler used to run delivery, and the clock.
    """

    def __init__(
        self,
        registry: ReminderRegistry,
        emitter: NotificationEmitter,
        timers: TimerFactory,
        async_scheduler: AsyncScheduler,
        clock: Clock = datetime.now,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._registry = registry
        self._emitter = emitter
        self._timers = timers
        self._schedule_async = async_scheduler
        self._clock = clock
        self._event_bus = event_bus

    def schedule(self, spec: ReminderSpec) -> bool:
        """Arm a reminder for spec, replacing any pending one for the same key.

        Returns False (and schedules nothing) when the key or the time of day
        is malformed. Never raises for bad input.
        """
        if not isinstance(spec.key, ReminderKey) or not spec.key.is_valid:
            logger.warning(f"Refusing to schedule reminder without a valid key: {spec.key!r}")
            return False

        time_of_day = parse_time_of_day(spec.time_of_day)
        if time_of_day is None:
            logger.warning(f"Invalid reminder time format for {spec.key}: {spec.time_of_day!r}")
            return False

        now = self._clock()
        fire_at = compute_fire_at(time_of_day, now)
        delay = (fire_at - now).total_seconds()

        timer: Optional[TimerHandle] = None

        def on_fire() -> None:
            self._on_fire(spec, timer)

        timer = self._timers(delay, on_fire)
        self._registry.set(spec.key, timer, fire_at)

        logger.info(
            f"Reminder for '{spec.label}' ({spec.key}) set for "
            f"{TimeFormatter.fire_time_to_display(fire_at, now)}, in {TimeFormatter.seconds_to_short(delay)}"
        )
        if self._event_bus is not None:
            self._event_bus.emit(AppEvent.REMINDER_SCHEDULED, {"key": spec.key, "fire_at": fire_at})
        return True

    def cancel(self, key: ReminderKey) -> bool:
        removed = self._registry.clear(key)
        if removed and self._event_bus is not None:
            self._event_bus.emit(AppEvent.REMINDER_CANCELLED, {"key": key})
        return removed

    def _on_fire(self, spec: ReminderSpec, timer: Optional[TimerHandle]) -> None:
        if timer is None or not self._registry.discard(spec.key, timer):
            # Replaced or cancelled after the loop had already picked it up
            logger.debug(f"Ignoring stale timer for {spec.key}")
            return

        fired_at = self._clock()
        payload = NotificationPayload(
            title=t(_BANNER_KEYS.get(spec.key.kind, "task_reminder")),
            body=spec.label,
            tag=f"{spec.key}-{int(fired_at.timestamp() * 1000)}",
            require_interaction=True,
            on_activate=(spec.metadata or {}).get(ON_ACTIVATE),
        )
        logger.info(f"Reminder time reached for '{spec.label}' ({spec.key})")

        if self._event_bus is not None:
            self._event_bus.emit(AppEvent.REMINDER_FIRED, {"key": spec.key, "tag": payload.tag})

        async def deliver() -> None:
            await self._emitter.emit(payload)

        self._schedule_async(deliver)

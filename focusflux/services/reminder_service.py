"""
Reminder service for FocusFlux.

Facade over the reminder engine that the task layer talks to:
- targeted schedule/cancel when a single task is created, edited, toggled
  or deleted
- full reconciliation when a task list is loaded or the reminders setting
  changes
- an early permission request at startup
- a separate, explicitly labelled test-notification path that never touches
  the reminder registry

Architecture:
- Task lifecycle and settings events arrive on the EventBus
- The "reminders enabled" setting is read through an injected callable on
  every operation, never cached
- stop() clears every pending reminder (logout / app teardown)
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from focusflux.config import DEFAULT_TEST_DELAY_SECONDS, REMINDER_ROUTES, PermissionState, ReminderKind
from focusflux.events import AppEvent, EventBus, Subscription
from focusflux.i18n import t
from focusflux.models.entities import (
    DeliveryResult,
    NotificationPayload,
    ReconcileResult,
    ReminderEntity,
    ReminderKey,
    ReminderSpec,
    TimerHandle,
)
from focusflux.services.notification_emitter import NotificationEmitter
from focusflux.services.permission_gate import PermissionGate
from focusflux.services.reconciliation import ReminderReconciler
from focusflux.services.reminder_registry import ReminderRegistry
from focusflux.services.reminder_scheduler import ON_ACTIVATE, ReminderScheduler
from focusflux.services.timers import AsyncScheduler, Clock, TimerFactory

logger = logging.getLogger(__name__)

_TASK_EVENTS = (
    AppEvent.TASK_CREATED,
    AppEvent.TASK_UPDATED,
    AppEvent.TASK_COMPLETED,
    AppEvent.TASK_UNCOMPLETED,
)


class ReminderService:
    """Keeps reminders in step with tasks and settings."""

    def __init__(
        self,
        scheduler: ReminderScheduler,
        registry: ReminderRegistry,
        emitter: NotificationEmitter,
        gate: PermissionGate,
        timers: TimerFactory,
        async_scheduler: AsyncScheduler,
        reminders_enabled: Callable[[], bool],
        clock: Clock,
        entity_feed: Optional[Callable[[], Iterable[ReminderEntity]]] = None,
        navigate: Optional[Callable[[str], None]] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._scheduler = scheduler
        self._registry = registry
        self._emitter = emitter
        self._gate = gate
        self._timers = timers
        self._schedule_async = async_scheduler
        self._reminders_enabled = reminders_enabled
        self._clock = clock
        self._entity_feed = entity_feed
        self._navigate = navigate
        self._event_bus = event_bus

        self._reconciler = ReminderReconciler(scheduler, registry, metadata_factory=self.metadata_for)
        self._subscriptions: List[Subscription] = []
        self._running = False

    # ── Lifecycle ──────────────────────────────────────────────────────

    def start(self) -> None:
        """Subscribe to task and settings events."""
        if self._running:
            return
        self._running = True
        if self._event_bus is not None:
            for event in _TASK_EVENTS:
                self._subscriptions.append(self._event_bus.subscribe(event, self._on_task_event))
            self._subscriptions.append(self._event_bus.subscribe(AppEvent.TASK_DELETED, self._on_task_deleted))
            self._subscriptions.append(self._event_bus.subscribe(AppEvent.TASKS_LOADED, self._on_tasks_loaded))
            self._subscriptions.append(
                self._event_bus.subscribe(AppEvent.SETTINGS_CHANGED, self._on_settings_changed)
            )
        logger.info("Reminder service started")

    def stop(self) -> None:
        """Unsubscribe and cancel every pending reminder (logout / teardown)."""
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions.clear()
        self._running = False
        self._registry.clear_all()
        logger.info("Reminder service stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def prepare_permissions(self) -> PermissionState:
        """Ask for notification permission up front if nobody has decided yet."""
        state = await self._gate.request_permission()
        logger.info(f"Notification permission at startup: {state.value}")
        return state

    # ── Targeted operations ────────────────────────────────────────────

    def sync_entity(self, entity: ReminderEntity) -> bool:
        """Bring one entity's reminder up to date after create/update/toggle.

        Returns True if a reminder is now scheduled for it.
        """
        if not self._reminders_enabled() or not entity.wants_reminder:
            self._scheduler.cancel(entity.key)
            return False
        return self._scheduler.schedule(ReminderSpec.from_entity(entity, self.metadata_for(entity)))

    def remove_entity(self, key: ReminderKey) -> bool:
        """Cancel the reminder of a deleted entity."""
        return self._scheduler.cancel(key)

    def reconcile(
        self,
        entities: Iterable[ReminderEntity],
        reminders_enabled: Optional[bool] = None,
        prune_missing: bool = False,
        kind: Optional[ReminderKind] = None,
    ) -> ReconcileResult:
        """Full reconciliation for a feed; reads the setting live unless given."""
        if reminders_enabled is None:
            reminders_enabled = self._reminders_enabled()
        return self._reconciler.reconcile(entities, reminders_enabled, prune_missing=prune_missing, kind=kind)

    def metadata_for(self, entity: ReminderEntity) -> Dict[str, Any]:
        """Metadata attached to an entity's reminder: where activation navigates."""
        route = REMINDER_ROUTES.get(entity.kind)
        metadata: Dict[str, Any] = {"route": route}
        if self._navigate is not None and route is not None:
            navigate = self._navigate
            metadata[ON_ACTIVATE] = lambda: navigate(route)
        return metadata

    # ── Diagnostics ────────────────────────────────────────────────────

    def active_count(self) -> int:
        return self._registry.size()

    def keys(self, kind: Optional[ReminderKind] = None) -> List[ReminderKey]:
        return self._registry.keys(kind)

    # ── Test notifications ─────────────────────────────────────────────

    async def send_test_notification(self) -> DeliveryResult:
        """Deliver a test notification right now, bypassing the enabled setting."""
        return await self._emitter.emit(self._test_payload())

    def schedule_test_notification(self, delay_seconds: float = DEFAULT_TEST_DELAY_SECONDS) -> TimerHandle:
        """Deliver a test notification after delay_seconds.

        Separate from reminder scheduling: nothing is registered,
        so real reminders are never affected. Cancel through the returned handle.
        """
        payload = self._test_payload()

        def on_fire() -> None:
            async def deliver() -> None:
                await self._emitter.emit(payload)
            self._schedule_async(deliver)

        logger.info(f"Test notification in {delay_seconds}s")
        return self._timers(delay_seconds, on_fire)

    def _test_payload(self) -> NotificationPayload:
        now = self._clock()
        return NotificationPayload(
            title=t("test_notification_title"),
            body=f"{t('test_notification_body')} ({now.strftime('%H:%M:%S')})",
            tag=f"test-{int(now.timestamp() * 1000)}",
            require_interaction=True,
        )

    # ── Event handlers ─────────────────────────────────────────────────

    def _on_task_event(self, data: Any) -> None:
        entity = _entity_from_event(data)
        if entity is None:
            logger.warning(f"Task event without a usable entity: {data!r}")
            return
        self.sync_entity(entity)

    def _on_task_deleted(self, data: Any) -> None:
        key = _key_from_event(data)
        if key is None:
            logger.warning(f"Task deletion event without a usable key: {data!r}")
            return
        self.remove_entity(key)

    def _on_tasks_loaded(self, data: Any) -> None:
        if not isinstance(data, dict):
            logger.warning(f"Tasks loaded event without a payload dict: {data!r}")
            return
        kind = _coerce_kind(data.get("kind"))
        if kind is None:
            return
        self.reconcile(
            _coerce_entities(data.get("entities", []), kind),
            prune_missing=bool(data.get("prune_missing", False)),
            kind=kind,
        )

    def _on_settings_changed(self, data: Any) -> None:
        kind = ReminderKind.TASK
        if isinstance(data, dict):
            kind = _coerce_kind(data.get("kind"))
            if kind is None:
                return
        if isinstance(data, dict) and "entities" in data:
            entities = data["entities"]
        elif self._entity_feed is not None:
            entities = self._entity_feed()
        else:
            logger.warning("Settings changed but no entity feed to reconcile")
            return
        self.reconcile(_coerce_entities(entities, kind))


def _coerce_kind(value: Any) -> Optional[ReminderKind]:
    """Accept a ReminderKind or its string value; missing means TASK."""
    if value is None:
        return ReminderKind.TASK
    if isinstance(value, ReminderKind):
        return value
    try:
        return ReminderKind(str(value).strip().lower())
    except ValueError:
        logger.warning(f"Unknown reminder kind {value!r}, ignoring event")
        return None


def _coerce_entity(item: Any, kind: ReminderKind) -> Optional[ReminderEntity]:
    if isinstance(item, ReminderEntity):
        return item
    if isinstance(item, dict):
        return ReminderEntity.from_document(item, kind)
    return None


def _coerce_entities(items: Iterable[Any], kind: ReminderKind) -> List[ReminderEntity]:
    entities = [_coerce_entity(item, kind) for item in items]
    return [entity for entity in entities if entity is not None]


def _entity_from_event(data: Any) -> Optional[ReminderEntity]:
    """Accept an entity, or a dict carrying one under "entity"/"task"/"document"."""
    if isinstance(data, ReminderEntity):
        return data
    if isinstance(data, dict):
        kind = _coerce_kind(data.get("kind"))
        if kind is None:
            return None
        for field_name in ("entity", "task", "document"):
            if field_name in data:
                return _coerce_entity(data[field_name], kind)
    return None


def _key_from_event(data: Union[ReminderKey, ReminderEntity, dict, Any]) -> Optional[ReminderKey]:
    if isinstance(data, ReminderKey):
        return data
    if isinstance(data, dict) and "key" in data and isinstance(data["key"], ReminderKey):
        return data["key"]
    if isinstance(data, dict) and "entity_id" in data:
        kind = _coerce_kind(data.get("kind"))
        return ReminderKey(kind, str(data["entity_id"])) if kind is not None else None
    entity = _entity_from_event(data)
    return entity.key if entity is not None else None

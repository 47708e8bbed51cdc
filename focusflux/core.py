"""Headless bootstrap for the FocusFlux reminder engine.

Wires the permission gate, emitter, registry, scheduler and reminder service
for the running event loop, with no UI dependency.

Usage:
    from focusflux.core import bootstrap, shutdown

    reminders = await bootstrap(reminders_enabled=lambda: settings.reminders)
    reminders.service.reconcile(entities)
    ...
    await shutdown(reminders)
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from focusflux.config import NOTIFICATION_BACKEND
from focusflux.events import EventBus
from focusflux.logging_setup import setup_logging
from focusflux.models.entities import ReminderEntity
from focusflux.services.notification_emitter import AlertFunction, NotificationEmitter
from focusflux.services.permission_gate import PermissionGate
from focusflux.services.platform_notifications import ConsoleAlert, NotificationCapability, detect_capability
from focusflux.services.reminder_registry import ReminderRegistry
from focusflux.services.reminder_scheduler import ReminderScheduler
from focusflux.services.reminder_service import ReminderService
from focusflux.services.timers import Clock, LoopTimers


@dataclass
class ReminderContainer:
    """Container holding the wired reminder engine."""
    event_bus: EventBus
    capability: NotificationCapability
    gate: PermissionGate
    emitter: NotificationEmitter
    registry: ReminderRegistry
    scheduler: ReminderScheduler
    service: ReminderService


async def bootstrap(
    reminders_enabled: Callable[[], bool],
    entity_feed: Optional[Callable[[], Iterable[ReminderEntity]]] = None,
    navigate: Optional[Callable[[str], None]] = None,
    capability: Optional[NotificationCapability] = None,
    alert: Optional[AlertFunction] = None,
    event_bus: Optional[EventBus] = None,
    clock: Clock = datetime.now,
    configure_logging: bool = False,
    request_permission: bool = True,
) -> ReminderContainer:
    """Build the reminder engine on the running event loop.

    Args:
        reminders_enabled: Reads the user's reminders toggle; called on every operation
        entity_feed: Returns the current active entities, used on settings changes
        navigate: Called with a route when the user activates a reminder
        capability: Notification capability; detected from the host if None
        alert: Blocking fallback alert; console alert if None
        event_bus: Bus to subscribe to; a fresh one if None
        clock: Wall clock, injectable for tests
        configure_logging: Install console + file logging handlers
        request_permission: Ask for notification permission if still undetermined

    Returns:
        ReminderContainer with the service started.
    """
    if configure_logging:
        setup_logging()

    loop = asyncio.get_running_loop()
    timers = LoopTimers(loop)
    event_bus = event_bus or EventBus()
    capability = capability or detect_capability(NOTIFICATION_BACKEND)

    gate = PermissionGate(capability)
    emitter = NotificationEmitter(capability, gate, alert or ConsoleAlert(), timers, event_bus=event_bus)
    registry = ReminderRegistry()
    scheduler = ReminderScheduler(registry, emitter, timers, timers.run_async, clock=clock, event_bus=event_bus)
    service = ReminderService(
        scheduler,
        registry,
        emitter,
        gate,
        timers,
        timers.run_async,
        reminders_enabled=reminders_enabled,
        clock=clock,
        entity_feed=entity_feed,
        navigate=navigate,
        event_bus=event_bus,
    )
    service.start()

    if request_permission:
        await service.prepare_permissions()

    return ReminderContainer(
        event_bus=event_bus,
        capability=capability,
        gate=gate,
        emitter=emitter,
        registry=registry,
        scheduler=scheduler,
        service=service,
    )


async def shutdown(container: ReminderContainer) -> None:
    """Cancel every pending reminder and drop subscriptions (logout / teardown)."""
    container.service.stop()
    container.event_bus.clear()

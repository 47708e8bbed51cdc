"""Shared fixtures for FocusFlux reminder tests."""
from datetime import datetime

import pytest

from focusflux.events import EventBus
from focusflux.i18n import set_language
from focusflux.services.notification_emitter import NotificationEmitter
from focusflux.services.permission_gate import PermissionGate
from focusflux.services.reconciliation import ReminderReconciler
from focusflux.services.reminder_registry import ReminderRegistry
from focusflux.services.reminder_scheduler import ReminderScheduler
from focusflux.services.reminder_service import ReminderService
from tests.fakes import AsyncRecorder, FakeCapability, FakeClock, FakeTimers, RecordingAlert

# Tuesday morning, well clear of midnight
START = datetime(2026, 3, 10, 8, 0, 0)


@pytest.fixture(autouse=True)
def english():
    set_language("en")
    yield
    set_language("en")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def async_runner() -> AsyncRecorder:
    return AsyncRecorder()


@pytest.fixture
def capability() -> FakeCapability:
    return FakeCapability()


@pytest.fixture
def alert() -> RecordingAlert:
    return RecordingAlert()


@pytest.fixture
def event_bus() -> EventBus:
    bus = EventBus()
    yield bus
    bus.clear()


@pytest.fixture
def gate(capability: FakeCapability) -> PermissionGate:
    return PermissionGate(capability)


@pytest.fixture
def emitter(capability, gate, alert, timers, event_bus) -> NotificationEmitter:
    return NotificationEmitter(capability, gate, alert, timers, event_bus=event_bus)


@pytest.fixture
def registry() -> ReminderRegistry:
    return ReminderRegistry()


@pytest.fixture
def scheduler(registry, emitter, timers, async_runner, clock, event_bus) -> ReminderScheduler:
    return ReminderScheduler(registry, emitter, timers, async_runner, clock=clock, event_bus=event_bus)


@pytest.fixture
def reconciler(scheduler, registry) -> ReminderReconciler:
    return ReminderReconciler(scheduler, registry)


@pytest.fixture
def settings() -> dict:
    """Mutable stand-in for the user settings store."""
    return {"reminders_enabled": True, "entities": []}


@pytest.fixture
def navigations() -> list:
    return []


@pytest.fixture
def service(scheduler, registry, emitter, gate, timers, async_runner, clock, event_bus, settings, navigations):
    svc = ReminderService(
        scheduler,
        registry,
        emitter,
        gate,
        timers,
        async_runner,
        reminders_enabled=lambda: settings["reminders_enabled"],
        clock=clock,
        entity_feed=lambda: settings["entities"],
        navigate=navigations.append,
        event_bus=event_bus,
    )
    svc.start()
    yield svc
    svc.stop()

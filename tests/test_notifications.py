"""Tests for the permission gate, notification emitter and platform adapters."""
import io
from types import SimpleNamespace

import pytest

from focusflux.config import DeliveryChannel, NotificationBackendName, PermissionState
from focusflux.events import AppEvent, EventBus
from focusflux.models.entities import DeliveryResult, NotificationPayload
from focusflux.services import platform_notifications
from focusflux.services.notification_emitter import NotificationEmitter
from focusflux.services.permission_gate import PermissionGate, coerce_permission_state
from focusflux.services.platform_notifications import (
    ConsoleAlert,
    NotificationError,
    PlyerNotificationCapability,
    UnsupportedCapability,
    detect_capability,
)
from tests.fakes import EventCollector, FakeCapability, FakeTimers, RecordingAlert


class BusError(Exception):
    """Stands in for backend exceptions outside the builtin hierarchy (dbus, win32)."""


NATIVE = DeliveryResult(delivered=True, via=DeliveryChannel.NATIVE)
FALLBACK = DeliveryResult(delivered=False, via=DeliveryChannel.FALLBACK)


class Harness:
    """Emitter wired to fakes, with every collaborator exposed."""

    def __init__(self, capability: FakeCapability, alert: RecordingAlert = None):
        self.capability = capability
        self.alert = alert or RecordingAlert()
        self.timers = FakeTimers()
        self.event_bus = EventBus()
        self.gate = PermissionGate(capability)
        self.emitter = NotificationEmitter(capability, self.gate, self.alert, self.timers, event_bus=self.event_bus)


def payload(on_activate=None) -> NotificationPayload:
    return NotificationPayload(
        title="🔔 Task Reminder",
        body="Write report",
        tag="task-t1-1773129600000",
        on_activate=on_activate,
    )


# ===========================================================================
# coerce_permission_state
# ===========================================================================

class TestCoercePermissionState:
    @pytest.mark.parametrize("raw,expected", [
        ("granted", PermissionState.GRANTED),
        ("GRANTED", PermissionState.GRANTED),
        (True, PermissionState.GRANTED),
        ("denied", PermissionState.DENIED),
        (False, PermissionState.DENIED),
        ("default", PermissionState.UNDETERMINED),
        ("prompt", PermissionState.UNDETERMINED),
        ("not_determined", PermissionState.UNDETERMINED),
        (PermissionState.UNDETERMINED, PermissionState.UNDETERMINED),
    ])
    def test_known_values(self, raw, expected):
        assert coerce_permission_state(raw) == expected

    @pytest.mark.parametrize("raw", ["maybe", None, 42])
    def test_unknown_values_are_denied(self, raw):
        assert coerce_permission_state(raw) == PermissionState.DENIED


# ===========================================================================
# PermissionGate
# ===========================================================================

class TestPermissionGate:
    async def test_current_state_is_live(self):
        capability = FakeCapability(state="default")
        gate = PermissionGate(capability)
        assert await gate.current_state() == PermissionState.UNDETERMINED
        capability.state = "granted"
        assert await gate.current_state() == PermissionState.GRANTED

    async def test_unsupported_is_denied(self):
        gate = PermissionGate(FakeCapability(supported=False))
        assert gate.check_support() is False
        assert await gate.current_state() == PermissionState.DENIED

    async def test_support_check_error_is_unsupported(self):
        gate = PermissionGate(FakeCapability(support_error=RuntimeError("no bus")))
        assert gate.check_support() is False

    async def test_state_read_error_is_denied(self):
        gate = PermissionGate(FakeCapability(state_error=OSError("dbus down")))
        assert await gate.current_state() == PermissionState.DENIED

    async def test_request_prompts_when_undetermined(self):
        capability = FakeCapability(state="default", request_result="granted")
        gate = PermissionGate(capability)
        assert await gate.request_permission() == PermissionState.GRANTED
        assert capability.permission_requests == 1

    @pytest.mark.parametrize("state", ["granted", "denied"])
    async def test_request_does_not_prompt_once_decided(self, state):
        capability = FakeCapability(state=state)
        gate = PermissionGate(capability)
        assert await gate.request_permission() == coerce_permission_state(state)
        assert capability.permission_requests == 0

    async def test_request_error_is_denied(self):
        capability = FakeCapability(state="default", request_error=NotificationError("prompt failed"))
        gate = PermissionGate(capability)
        assert await gate.request_permission() == PermissionState.DENIED


# ===========================================================================
# NotificationEmitter: channel selection
# ===========================================================================

class TestEmitChannel:
    async def test_granted_delivers_natively(self):
        h = Harness(FakeCapability(state="granted"))
        assert await h.emitter.emit(payload()) == NATIVE
        assert len(h.capability.shown) == 1
        assert h.capability.sounds == 1
        assert h.alert.calls == []

    async def test_denied_falls_back_once(self):
        h = Harness(FakeCapability(state="denied"))
        assert await h.emitter.emit(payload()) == FALLBACK
        assert h.alert.calls == [("🔔 Task Reminder", "Write report")]
        assert h.capability.shown == []
        assert h.capability.permission_requests == 0

    async def test_unsupported_falls_back(self):
        h = Harness(FakeCapability(supported=False))
        assert await h.emitter.emit(payload()) == FALLBACK
        assert len(h.alert.calls) == 1

    async def test_undetermined_then_granted(self):
        h = Harness(FakeCapability(state="default", request_result="granted"))
        assert await h.emitter.emit(payload()) == NATIVE
        assert h.capability.permission_requests == 1

    async def test_undetermined_then_denied(self):
        h = Harness(FakeCapability(state="default", request_result="denied"))
        assert await h.emitter.emit(payload()) == FALLBACK
        assert h.capability.permission_requests == 1
        assert len(h.alert.calls) == 1

    async def test_prompt_only_asked_once_across_emits(self):
        h = Harness(FakeCapability(state="default", request_result="denied"))
        await h.emitter.emit(payload())
        await h.emitter.emit(payload())
        assert h.capability.permission_requests == 1
        assert len(h.alert.calls) == 2


# ===========================================================================
# NotificationEmitter: failures degrade, never raise
# ===========================================================================

class TestEmitFailures:
    @pytest.mark.parametrize("error", [
        NotificationError("refused"),
        OSError("dbus down"),
        RuntimeError("no facade"),
        NotImplementedError("no facade"),
        BusError("org.freedesktop.Notifications not provided"),
    ])
    async def test_show_error_falls_back(self, error):
        h = Harness(FakeCapability(show_error=error))
        assert await h.emitter.emit(payload()) == FALLBACK
        assert len(h.alert.calls) == 1

    async def test_sound_error_is_ignored(self):
        h = Harness(FakeCapability(sound_error=OSError("no audio")))
        assert await h.emitter.emit(payload()) == NATIVE

    async def test_state_error_falls_back(self):
        h = Harness(FakeCapability(state_error=RuntimeError("boom")))
        assert await h.emitter.emit(payload()) == FALLBACK

    async def test_alert_error_still_reports_fallback(self):
        h = Harness(FakeCapability(state="denied"), alert=RecordingAlert(error=OSError("closed tty")))
        assert await h.emitter.emit(payload()) == FALLBACK

    async def test_unexpected_errors_everywhere_still_alert_once(self):
        error = BusError("session bus unavailable")
        h = Harness(FakeCapability(show_error=error, sound_error=error))
        assert await h.emitter.emit(payload()) == FALLBACK
        assert h.alert.calls == [("🔔 Task Reminder", "Write report")]

    async def test_unexpected_state_error_falls_back(self):
        h = Harness(FakeCapability(state_error=BusError("no bus")))
        assert await h.emitter.emit(payload()) == FALLBACK
        assert len(h.alert.calls) == 1

    async def test_unexpected_request_error_falls_back(self):
        h = Harness(FakeCapability(state="default", request_error=BusError("prompt crashed")))
        assert await h.emitter.emit(payload()) == FALLBACK
        assert len(h.alert.calls) == 1

    async def test_unexpected_alert_error_is_contained(self):
        h = Harness(FakeCapability(state="denied"), alert=RecordingAlert(error=BusError("no tty")))
        assert await h.emitter.emit(payload()) == FALLBACK


# ===========================================================================
# NotificationEmitter: dismissal and activation
# ===========================================================================

class TestDismissAndActivate:
    async def test_auto_dismiss_after_ten_seconds(self):
        h = Harness(FakeCapability())
        await h.emitter.emit(payload())
        [timer] = h.timers.pending()
        assert timer.delay == 10
        h.timers.fire(timer)
        assert h.capability.shown[0].closed

    async def test_activation_runs_hook_and_cancels_dismiss(self):
        activations = []
        h = Harness(FakeCapability())
        collector = EventCollector(h.event_bus, AppEvent.NOTIFICATION_ACTIVATED)
        await h.emitter.emit(payload(on_activate=lambda: activations.append(True)))

        h.capability.shown[0].click()

        assert activations == [True]
        assert h.capability.shown[0].closed
        assert h.timers.pending() == []
        assert collector.payloads(AppEvent.NOTIFICATION_ACTIVATED) == [{"tag": "task-t1-1773129600000"}]
        collector.cleanup()

    async def test_failing_activation_hook_is_contained(self):
        def explode():
            raise ValueError("bad route")

        h = Harness(FakeCapability())
        await h.emitter.emit(payload(on_activate=explode))
        h.capability.shown[0].click()
        assert h.capability.shown[0].closed

    async def test_activation_without_hook(self):
        h = Harness(FakeCapability())
        await h.emitter.emit(payload())
        h.capability.shown[0].click()
        assert h.capability.shown[0].closed

    async def test_delivered_event_names_channel(self):
        h = Harness(FakeCapability(state="denied"))
        collector = EventCollector(h.event_bus, AppEvent.NOTIFICATION_DELIVERED)
        await h.emitter.emit(payload())
        assert collector.payloads(AppEvent.NOTIFICATION_DELIVERED) == [
            {"tag": "task-t1-1773129600000", "via": DeliveryChannel.FALLBACK}
        ]
        collector.cleanup()


# ===========================================================================
# Platform adapters
# ===========================================================================

class TestPlatformAdapters:
    async def test_unsupported_capability(self):
        capability = UnsupportedCapability()
        assert capability.is_supported() is False
        with pytest.raises(NotificationError):
            await capability.show("t", "b", "tag", True, None)

    @pytest.mark.parametrize("error", [NotImplementedError("no facade"), BusError("no session bus")])
    async def test_plyer_backend_errors_become_notification_errors(self, monkeypatch, error):
        def notify(**kwargs):
            raise error

        monkeypatch.setattr(platform_notifications, "PLYER_AVAILABLE", True)
        monkeypatch.setattr(platform_notifications, "plyer_notification", SimpleNamespace(notify=notify), raising=False)
        with pytest.raises(NotificationError):
            await PlyerNotificationCapability().show("t", "b", "tag", True, None)

    async def test_plyer_backend_error_ends_in_fallback(self, monkeypatch):
        def notify(**kwargs):
            raise BusError("org.freedesktop.Notifications not provided")

        monkeypatch.setattr(platform_notifications, "PLYER_AVAILABLE", True)
        monkeypatch.setattr(platform_notifications, "plyer_notification", SimpleNamespace(notify=notify), raising=False)
        capability = PlyerNotificationCapability()
        monkeypatch.setattr(capability, "play_sound", lambda: None)
        alert = RecordingAlert()
        emitter = NotificationEmitter(capability, PermissionGate(capability), alert, FakeTimers())
        assert await emitter.emit(payload()) == FALLBACK
        assert len(alert.calls) == 1

    def test_detect_none_backend(self):
        assert isinstance(detect_capability(NotificationBackendName.NONE), UnsupportedCapability)

    def test_console_alert_writes_title_and_body(self):
        stream = io.StringIO()
        ConsoleAlert(stream=stream, blocking=False)("🔔 Task Reminder", "Write report")
        assert stream.getvalue() == "\n🔔 Task Reminder\nWrite report\n"

    def test_blocking_console_alert_waits_for_input(self, monkeypatch):
        prompts = []
        monkeypatch.setattr("builtins.input", lambda prompt="": prompts.append(prompt) or "")
        ConsoleAlert(stream=io.StringIO(), blocking=True)("title", "body")
        assert prompts == ["Press Enter to dismiss"]

    def test_blocking_console_alert_survives_closed_stdin(self, monkeypatch):
        def closed(prompt=""):
            raise EOFError

        monkeypatch.setattr("builtins.input", closed)
        ConsoleAlert(stream=io.StringIO(), blocking=True)("title", "body")

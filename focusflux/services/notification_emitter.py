"""
Notification emitter for FocusFlux.

Single delivery path for every reminder and test notification:
- native notification when the capability exists and permission is granted
- one permission prompt when permission is still undetermined
- a blocking text alert otherwise

emit() never raises. Platform failures are logged and end in the fallback,
so the user always sees some signal.
"""
import logging
from typing import Callable, Optional

from focusflux.config import NOTIFICATION_AUTO_DISMISS_SECONDS, DeliveryChannel, PermissionState
from focusflux.events import AppEvent, EventBus
from focusflux.models.entities import DeliveryResult, NotificationPayload, TimerHandle
from focusflux.services.permission_gate import PermissionGate
from focusflux.services.platform_notifications import NativeNotification, NotificationCapability
from focusflux.services.timers import TimerFactory

logger = logging.getLogger(__name__)

AlertFunction = Callable[[str, str], None]


class _ShownNotification:
    """Tracks one native notification until it is activated or dismissed."""

    def __init__(self, payload: NotificationPayload, event_bus: Optional[EventBus]) -> None:
        self.payload = payload
        self.native: Optional[NativeNotification] = None
        self.interacted = False
        self.dismiss_timer: Optional[TimerHandle] = None
        self._event_bus = event_bus

    def activate(self) -> None:
        """Click/activation hook handed to the capability."""
        self.interacted = True
        if self.dismiss_timer is not None:
            self.dismiss_timer.cancel()
            self.dismiss_timer = None
        self.close()

        if self._event_bus is not None:
            self._event_bus.emit(AppEvent.NOTIFICATION_ACTIVATED, {"tag": self.payload.tag})

        if self.payload.on_activate is not None:
            try:
                self.payload.on_activate()
            except Exception:
                logger.exception(f"Activation handler failed for notification {self.payload.tag}")

    def auto_dismiss(self) -> None:
        self.dismiss_timer = None
        if self.interacted:
            return
        logger.debug(f"Auto-dismissing notification {self.payload.tag}")
        self.close()

    def close(self) -> None:
        if self.native is None:
            return
        try:
            self.native.close()
        except Exception as e:
            logger.warning(f"Error closing notification {self.payload.tag}: {e}")


class NotificationEmitter:
    """Delivers a NotificationPayload to the user, natively or via fallback."""

    def __init__(
        self,
        capability: NotificationCapability,
        gate: PermissionGate,
        alert: AlertFunction,
        timers: TimerFactory,
        event_bus: Optional[EventBus] = None,
        auto_dismiss_seconds: float = NOTIFICATION_AUTO_DISMISS_SECONDS,
    ) -> None:
        self._capability = capability
        self._gate = gate
        self._alert = alert
        self._timers = timers
        self._event_bus = event_bus
        self._auto_dismiss_seconds = auto_dismiss_seconds

    async def emit(self, payload: NotificationPayload) -> DeliveryResult:
        if not self._gate.check_support():
            logger.info("Notifications not supported, using alert fallback")
            return self._fallback(payload)

        state = await self._gate.current_state()
        if state == PermissionState.GRANTED:
            return await self._emit_native(payload)

        if state == PermissionState.UNDETERMINED:
            state = await self._gate.request_permission()
            if state == PermissionState.GRANTED:
                return await self._emit_native(payload)
            logger.info("Notification permission not granted, using alert fallback")
            return self._fallback(payload)

        logger.info("Notification permission previously denied, using alert fallback")
        return self._fallback(payload)

    async def _emit_native(self, payload: NotificationPayload) -> DeliveryResult:
        self._play_sound()

        shown = _ShownNotification(payload, self._event_bus)
        try:
            shown.native = await self._capability.show(
                title=payload.title,
                body=payload.body,
                tag=payload.tag,
                require_interaction=payload.require_interaction,
                on_click=shown.activate,
            )
        except Exception as e:
            logger.error(f"Error creating notification {payload.tag}: {e}")
            return self._fallback(payload)

        try:
            shown.dismiss_timer = self._timers(self._auto_dismiss_seconds, shown.auto_dismiss)
        except RuntimeError as e:
            # Already on screen; it just stays up
            logger.warning(f"Could not arm auto-dismiss for {payload.tag}: {e}")

        logger.info(f"Notification shown: {payload.title} ({payload.tag})")
        self._emit_delivered(payload, DeliveryChannel.NATIVE)
        return DeliveryResult(delivered=True, via=DeliveryChannel.NATIVE)

    def _play_sound(self) -> None:
        try:
            self._capability.play_sound()
        except Exception as e:
            logger.debug(f"Audio cue failed: {e}")

    def _fallback(self, payload: NotificationPayload) -> DeliveryResult:
        try:
            self._alert(payload.title, payload.body)
        except Exception as e:
            logger.error(f"Fallback alert failed for {payload.tag}: {e}")
        self._emit_delivered(payload, DeliveryChannel.FALLBACK)
        return DeliveryResult(delivered=False, via=DeliveryChannel.FALLBACK)

    def _emit_delivered(self, payload: NotificationPayload, via: DeliveryChannel) -> None:
        if self._event_bus is not None:
            self._event_bus.emit(AppEvent.NOTIFICATION_DELIVERED, {"tag": payload.tag, "via": via})

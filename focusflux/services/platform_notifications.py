"""
Platform notification capabilities for FocusFlux.

This module wraps whatever the host can do to show a notification:
- plyer (desktop): cross-platform notifications for Windows/Linux/Mac
- none: no notification capability at all

and the last-resort console alert used when native delivery is impossible.

Capability contract (what the permission gate and emitter rely on):
- is_supported(): the capability exists at all
- permission_state(): live platform permission, any of the raw shapes
  platforms report ("granted", "default", True, ...)
- request_permission(): show the platform prompt, same raw shapes
- show(...): construct and display, returning a handle with close()
- play_sound(): best-effort audio cue
"""
import asyncio
import logging
import sys
from enum import Enum
from typing import Any, Callable, Optional, Protocol, TextIO

from focusflux.config import APP_NAME, BLOCKING_ALERT, NOTIFICATION_AUTO_DISMISS_SECONDS, NotificationBackendName
from focusflux.i18n import t

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised by a capability when the platform refuses an operation."""


class NotificationBackend(Enum):
    """Detected notification backends."""
    PLYER = "plyer"
    NONE = "none"


PLYER_AVAILABLE = False

try:
    from plyer import notification as plyer_notification
    PLYER_AVAILABLE = True
    logger.info("plyer available for desktop notifications")
except ImportError:
    logger.info("plyer not available")


class NativeNotification(Protocol):
    def close(self) -> None: ...


class NotificationCapability(Protocol):
    backend: NotificationBackend

    def is_supported(self) -> bool: ...

    async def permission_state(self) -> Any: ...

    async def request_permission(self) -> Any: ...

    async def show(
        self,
        title: str,
        body: str,
        tag: str,
        require_interaction: bool,
        on_click: Optional[Callable[[], None]],
    ) -> NativeNotification: ...

    def play_sound(self) -> None: ...


class PlyerNotification:
    """Handle for a plyer notification.

    plyer hands the notification to the OS and forgets it, so there is
    nothing to close; the OS applies the timeout we passed in.
    """

    def __init__(self, tag: str) -> None:
        self.tag = tag
        self.closed = False

    def close(self) -> None:
        self.closed = True


class PlyerNotificationCapability:
    """Desktop notifications through plyer.

    Desktop platforms have no runtime permission model, so permission is
    always reported as granted. plyer exposes no click callback either;
    activation handlers are accepted and ignored.
    """
    backend = NotificationBackend.PLYER

    def is_supported(self) -> bool:
        return PLYER_AVAILABLE

    async def permission_state(self) -> str:
        return "granted"

    async def request_permission(self) -> str:
        logger.info("Plyer backend - assuming permission granted")
        return "granted"

    async def show(
        self,
        title: str,
        body: str,
        tag: str,
        require_interaction: bool,
        on_click: Optional[Callable[[], None]],
    ) -> PlyerNotification:
        if not PLYER_AVAILABLE:
            raise NotificationError("plyer is not installed")

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: plyer_notification.notify(
                    title=title,
                    message=body,
                    app_name=APP_NAME,
                    timeout=NOTIFICATION_AUTO_DISMISS_SECONDS,
                ),
            )
        except NotImplementedError as e:
            # No notification facade for this platform
            raise NotificationError(f"plyer cannot notify on this platform: {e}") from e
        except Exception as e:
            # Backend errors (dbus, win32, pyobjus) do not share a base class
            raise NotificationError(f"plyer failed to notify: {e}") from e
        return PlyerNotification(tag)

    def play_sound(self) -> None:
        sys.stderr.write("\a")
        sys.stderr.flush()


class UnsupportedCapability:
    """Stands for a host with no notification capability at all."""
    backend = NotificationBackend.NONE

    def is_supported(self) -> bool:
        return False

    async def permission_state(self) -> str:
        return "denied"

    async def request_permission(self) -> str:
        return "denied"

    async def show(
        self,
        title: str,
        body: str,
        tag: str,
        require_interaction: bool,
        on_click: Optional[Callable[[], None]],
    ) -> NativeNotification:
        raise NotificationError("notifications are not supported")

    def play_sound(self) -> None:
        pass


def detect_capability(preferred: NotificationBackendName = NotificationBackendName.AUTO) -> NotificationCapability:
    """Pick the notification capability for this host.

    Priority:
    1. Whatever FOCUSFLUX_NOTIFICATION_BACKEND asks for ("plyer" or "none")
    2. plyer for desktop (Windows/Linux/Mac)
    3. Unsupported if nothing is available
    """
    if preferred == NotificationBackendName.NONE:
        return UnsupportedCapability()

    if PLYER_AVAILABLE:
        return PlyerNotificationCapability()

    if preferred == NotificationBackendName.PLYER:
        logger.warning("plyer backend requested but plyer is not installed")
    return UnsupportedCapability()


class ConsoleAlert:
    """Blocking text alert, the last resort when native delivery is impossible.

    Writes title and body to the stream and, when blocking, waits for the
    user to acknowledge. While it waits the event loop is stalled.
    """

    def __init__(self, stream: Optional[TextIO] = None, blocking: bool = BLOCKING_ALERT) -> None:
        self._stream = stream
        self._blocking = blocking

    def __call__(self, title: str, body: str) -> None:
        stream = self._stream or sys.stderr
        stream.write(f"\n{title}\n{body}\n")
        stream.flush()
        if not self._blocking:
            return
        try:
            input(t("alert_acknowledge"))
        except EOFError:
            logger.debug("stdin closed, fallback alert not acknowledged")

"""Application configuration - single source of truth for reminder constants.

Contains enums (PermissionState, DeliveryChannel, ReminderKind, NotificationBackendName)
and the handful of env-driven settings the reminder engine reads at startup.
Import from here instead of hardcoding values elsewhere.
"""
import os
import sys
from enum import Enum
from pathlib import Path

# Load .env if available (local development convenience)
try:
    from dotenv import load_dotenv
    load_dotenv(Path.cwd() / ".env")
except ImportError:
    pass  # dotenv not installed, environment variables only


class PermissionState(Enum):
    """Notification authorization as reported by the platform."""
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class DeliveryChannel(Enum):
    """How a notification reached the user."""
    NATIVE = "native"
    FALLBACK = "fallback"


class ReminderKind(Enum):
    """Entity kinds that can carry a reminder.

    The value doubles as the key namespace so a plain task and a daily-plan
    task with the same document id never collide.
    """
    TASK = "task"
    DAILY = "daily"


class NotificationBackendName(Enum):
    """Configurable notification backends."""
    AUTO = "auto"
    PLYER = "plyer"
    NONE = "none"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_backend(name: str) -> NotificationBackendName:
    raw = (os.getenv(name) or "").strip().lower()
    try:
        return NotificationBackendName(raw or NotificationBackendName.AUTO.value)
    except ValueError:
        return NotificationBackendName.AUTO


APP_NAME = "FocusFlux"

# Native notifications close themselves after this long without interaction
NOTIFICATION_AUTO_DISMISS_SECONDS = 10

# A time of day that is not strictly in the future is pushed forward by this much
ROLLOVER_HOURS = 24

DEFAULT_TEST_DELAY_SECONDS = 5

# Where activating a reminder should take the user, per entity kind
REMINDER_ROUTES = {
    ReminderKind.TASK: "/dashboard/todos",
    ReminderKind.DAILY: "/dashboard/daily-goals",
}

LANGUAGE = os.getenv("FOCUSFLUX_LANGUAGE", "") or "en"
LOG_DIR = Path(os.getenv("FOCUSFLUX_LOG_DIR", "") or ".local/focusflux").expanduser()
LOG_LEVEL = (os.getenv("FOCUSFLUX_LOG_LEVEL", "") or "INFO").upper()

# Only wait for acknowledgement when someone can actually press a key
BLOCKING_ALERT = _env_bool("FOCUSFLUX_BLOCKING_ALERT", sys.stdin is not None and sys.stdin.isatty())

NOTIFICATION_BACKEND = _env_backend("FOCUSFLUX_NOTIFICATION_BACKEND")

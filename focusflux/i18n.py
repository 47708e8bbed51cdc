"""Internationalization module - provides t("key") for translated strings.

All user-facing notification text goes through t("key") so banners and the
fallback alert follow the configured language (EN/RO).
"""
from typing import Dict

from focusflux.config import LANGUAGE

_current_language: str = "en"

LANGUAGES: Dict[str, Dict[str, str]] = {
    "en": {"name": "English", "code": "EN"},
    "ro": {"name": "Română", "code": "RO"},
}

_TRANSLATIONS: Dict[str, Dict[str, str]] = {
    # Reminder banners
    "task_reminder": {"en": "🔔 Task Reminder", "ro": "🔔 Memento treabă"},
    "daily_task_reminder": {"en": "🔔 Daily Task Reminder", "ro": "🔔 Memento treabă zilnică"},

    # Fallback alert
    "alert_acknowledge": {"en": "Press Enter to dismiss", "ro": "Apasă Enter pentru a închide"},

    # Test notification
    "test_notification_title": {"en": "🔔 Test Notification", "ro": "🔔 Notificare test"},
    "test_notification_body": {
        "en": "Task reminders are working! You'll get notifications like this for your tasks.",
        "ro": "Mementourile funcționează! Vei primi notificări ca aceasta pentru treburile tale.",
    },
}


def set_language(language: str) -> None:
    """Switch the active language; unknown codes fall back to English."""
    global _current_language
    _current_language = language if language in LANGUAGES else "en"


def get_language() -> str:
    return _current_language


def t(key: str) -> str:
    """Translate a key into the active language.

    Missing languages fall back to English and missing keys to the key itself.
    """
    entry = _TRANSLATIONS.get(key)
    if entry is None:
        return key
    return entry.get(_current_language) or entry.get("en", key)


set_language(LANGUAGE)

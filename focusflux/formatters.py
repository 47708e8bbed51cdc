"""Time formatting utilities for reminder log lines.

Converts delays to short human-readable forms like "45s", "5m" or "1h 30m"
and fire instants to "today 09:00" / "tomorrow 09:00".
"""
from datetime import datetime


class TimeFormatter:
    """Formatting helpers for reminder timing."""

    @staticmethod
    def seconds_to_short(seconds: float) -> str:
        """Convert seconds to short format like '5s', '5m', or '1h 30m'."""
        seconds = int(seconds)
        if seconds < 60:
            return f"{seconds}s"
        minutes = seconds // 60
        hours = minutes // 60
        mins = minutes % 60
        if hours > 0:
            return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"
        return f"{mins}m"

    @staticmethod
    def fire_time_to_display(fire_at: datetime, now: datetime) -> str:
        """Describe a fire instant relative to now, e.g. 'tomorrow 09:00'."""
        days = (fire_at.date() - now.date()).days
        clock = fire_at.strftime("%H:%M")
        if days == 0:
            return f"today {clock}"
        if days == 1:
            return f"tomorrow {clock}"
        return fire_at.strftime("%Y-%m-%d %H:%M")

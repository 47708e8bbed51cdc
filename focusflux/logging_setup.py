import logging
import sys
from pathlib import Path
from typing import Optional, Union

from focusflux.config import LOG_DIR, LOG_LEVEL


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - allow focusflux logs
    - Python warnings (captured as 'py.warnings') only at ERROR+
    - any other third party (plyer, dbus, asyncio) only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "focusflux" or record.name.startswith("focusflux."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: Union[str, Path] = LOG_DIR,
    console_level: Optional[int] = None,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Configure logging with:
    - Console handler: filtered for interactive use
    - File handler: full logs for debugging

    Call once, early. Returns the log file path.
    """
    if console_level is None:
        console_level = logging.getLevelName(LOG_LEVEL)
        if not isinstance(console_level, int):
            console_level = logging.INFO

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "focusflux.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Avoid duplicate handlers when called twice
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)
    return log_file

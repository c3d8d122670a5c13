"""Logging setup shared by the app, the CLI and the library modules."""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

_DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

_configured = False
_log_file: Path | None = None


def get_logger(name: str) -> logging.Logger:
    """Named logger; the root handlers are installed on the first call."""
    global _configured
    if not _configured:
        _configure()
        _configured = True
    return logging.getLogger(name)


def log_file() -> Path | None:
    """Today's log file, or None when file logging is off."""
    return _log_file


def _file_logging_enabled() -> bool:
    return os.environ.get("LOG_TO_FILE", "true").strip().lower() in ("1", "true", "yes")


def _configure() -> None:
    global _log_file
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # Streamlit reruns import the app again; keep the handlers installed once.
    if root.handlers:
        return

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    # One line per streamed request otherwise.
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not _file_logging_enabled():
        return
    log_dir = Path(os.environ.get("LOG_DIR") or _DEFAULT_LOG_DIR)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / f"talentdesk_{datetime.now().strftime('%Y-%m-%d')}.log"
        fh = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        root.warning("File logging disabled, cannot write to %s: %s", log_dir, exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    root.addHandler(fh)
    _log_file = path

"""Runtime logging: level from the environment, output to a file or stderr."""

import logging
import os
import sys
import threading
from datetime import datetime
from pathlib import Path

LOG_LEVEL_ENV = "YOUKI_LOG_LEVEL"
TRACE = 5
DEFAULT_LOG_LEVEL = logging.WARNING

_OFF = logging.CRITICAL + 10
_LEVELS: dict[str, int] = {
    "off": _OFF,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}
_LEVEL_NAMES: dict[int, str] = {
    logging.CRITICAL: "ERROR",
    logging.ERROR: "ERROR",
    logging.WARNING: "WARN",
    logging.INFO: "INFO",
    logging.DEBUG: "DEBUG",
    TRACE: "TRACE",
}

_lock = threading.Lock()
_handler: logging.Handler | None = None


def _level_name(levelno: int) -> str:
    for threshold in sorted(_LEVEL_NAMES, reverse=True):
        if levelno >= threshold:
            return _LEVEL_NAMES[threshold]
    return "TRACE"


def _level_from_env() -> int:
    text = os.environ.get(LOG_LEVEL_ENV)
    if text is None:
        return DEFAULT_LOG_LEVEL
    return _LEVELS.get(text.strip().lower(), DEFAULT_LOG_LEVEL)


class RuntimeFormatter(logging.Formatter):
    """Formats records as ``[LEVEL file:line] timestamp message`` ending in a carriage return."""

    def format(self, record: logging.LogRecord) -> str:
        level = _level_name(record.levelno)
        timestamp = datetime.fromtimestamp(record.created).astimezone().isoformat()
        message = record.getMessage()
        if record.pathname and record.lineno:
            return f"[{level} {record.pathname}:{record.lineno}] {timestamp} {message}\r"
        return f"[{level}] {timestamp} {message}\r"


def _open_log_file(path: str | os.PathLike):
    # Created if missing, opened for writing without truncating.
    fd = os.open(Path(path), os.O_WRONLY | os.O_CREAT, 0o666)
    return os.fdopen(fd, "w", encoding="utf-8")


def init_logging(log_file: str | os.PathLike | None = None) -> logging.Handler:
    """Install the runtime log handler once; later calls return the installed handler."""
    global _handler
    with _lock:
        if _handler is not None:
            return _handler

        level = _level_from_env()
        if log_file is not None:
            try:
                stream = _open_log_file(log_file)
            except OSError as exc:
                exc.add_note("failed opening log file")
                raise
            handler: logging.Handler = logging.StreamHandler(stream)
        else:
            handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(RuntimeFormatter())
        handler.setLevel(level)

        logging.addLevelName(TRACE, "TRACE")
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(level)
        _handler = handler
        return handler
import logging
from datetime import datetime, timedelta, timezone

from ocirt.logger import RuntimeFormatter, init_logging


def _record(level, pathname="src/x.py", lineno=7, msg="hello %s", args=("world",)):
    return logging.LogRecord("ocirt.test", level, pathname, lineno, msg, args, None)


def test_format_with_location():
    text = RuntimeFormatter().format(_record(logging.INFO))
    assert text.startswith("[INFO src/x.py:7] ")
    assert text.endswith(" hello world\r")


def test_format_timestamp_is_rfc3339_with_offset():
    text = RuntimeFormatter().format(_record(logging.DEBUG))
    stamp = text.split("] ", 1)[1].split(" ", 1)[0]
    assert text == f"[DEBUG src/x.py:7] {stamp} hello world\r"
    parsed = datetime.fromisoformat(stamp)
    assert parsed.tzinfo is not None
    assert abs(parsed - datetime.now(timezone.utc)) < timedelta(minutes=5)


def test_format_without_location():
    text = RuntimeFormatter().format(_record(logging.ERROR, pathname="", lineno=0))
    assert text.startswith("[ERROR] ")
    assert text.endswith(" hello world\r")


def test_format_level_names():
    formatter = RuntimeFormatter()
    assert formatter.format(_record(logging.WARNING)).startswith("[WARN ")
    assert formatter.format(_record(logging.DEBUG)).startswith("[DEBUG ")
    assert formatter.format(_record(logging.CRITICAL)).startswith("[ERROR ")
"""
Log sanitizing for djlive.

Protocol payloads are client controlled. Anything interpolated into a log
record passes through sanitize_for_log() so a crafted event name or form
value cannot forge log lines or inject terminal escape sequences.
"""

import importlib
import logging
import pkgutil
import re
from typing import Any

MAX_LOG_LENGTH = 500

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_NEWLINES = re.compile(r"\r\n|\r|\n")


def sanitize_for_log(value: Any, max_length: int = MAX_LOG_LENGTH) -> str:
    """
    Make a value safe to embed in a single log line.

    Strips ANSI escapes and control characters, replaces newlines with a
    visible marker and truncates long values.
    """
    if value is None:
        return "[None]"
    if isinstance(value, bytes):
        text = value.decode("utf-8", errors="replace")
    elif isinstance(value, str):
        text = value
    else:
        text = str(value)

    text = _ANSI_ESCAPE.sub("", text)
    text = _NEWLINES.sub(" \\n ", text)
    text = _CONTROL_CHARS.sub("", text)

    if len(text) > max_length:
        suffix = "...[truncated]"
        text = text[: max_length - len(suffix)] + suffix
    return text


class LogSanitizerFilter(logging.Filter):
    """Sanitize string arguments of every record emitted by djlive loggers."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, tuple):
            record.args = tuple(
                sanitize_for_log(arg) if isinstance(arg, (str, bytes)) else arg
                for arg in record.args
            )
        elif isinstance(record.args, dict):
            record.args = {
                key: sanitize_for_log(arg) if isinstance(arg, (str, bytes)) else arg
                for key, arg in record.args.items()
            }
        return True


def install_log_sanitizer(package: str = "djlive") -> None:
    """
    Add LogSanitizerFilter to the package logger and every module logger.

    Logger filters only see records logged on that logger, not records
    propagated from children, so each ``logging.getLogger(__name__)``
    needs its own filter.
    """
    module = importlib.import_module(package)
    names = [package]
    if hasattr(module, "__path__"):
        names += [info.name for info in pkgutil.walk_packages(module.__path__, f"{package}.")]
    for name in names:
        target = logging.getLogger(name)
        if not any(isinstance(f, LogSanitizerFilter) for f in target.filters):
            target.addFilter(LogSanitizerFilter())

"""
Logging configuration: one stream handler on the root logger with an
optional ANSI colour formatter.

Colours
-------
- level names: DEBUG dim, INFO green, WARNING yellow, ERROR/CRITICAL red
- device tags ``[relays]`` / ``[buzzer]``: green / yellow
- messages starting with ``status`` or ``heartbeat``: magenta / cyan
- ``http`` request lines: status code green / yellow (4xx) / red (5xx)
"""

import logging
import re
import sys

RESET = "\x1b[0m"
DIM = "\x1b[2m"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
MAGENTA = "\x1b[35m"
CYAN = "\x1b[36m"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LEVEL_COLORS = {
    logging.DEBUG: DIM,
    logging.INFO: GREEN,
    logging.WARNING: YELLOW,
    logging.ERROR: RED,
    logging.CRITICAL: RED,
}
_DEVICE_COLORS = {"relays": GREEN, "buzzer": YELLOW}
_MESSAGE_PREFIX_COLORS = {"status": MAGENTA, "heartbeat": CYAN}

_DEVICE_TAG_RE = re.compile(r"\[(relays|buzzer)\]")
_HTTP_STATUS_RE = re.compile(r"(?<= -> )(\d{3})\b")


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{RESET}"


def http_status_color(code: int) -> str:
    if code >= 500:
        return RED
    if code >= 400:
        return YELLOW
    return GREEN


class ColorFormatter(logging.Formatter):
    """``logging.Formatter`` that adds ANSI colours to known message parts."""

    def format(self, record: logging.LogRecord) -> str:
        original_levelname = record.levelname
        original_msg, original_args = record.msg, record.args

        color = _LEVEL_COLORS.get(record.levelno)
        if color:
            record.levelname = colorize(record.levelname, color)

        message = record.getMessage()
        for prefix, prefix_color in _MESSAGE_PREFIX_COLORS.items():
            if message.startswith(prefix):
                message = colorize(message, prefix_color)
                break
        message = _DEVICE_TAG_RE.sub(
            lambda m: "[" + colorize(m.group(1), _DEVICE_COLORS[m.group(1)]) + "]",
            message,
        )
        if message.startswith("http "):
            message = _HTTP_STATUS_RE.sub(
                lambda m: colorize(m.group(1), http_status_color(int(m.group(1)))),
                message,
            )
        record.msg, record.args = message, None

        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname
            record.msg, record.args = original_msg, original_args


class _AccessLogFilter(logging.Filter):
    """Drop uvicorn's access log; the request middleware logs every request."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name != "uvicorn.access"


def setup_logging(level: str = "INFO", color: bool = True) -> None:
    """Install a single root handler.  Safe to call more than once."""
    handler = logging.StreamHandler(sys.stdout)
    formatter_cls = ColorFormatter if color else logging.Formatter
    handler.setFormatter(formatter_cls(LOG_FORMAT))
    handler.addFilter(_AccessLogFilter())

    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)

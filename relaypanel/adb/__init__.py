# TV remote control over adb
from relaypanel.adb.client import (
    TV_COMMANDS,
    AdbClient,
    AdbError,
    KeyCode,
    UnknownTvCommandError,
)

__all__ = [
    "TV_COMMANDS",
    "AdbClient",
    "AdbError",
    "KeyCode",
    "UnknownTvCommandError",
]

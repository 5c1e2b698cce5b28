"""
TV remote over ``adb`` — sends Android key events to a networked TV.

Every command first runs ``adb connect <host:port>`` (a no-op when already
connected) and then ``adb -s <host:port> shell input keyevent <code>``.
"""

import logging
import subprocess
from enum import IntEnum

logger = logging.getLogger(__name__)


class KeyCode(IntEnum):
    POWER = 26
    VOLUME_UP = 24
    VOLUME_DOWN = 25
    MIC_MUTE = 91  # microphone only, not the speakers
    HOME = 3
    BACK = 4
    DPAD_UP = 19
    DPAD_DOWN = 20
    DPAD_LEFT = 21
    DPAD_RIGHT = 22
    DPAD_CENTER = 23
    MEDIA_PLAY_PAUSE = 85
    MEDIA_STOP = 86
    MEDIA_NEXT = 87
    MEDIA_PREVIOUS = 88
    MENU = 82
    SPEAKER_MUTE = 164
    SETTINGS = 176
    INPUT_SOURCE = 178
    FAVOURITE = 1554
    # 177 powers some TVs off in a way that drops adb; never send it.


TV_COMMANDS: dict[str, KeyCode] = {
    "power": KeyCode.POWER,
    "volume_up": KeyCode.VOLUME_UP,
    "volume_down": KeyCode.VOLUME_DOWN,
    "mic_mute": KeyCode.MIC_MUTE,
    "home": KeyCode.HOME,
    "back": KeyCode.BACK,
    "media_play_pause": KeyCode.MEDIA_PLAY_PAUSE,
    "media_next": KeyCode.MEDIA_NEXT,
    "media_prev": KeyCode.MEDIA_PREVIOUS,
    "media_stop": KeyCode.MEDIA_STOP,
    "dpad_up": KeyCode.DPAD_UP,
    "dpad_down": KeyCode.DPAD_DOWN,
    "dpad_left": KeyCode.DPAD_LEFT,
    "dpad_right": KeyCode.DPAD_RIGHT,
    "dpad_center": KeyCode.DPAD_CENTER,
    "menu": KeyCode.MENU,
    "settings": KeyCode.SETTINGS,
    "speaker_mute": KeyCode.SPEAKER_MUTE,
    "input_source": KeyCode.INPUT_SOURCE,
    "favourite": KeyCode.FAVOURITE,
}


class AdbError(RuntimeError):
    """An adb invocation failed, timed out or could not be started."""


class UnknownTvCommandError(KeyError):
    """The command name is not in ``TV_COMMANDS``."""


class AdbClient:
    def __init__(
        self,
        host: str,
        port: int,
        adb_path: str = "adb",
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.adb_path = adb_path
        self.timeout = timeout

    @property
    def addr(self) -> str:
        return f"{self.host}:{self.port}"

    def _run(self, *args: str) -> str:
        cmd = [self.adb_path, *args]
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise AdbError(f"adb executable not found: {self.adb_path}") from exc
        except subprocess.TimeoutExpired as exc:
            raise AdbError(f"adb {args[0]} timed out after {self.timeout:.0f}s") from exc

        output = (proc.stdout + proc.stderr).strip()
        if proc.returncode != 0:
            raise AdbError(f"adb {args[0]} failed ({proc.returncode}): {output}")
        return output

    def connect(self) -> None:
        self._run("connect", self.addr)

    def send_key(self, code: KeyCode | int) -> None:
        """Connect (idempotent) and send a single key event."""
        self.connect()
        self._run("-s", self.addr, "shell", "input", "keyevent", str(int(code)))
        logger.debug("Sent keyevent %d to %s", int(code), self.addr)

    def send_command(self, name: str) -> None:
        """Send the key event mapped to a named TV command."""
        try:
            code = TV_COMMANDS[name]
        except KeyError:
            raise UnknownTvCommandError(name) from None
        self.send_key(code)

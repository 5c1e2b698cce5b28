"""
Device connection manager — owns the live links to the relay board and buzzer.

Design
------
- Each device name has one connection slot.  ``_devices_lock`` guards the
  slots; ``_reconnect_lock`` guards the dialers and the set of names with a
  reconnect in flight.  The two locks are never held at the same time, so a
  toggle request never waits behind a slow dial.
- Every live connection has one reader thread.  It decodes status lines into
  the relay table and, on a hard read error, closes the connection, clears
  the slot and starts a reconnect.
- At most one reconnect thread runs per device name.  It dials with
  exponential backoff (1 s → 2 s … 30 s) until it succeeds, then installs the
  connection and starts a fresh reader.
- Command writes use whatever the slot currently holds.  A failed write goes
  through the same close / clear / reconnect path as a failed read.
- ``close()`` sets the stop event that every idle wait and backoff wait
  listens on, then closes the live connections.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterator
from typing import Protocol

from relaypanel.device.errors import (
    DeviceNotConnectedError,
    DeviceWriteError,
    NoDialerError,
    ProtocolError,
    UnknownDeviceError,
)
from relaypanel.device.protocol import (
    BUZZ_COMMAND,
    LineKind,
    decode_line,
    validate_relay_id,
)
from relaypanel.device.state import RelayState, RelayStateTable

logger = logging.getLogger(__name__)

RELAYS = "relays"
BUZZER = "buzzer"
DEVICE_NAMES: tuple[str, ...] = (RELAYS, BUZZER)

# Pause between reads while the link is up but no full line has arrived
IDLE_RETRY: float = 0.2

# Back-off config for reconnect attempts
_BACKOFF_BASE: float = 1.0
_BACKOFF_MAX: float = 30.0


class Connection(Protocol):
    """Duplex byte stream handed to the manager by a dialer."""

    def readline(self) -> bytes:
        """Return one line including ``\\n``, or ``b""`` if none is ready yet."""
        ...

    def write(self, data: bytes) -> int | None: ...

    def close(self) -> None: ...


Dialer = Callable[[], Connection]


def backoff_delays(
    base: float = _BACKOFF_BASE, maximum: float = _BACKOFF_MAX
) -> Iterator[float]:
    """Yield 1, 2, 4, 8, 16, 30, 30, … (doubling, capped at ``maximum``)."""
    delay = base
    while True:
        yield delay
        delay = min(delay * 2, maximum)


class DeviceManager:
    def __init__(
        self,
        device_names: tuple[str, ...] = DEVICE_NAMES,
        *,
        idle_retry: float = IDLE_RETRY,
        backoff_base: float = _BACKOFF_BASE,
        backoff_max: float = _BACKOFF_MAX,
    ) -> None:
        self._idle_retry = idle_retry
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max

        self._devices: dict[str, Connection | None] = {n: None for n in device_names}
        self._devices_lock = threading.Lock()

        self._dialers: dict[str, Dialer] = {}
        self._reconnecting: set[str] = set()
        self._reconnect_lock = threading.Lock()

        self._stop = threading.Event()
        self.relays = RelayStateTable()

    # ── Connection registry ───────────────────────────────────────────────────

    def _check_name(self, name: str) -> None:
        if name not in self._devices:
            raise UnknownDeviceError(name)

    def set_dialer(self, name: str, dialer: Dialer) -> None:
        self._check_name(name)
        with self._reconnect_lock:
            self._dialers[name] = dialer

    def set_device(self, name: str, conn: Connection | None) -> Connection | None:
        """
        Replace the connection for ``name`` and return the previous one.

        The previous connection is not closed; that is the caller's job.
        """
        self._check_name(name)
        with self._devices_lock:
            previous = self._devices[name]
            self._devices[name] = conn
        return previous

    def get_device(self, name: str) -> Connection | None:
        self._check_name(name)
        with self._devices_lock:
            return self._devices[name]

    def device_connected(self, name: str) -> bool:
        return self.get_device(name) is not None

    def device_names(self) -> tuple[str, ...]:
        return tuple(self._devices)

    def is_reconnecting(self, name: str) -> bool:
        with self._reconnect_lock:
            return name in self._reconnecting

    def start_reader(self, name: str) -> bool:
        """Start a reader for the current connection.  Returns False if there is none."""
        conn = self.get_device(name)
        if conn is None:
            return False
        self._spawn_reader(name, conn)
        return True

    def _spawn_reader(self, name: str, conn: Connection) -> None:
        thread = threading.Thread(
            target=self._read_loop,
            args=(name, conn),
            name=f"reader-{name}",
            daemon=True,
        )
        thread.start()

    def _teardown(self, name: str, conn: Connection) -> None:
        """Close ``conn`` and clear the slot if it still holds it."""
        with self._devices_lock:
            try:
                conn.close()
            except Exception as exc:
                logger.debug("[%s] close failed: %s", name, exc)
            if self._devices.get(name) is conn:
                self._devices[name] = None

    # ── Status queries ────────────────────────────────────────────────────────

    def relay_states(self) -> list[RelayState]:
        return self.relays.snapshot()

    def set_labels(self, labels: dict[int, str]) -> None:
        self.relays.set_labels(labels)

    def update_label(self, relay: int, label: str) -> None:
        self.relays.update_label(relay, label)

    # ── Reader loop ───────────────────────────────────────────────────────────

    def _read_loop(self, name: str, conn: Connection) -> None:
        logger.info("[%s] reader started", name)
        while not self._stop.is_set():
            try:
                raw = conn.readline()
            except Exception as exc:
                if self._stop.is_set() or self.get_device(name) is not conn:
                    break
                logger.error("[%s] device read error: %s", name, exc)
                self._teardown(name, conn)
                self._reconnect_after_failure(name)
                break

            if not raw:
                if self.get_device(name) is not conn:
                    break
                self._stop.wait(self._idle_retry)
                continue

            self.handle_line(name, raw)
        logger.info("[%s] reader stopped", name)

    def handle_line(self, name: str, raw: bytes | str) -> None:
        """Decode one inbound line and apply it to the relay table."""
        try:
            line = decode_line(raw)
        except ProtocolError as exc:
            logger.error("[%s] invalid RELAYS line: %s", name, exc)
            return

        if line.kind is LineKind.HEARTBEAT:
            return

        logger.info("[%s] read: %s", name, line.text)
        if line.kind is LineKind.RELAYS:
            self.relays.apply_mask(line.mask)
            logger.info("[%s] relay states updated: %s", name, format(line.mask, "08b"))

    def _reconnect_after_failure(self, name: str) -> None:
        try:
            self.start_reconnect(name)
        except NoDialerError as exc:
            logger.error("[%s] cannot reconnect: %s", name, exc)

    # ── Reconnect loop ────────────────────────────────────────────────────────

    def start_reconnect(self, name: str) -> bool:
        """
        Start the reconnect loop for ``name`` unless one is already running.

        Returns True if a new loop was started, False if one was in flight.
        Raises ``NoDialerError`` when nothing can redial the device.
        """
        self._check_name(name)
        with self._reconnect_lock:
            dial = self._dialers.get(name)
            if dial is None:
                raise NoDialerError(name)
            if name in self._reconnecting:
                return False
            self._reconnecting.add(name)

        thread = threading.Thread(
            target=self._reconnect_loop,
            args=(name, dial),
            name=f"reconnect-{name}",
            daemon=True,
        )
        thread.start()
        return True

    def _sleep(self, seconds: float) -> bool:
        """Wait ``seconds``; returns True if the manager was closed meanwhile."""
        return self._stop.wait(seconds)

    def _install(self, name: str, conn: Connection) -> bool:
        """
        Put ``conn`` in the slot for ``name`` and close whatever it replaces.

        Returns False without touching the slot once ``close()`` has begun;
        the stop check and the store happen under the same lock ``close()``
        takes to empty the slots.
        """
        with self._devices_lock:
            if self._stop.is_set():
                return False
            previous = self._devices[name]
            self._devices[name] = conn
        if previous is not None and previous is not conn:
            previous.close()
        return True

    def _clear_reconnecting(self, name: str) -> None:
        with self._reconnect_lock:
            self._reconnecting.discard(name)

    def _reconnect_loop(self, name: str, dial: Dialer) -> None:
        # Once the new reader exists, a failure on its link must be able to
        # start the next reconnect, so the flag is cleared before the spawn.
        handed_off = False
        try:
            attempt = 0
            for delay in backoff_delays(self._backoff_base, self._backoff_max):
                if self._stop.is_set():
                    return
                attempt += 1
                logger.warning("[%s] attempting reconnect (attempt %d)", name, attempt)
                start = time.perf_counter()
                try:
                    conn = dial()
                except Exception as exc:
                    logger.error(
                        "[%s] reconnect failed (attempt %d, %.2fs): %s — retrying in %.0fs",
                        name,
                        attempt,
                        time.perf_counter() - start,
                        exc,
                        delay,
                    )
                    if self._sleep(delay):
                        return
                    continue

                if not self._install(name, conn):
                    conn.close()
                    return
                self._clear_reconnecting(name)
                handed_off = True
                logger.info(
                    "[%s] device connected (attempt %d, %.2fs)",
                    name,
                    attempt,
                    time.perf_counter() - start,
                )
                self._spawn_reader(name, conn)
                return
        finally:
            if not handed_off:
                self._clear_reconnecting(name)

    # ── Command writer ────────────────────────────────────────────────────────

    def toggle_relay(self, relay_id: str) -> None:
        """
        Send a toggle for relay ``relay_id`` (``'1'..'8'``).

        The relay table is not touched here; the board reports the new state
        in its next ``RELAYS:`` line.
        """
        validate_relay_id(relay_id)
        self._send(RELAYS, relay_id)

    def buzz_door(self) -> None:
        self._send(BUZZER, BUZZ_COMMAND)

    def _send(self, name: str, command: str) -> None:
        conn = self.get_device(name)
        if conn is None:
            raise DeviceNotConnectedError(name)
        try:
            conn.write(command.encode("ascii"))
        except Exception as exc:
            logger.warning("[%s] device write failed; scheduling reconnect: %s", name, exc)
            self._teardown(name, conn)
            self._reconnect_after_failure(name)
            raise DeviceWriteError(name, exc) from exc

    # ── Shutdown ──────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Stop background loops and close every live connection."""
        self._stop.set()
        for name in self.device_names():
            conn = self.set_device(name, None)
            if conn is not None:
                try:
                    conn.close()
                except Exception as exc:
                    logger.debug("[%s] close failed: %s", name, exc)
                logger.info("[%s] closed device", name)

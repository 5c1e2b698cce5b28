"""
Startup wiring: builds the device manager from settings.

Modes
-----
- ``serial``  relay board on a local serial port (buzzer unused)
- ``telnet``  relay board on ``telnet_addr``
- ``multi``   relay board and buzzer on two ESP32s, dialed concurrently;
              startup fails if either one cannot be reached

In every mode the dialers are registered before the first dial so a later
link loss can always be redialed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from relaypanel.config import Settings
from relaypanel.db.labels import LabelStore
from relaypanel.device.manager import BUZZER, RELAYS, Connection, DeviceManager, Dialer
from relaypanel.transport.serial_link import open_serial
from relaypanel.transport.telnet import dial_telnet

logger = logging.getLogger(__name__)

CONNECTION_MODES: tuple[str, ...] = ("serial", "telnet", "multi")


class StartupError(RuntimeError):
    """A device could not be reached while the service was starting."""


def build_dialers(settings: Settings) -> dict[str, Dialer]:
    """Return ``{device_name: dialer}`` for the configured connection mode."""
    mode = settings.connection_mode
    timeout = settings.dial_timeout

    if mode == "multi":
        return {
            RELAYS: lambda: dial_telnet(settings.relays_host, timeout=timeout),
            BUZZER: lambda: dial_telnet(settings.buzzer_host, timeout=timeout),
        }
    if mode == "telnet":
        if not settings.telnet_addr:
            raise StartupError("telnet mode requires TELNET_ADDR")
        return {RELAYS: lambda: dial_telnet(settings.telnet_addr, timeout=timeout)}
    if mode == "serial":
        return {
            RELAYS: lambda: open_serial(
                settings.serial_port,
                settings.serial_baudrate,
                read_timeout=settings.serial_read_timeout,
            )
        }
    raise StartupError(
        f"Unknown connection mode: {mode!r} (valid: {', '.join(CONNECTION_MODES)})"
    )


def connect_devices(manager: DeviceManager, dialers: dict[str, Dialer]) -> None:
    """
    Register every dialer, dial all devices concurrently and start readers.

    If any dial fails the connections that did open are closed and
    ``StartupError`` is raised, leaving the manager without devices.
    """
    for name, dial in dialers.items():
        manager.set_dialer(name, dial)

    opened: dict[str, Connection] = {}
    errors: dict[str, Exception] = {}
    with ThreadPoolExecutor(max_workers=len(dialers), thread_name_prefix="dial") as pool:
        futures = {}
        for name, dial in dialers.items():
            logger.info("[%s] dialing", name)
            futures[name] = pool.submit(dial)
        for name, future in futures.items():
            try:
                opened[name] = future.result()
            except Exception as exc:
                errors[name] = exc

    if errors:
        for conn in opened.values():
            conn.close()
        name, exc = next(iter(errors.items()))
        raise StartupError(f"failed to connect {name}: {exc}") from exc

    for name, conn in opened.items():
        manager.set_device(name, conn)
        logger.info("[%s] connected", name)
    for name in opened:
        manager.start_reader(name)


def load_labels(manager: DeviceManager, store: LabelStore) -> None:
    """
    Seed the relay table with labels from the store.

    A database outage is logged and the service starts with empty labels;
    relays stay controllable without ClickHouse.
    """
    try:
        store.ensure_schema()
        labels = store.list_labels()
    except Exception as exc:
        logger.error("Failed to load relay labels from ClickHouse: %s", exc)
        return
    manager.set_labels({row.relay_index: row.label for row in labels})
    logger.info("Loaded %d relay label(s) from ClickHouse", len(labels))


def start_devices(settings: Settings, store: LabelStore) -> DeviceManager:
    """Build a manager, load labels and connect every configured device."""
    manager = DeviceManager()
    load_labels(manager, store)
    connect_devices(manager, build_dialers(settings))
    return manager

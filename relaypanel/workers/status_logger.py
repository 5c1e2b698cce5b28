"""
Status logger — background task that writes one summary line every
``status_interval`` seconds: which device links are up and which relays
are on.
"""

import asyncio
import logging

from relaypanel.device.manager import DeviceManager
from relaypanel.device.state import RelayState

logger = logging.getLogger(__name__)


def format_relay_status(states: list[RelayState]) -> tuple[str, int]:
    """
    Render relay states as ``"Relay 1 (lamp) ON | Relay 2: OFF | …"``.

    Returns ``(text, on_count)``.
    """
    parts: list[str] = []
    on_count = 0
    for number, state in enumerate(states, start=1):
        on_off = "ON" if state.on else "OFF"
        if state.on:
            on_count += 1
        if state.label:
            parts.append(f"Relay {number} ({state.label}) {on_off}")
        else:
            parts.append(f"Relay {number}: {on_off}")
    return " | ".join(parts), on_count


def format_device_status(manager: DeviceManager) -> str:
    return " | ".join(
        f"[{name}] {'up' if manager.device_connected(name) else 'DOWN'}"
        for name in manager.device_names()
    )


def log_status(manager: DeviceManager) -> None:
    states = manager.relay_states()
    relays, on_count = format_relay_status(states)
    logger.info(
        "status: %s — %s (%d/%d on)",
        format_device_status(manager),
        relays,
        on_count,
        len(states),
    )


async def run_status_logger(manager: DeviceManager, interval: float) -> None:
    """
    Long-running coroutine: log the status every ``interval`` seconds.

    Intended to be launched as a background task from the FastAPI lifespan and
    cancelled on shutdown.
    """
    logger.info("Status logger starting (every %.0fs)", interval)
    while True:
        try:
            await asyncio.sleep(interval)
            log_status(manager)

        except asyncio.CancelledError:
            logger.info("Status logger cancelled — shutting down")
            break

        except Exception as exc:
            logger.error("Status logger error: %s", exc, exc_info=True)

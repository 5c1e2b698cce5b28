"""
In-memory relay state table: 8 on/off flags plus their labels.
"""

import threading
from dataclasses import dataclass

from relaypanel.device.errors import InvalidRelayIdError
from relaypanel.device.protocol import RELAY_COUNT, mask_to_states


@dataclass(frozen=True)
class RelayState:
    label: str
    on: bool


class RelayStateTable:
    """
    Thread-safe table of relay labels and states, indexed 1..8.

    Every read returns a full 8-entry snapshot taken under the lock, so a
    reader never sees half of a bitmask update.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._labels: list[str] = [""] * RELAY_COUNT
        self._states: list[bool] = [False] * RELAY_COUNT

    def apply_mask(self, mask: int) -> None:
        """Overwrite all 8 states from a relay bitmask."""
        states = mask_to_states(mask)
        with self._lock:
            self._states = states

    def set_labels(self, labels: dict[int, str]) -> None:
        """Bulk-load labels keyed by relay number; out-of-range keys are skipped."""
        with self._lock:
            for relay, label in labels.items():
                if 1 <= relay <= RELAY_COUNT:
                    self._labels[relay - 1] = label

    def update_label(self, relay: int, label: str) -> None:
        if not 1 <= relay <= RELAY_COUNT:
            raise InvalidRelayIdError(f"invalid relay index: {relay}")
        with self._lock:
            self._labels[relay - 1] = label

    def snapshot(self) -> list[RelayState]:
        with self._lock:
            return [
                RelayState(label=label, on=on)
                for label, on in zip(self._labels, self._states)
            ]

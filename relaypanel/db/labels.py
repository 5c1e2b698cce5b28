"""
Relay label store backed by the ClickHouse ``relay_labels`` table.

The table is a ``ReplacingMergeTree`` keyed on ``relay_index``: an update is
a plain insert and reads use ``FINAL`` so only the newest row per relay is
returned.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from clickhouse_connect.driver.client import Client

from relaypanel.db.clickhouse import get_client
from relaypanel.device.protocol import RELAY_COUNT

logger = logging.getLogger(__name__)

_TABLE = "relay_labels"
_COLUMNS = ["relay_index", "label", "updated_at"]

_CREATE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {_TABLE} (
    relay_index UInt8,
    label String,
    updated_at DateTime64(3, 'UTC')
)
ENGINE = ReplacingMergeTree(updated_at)
ORDER BY relay_index
"""


@dataclass(frozen=True)
class RelayLabel:
    relay_index: int
    label: str


def default_label(relay_index: int) -> str:
    return f"relay-{relay_index}"


class LabelStore:
    def __init__(self, client_factory: Callable[[], Client] = get_client) -> None:
        self._client_factory = client_factory

    def ensure_schema(self) -> None:
        """Create the table if needed and insert default labels for missing relays."""
        client = self._client_factory()
        client.command(_CREATE_TABLE)

        existing = {
            row[0]
            for row in client.query(f"SELECT DISTINCT relay_index FROM {_TABLE}").result_rows
        }
        now = datetime.now(timezone.utc)
        missing = [
            [idx, default_label(idx), now]
            for idx in range(1, RELAY_COUNT + 1)
            if idx not in existing
        ]
        if missing:
            client.insert(_TABLE, missing, column_names=_COLUMNS)
            logger.info("Seeded %d default relay label(s)", len(missing))

    def list_labels(self) -> list[RelayLabel]:
        """Return the current label of every relay, ordered by relay index."""
        client = self._client_factory()
        result = client.query(
            f"SELECT relay_index, label FROM {_TABLE} FINAL ORDER BY relay_index ASC"
        )
        return [RelayLabel(relay_index=int(idx), label=label) for idx, label in result.result_rows]

    def update_label(self, relay_index: int, label: str) -> None:
        client = self._client_factory()
        client.insert(
            _TABLE,
            [[relay_index, label, datetime.now(timezone.utc)]],
            column_names=_COLUMNS,
        )

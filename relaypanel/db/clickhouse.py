"""
ClickHouse access for the relay label table.

    from relaypanel.db.clickhouse import get_client, ping

    client = get_client()          # fresh client per caller / thread
    health = ping()                # DatabaseHealth used by GET /status
"""

import logging
import time
from dataclasses import dataclass

import clickhouse_connect
from clickhouse_connect.driver.client import Client

from relaypanel.config import Settings, settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseHealth:
    connected: bool
    latency_ms: float


def get_client(cfg: Settings | None = None) -> Client:
    """
    Open a client using the ClickHouse fields of ``cfg`` (default: ``settings``).

    Clients are not shared: label updates run on FastAPI's worker threads and
    a ``clickhouse-connect`` client must not serve two threads at once.
    """
    cfg = cfg or settings
    return clickhouse_connect.get_client(
        host=cfg.clickhouse_host,
        port=cfg.clickhouse_port,
        database=cfg.clickhouse_database,
        username=cfg.clickhouse_user,
        password=cfg.clickhouse_password,
    )


def ping() -> DatabaseHealth:
    """Run ``SELECT 1`` and report whether it answered, with round-trip time."""
    start = time.perf_counter()
    connected = False
    try:
        connected = get_client().query("SELECT 1").result_rows == [(1,)]
    except Exception as exc:
        logger.error("ClickHouse ping failed: %s", exc)
    latency_ms = round((time.perf_counter() - start) * 1000, 2)
    return DatabaseHealth(connected=connected, latency_ms=latency_ms)

"""
GET /status — device connectivity, relay states and database health.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from relaypanel.api.deps import get_manager
from relaypanel.api.routes.relays import RelayStateItem, relay_items
from relaypanel.db.clickhouse import ping
from relaypanel.device.manager import DeviceManager

router = APIRouter()
logger = logging.getLogger(__name__)


class DeviceStateItem(BaseModel):
    name: str
    state: str


class StatusResponse(BaseModel):
    devices: list[DeviceStateItem]
    relays: list[RelayStateItem]
    clickhouse: dict


@router.get("/status", response_model=StatusResponse)
def get_status(manager: DeviceManager = Depends(get_manager)) -> StatusResponse:
    """
    Returns the state of every device link and every relay.

    - **devices**: ``connected`` / ``disconnected`` per device name.
    - **relays**: label and on/off state of relays 1–8.
    - **clickhouse**: label database connectivity including latency in ms.
    """
    db_health = ping()

    return StatusResponse(
        devices=[
            DeviceStateItem(
                name=name,
                state="connected" if manager.device_connected(name) else "disconnected",
            )
            for name in manager.device_names()
        ],
        relays=relay_items(manager),
        clickhouse={
            "connected": db_health.connected,
            "latency_ms": db_health.latency_ms,
        },
    )

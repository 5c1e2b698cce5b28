"""
Relay endpoints.

GET  /relay/states          current label and on/off state of relays 1–8
GET  /relay/{id}            toggle relay ``id`` and return the relay states
POST /relay/setLabel/{id}   rename relay ``id``; body ``{"label": "..."}``

A toggle only sends the command.  The returned states are the ones known
before the board answered; the new state arrives with the board's next
``RELAYS:`` status line.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from relaypanel.api.deps import get_label_store, get_manager
from relaypanel.db.labels import LabelStore
from relaypanel.device.errors import (
    DeviceNotConnectedError,
    DeviceWriteError,
    InvalidRelayIdError,
)
from relaypanel.device.manager import DeviceManager
from relaypanel.device.protocol import validate_relay_id

logger = logging.getLogger(__name__)

router = APIRouter()


class RelayStateItem(BaseModel):
    label: str
    state: bool


class SetLabelRequest(BaseModel):
    label: str


class SetLabelResponse(BaseModel):
    status: str
    relay_index: int
    label: str


def relay_items(manager: DeviceManager) -> list[RelayStateItem]:
    return [RelayStateItem(label=s.label, state=s.on) for s in manager.relay_states()]


def _invalid_relay_id(exc: InvalidRelayIdError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"status": "error", "message": str(exc)},
    )


@router.get("/relay/states", response_model=list[RelayStateItem])
def get_relay_states(manager: DeviceManager = Depends(get_manager)) -> list[RelayStateItem]:
    return relay_items(manager)


@router.get("/relay/{relay_id}", response_model=list[RelayStateItem])
def toggle_relay(
    relay_id: str, manager: DeviceManager = Depends(get_manager)
) -> list[RelayStateItem]:
    """
    Toggle one relay.

    - **400** if ``relay_id`` is not a single digit 1–8.
    - **503** if the relay board is disconnected or the write fails.
    """
    try:
        manager.toggle_relay(relay_id)
    except InvalidRelayIdError as exc:
        raise _invalid_relay_id(exc) from exc
    except (DeviceNotConnectedError, DeviceWriteError) as exc:
        logger.warning("Toggle of relay %s failed: %s", relay_id, exc)
        raise HTTPException(
            status_code=503,
            detail={"status": "unavailable", "message": str(exc)},
        ) from exc
    return relay_items(manager)


@router.post("/relay/setLabel/{relay_id}", response_model=SetLabelResponse)
def set_relay_label(
    relay_id: str,
    body: SetLabelRequest,
    manager: DeviceManager = Depends(get_manager),
    store: LabelStore = Depends(get_label_store),
) -> SetLabelResponse:
    """
    Rename a relay in memory and in ClickHouse.

    - **400** if ``relay_id`` or the JSON body is invalid.
    - **500** if the database write fails; the in-memory label is already set.
    """
    try:
        relay = validate_relay_id(relay_id)
    except InvalidRelayIdError as exc:
        raise _invalid_relay_id(exc) from exc

    manager.update_label(relay, body.label)
    try:
        store.update_label(relay, body.label)
    except Exception as exc:
        logger.error("Failed to update label of relay %d in ClickHouse: %s", relay, exc)
        raise HTTPException(
            status_code=500,
            detail={"status": "error", "message": "failed to update label in database"},
        ) from exc

    logger.info("Relay label updated: relay %d -> %r", relay, body.label)
    return SetLabelResponse(status="ok", relay_index=relay, label=body.label)

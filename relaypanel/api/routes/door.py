"""
GET /door/buzz — trigger the door buzzer.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from relaypanel.api.deps import get_manager
from relaypanel.device.errors import DeviceNotConnectedError, DeviceWriteError
from relaypanel.device.manager import DeviceManager

logger = logging.getLogger(__name__)

router = APIRouter()


class BuzzResponse(BaseModel):
    status: str


@router.get("/door/buzz", response_model=BuzzResponse)
def buzz_door(manager: DeviceManager = Depends(get_manager)) -> BuzzResponse:
    """Returns **503** if the buzzer is disconnected or the write fails."""
    try:
        manager.buzz_door()
    except (DeviceNotConnectedError, DeviceWriteError) as exc:
        logger.warning("Door buzz failed: %s", exc)
        raise HTTPException(
            status_code=503,
            detail={"status": "unavailable", "message": str(exc)},
        ) from exc
    return BuzzResponse(status="ok")

"""
GET /tv/{command} — send a remote-control key event to the TV over adb.

``command`` is one of the names in ``relaypanel.adb.TV_COMMANDS``, e.g.
``power``, ``volume_up``, ``dpad_center`` or ``media_play_pause``.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from relaypanel.adb.client import TV_COMMANDS, AdbClient, AdbError
from relaypanel.api.deps import get_tv_client

logger = logging.getLogger(__name__)

router = APIRouter()


class TvCommandResponse(BaseModel):
    status: str
    command: str


@router.get("/tv/{command}", response_model=TvCommandResponse)
def tv_command(
    command: str, tv: AdbClient | None = Depends(get_tv_client)
) -> TvCommandResponse:
    """
    - **404** for an unknown command name.
    - **503** if no adb client is configured or adb fails.
    """
    if command not in TV_COMMANDS:
        raise HTTPException(
            status_code=404,
            detail={"status": "error", "message": f"Unknown TV command '{command}'"},
        )
    if tv is None:
        raise HTTPException(
            status_code=503,
            detail={"status": "unavailable", "message": "adb client not configured"},
        )

    try:
        tv.send_command(command)
    except AdbError as exc:
        logger.warning("TV command %s failed: %s", command, exc)
        raise HTTPException(
            status_code=503,
            detail={"status": "unavailable", "message": str(exc)},
        ) from exc
    return TvCommandResponse(status="ok", command=command)

"""
Shared FastAPI dependencies.

The device manager, label store and TV client live on ``app.state``; they are
built by the application factory or its lifespan, never imported as
module-level singletons.
"""

import logging

from fastapi import HTTPException, Request

from relaypanel.adb.client import AdbClient
from relaypanel.db.labels import LabelStore
from relaypanel.device.manager import DeviceManager

logger = logging.getLogger(__name__)


def get_manager(request: Request) -> DeviceManager:
    """
    Return the running device manager.

    Raises **503** while the service is still starting (or failed to start).
    """
    manager: DeviceManager | None = getattr(request.app.state, "manager", None)
    if manager is None:
        logger.warning("Device manager not initialised")
        raise HTTPException(
            status_code=503,
            detail={"status": "unavailable", "message": "Device manager not ready"},
        )
    return manager


def get_label_store(request: Request) -> LabelStore:
    return request.app.state.label_store


def get_tv_client(request: Request) -> AdbClient | None:
    return getattr(request.app.state, "tv_client", None)

"""
Relay panel — FastAPI application entry point.

Run with:
    uvicorn relaypanel.main:app --host 0.0.0.0 --port 42069
or, with command-line overrides:
    python -m relaypanel --telnet 192.168.1.50:23
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from relaypanel.adb.client import AdbClient
from relaypanel.api.middleware import RequestLogMiddleware
from relaypanel.api.routes import door as door_router
from relaypanel.api.routes import relays as relays_router
from relaypanel.api.routes import status as status_router
from relaypanel.api.routes import tv as tv_router
from relaypanel.bootstrap import start_devices
from relaypanel.config import Settings, settings
from relaypanel.db.labels import LabelStore
from relaypanel.device.manager import DeviceManager
from relaypanel.logging_setup import setup_logging
from relaypanel.workers.status_logger import run_status_logger

setup_logging(settings.log_level, settings.log_color)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Connect the devices and start the status logger; undo both on shutdown."""
    cfg: Settings = app.state.settings
    owns_manager = app.state.manager is None
    if owns_manager:
        # Dialing blocks for up to dial_timeout; keep it off the event loop.
        app.state.manager = await asyncio.to_thread(
            start_devices, cfg, app.state.label_store
        )
    manager: DeviceManager = app.state.manager

    status_task = asyncio.create_task(
        run_status_logger(manager, cfg.status_interval), name="status_logger"
    )
    logger.info("Background workers started (mode=%s)", cfg.connection_mode)
    try:
        yield
    finally:
        status_task.cancel()
        try:
            await status_task
        except asyncio.CancelledError:
            pass
        if owns_manager:
            await asyncio.to_thread(manager.close)
            app.state.manager = None
        logger.info("Background workers stopped")


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": {"status": "error", "message": "invalid request body"}},
    )


def create_app(
    cfg: Settings | None = None,
    *,
    manager: DeviceManager | None = None,
    label_store: LabelStore | None = None,
    tv_client: AdbClient | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    When ``manager`` is omitted the lifespan builds one from the settings and
    connects the devices on startup.  Tests pass a ready manager instead.
    """
    cfg = cfg or settings

    app = FastAPI(
        title="Relay Panel API",
        description="HTTP control for a relay board, a door buzzer and a TV remote.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.manager = manager
    app.state.label_store = label_store or LabelStore()
    app.state.tv_client = tv_client or AdbClient(
        cfg.adb_host, cfg.adb_port, adb_path=cfg.adb_path, timeout=cfg.adb_timeout
    )

    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(status_router.router, tags=["health"])
    app.include_router(relays_router.router, tags=["relays"])
    app.include_router(door_router.router, tags=["door"])
    app.include_router(tv_router.router, tags=["tv"])

    # Static UI last so it never shadows an API route.
    static_dir = Path(cfg.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        logger.warning("Static directory %s not found; UI not served", static_dir)

    return app


_app: FastAPI | None = None


def __getattr__(name: str) -> FastAPI:
    # ``uvicorn relaypanel.main:app`` builds the default app on first access;
    # ``python -m relaypanel`` only calls create_app() with its own settings.
    global _app
    if name == "app":
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

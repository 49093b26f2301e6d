"""FastAPI entrypoint for Duskhaven."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from packages.duskhaven_core.errors import CognitionInputError

from .routers.sim import router as sim_router
from .services.runtime_scheduler import (
    start_world_runtime_scheduler,
    stop_world_runtime_scheduler,
)
from .services.world_registry import SimulationBusyError, WorldNotFoundError
from .storage.worlds import init_db as init_worlds_db
from .storage.worlds import ping as ping_worlds_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("duskhaven_api")


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


app = FastAPI(title="Duskhaven API", version="0.1.0")

_cors_origins = [o.strip() for o in os.environ.get("DUSKHAVEN_CORS_ORIGINS", "*").split(",")]
_cors_allow_credentials = "*" not in _cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=_cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(sim_router)


@app.exception_handler(SimulationBusyError)
async def _simulation_busy_handler(request: Request, exc: SimulationBusyError):
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc)},
        headers={"Retry-After": "2"},
    )


@app.exception_handler(WorldNotFoundError)
async def _world_not_found_handler(request: Request, exc: WorldNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(CognitionInputError)
async def _cognition_input_handler(request: Request, exc: CognitionInputError):
    logger.info("[API] Rejected input on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.on_event("startup")
def startup() -> None:
    logger.info("[STARTUP] Duskhaven API starting up at %s", datetime.now(timezone.utc).isoformat())
    try:
        logger.info("[STARTUP] Initializing worlds database...")
        init_worlds_db()
        logger.info("[STARTUP] Worlds database initialized successfully")
    except Exception as e:
        logger.error("[STARTUP] Failed to initialize worlds database: %s", e)
        raise

    if _truthy_env("DUSKHAVEN_AUTOSTART_RUNTIME_SCHEDULER", default=False):
        start_world_runtime_scheduler()
        logger.info("[STARTUP] Background world scheduler autostart is enabled")

    logger.info("[STARTUP] Duskhaven API startup complete")


@app.on_event("shutdown")
def shutdown() -> None:
    stop_world_runtime_scheduler()


@app.get("/healthz")
def healthz():
    logger.debug("[HEALTH] Health check requested")
    try:
        ping_worlds_db()
    except Exception as exc:
        logger.warning("[HEALTH] DB ping failed: %s", exc)
        return JSONResponse(status_code=503, content={"status": "error", "detail": str(exc)})
    return {"status": "ok"}

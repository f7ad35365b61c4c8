"""Ketmar geo service FastAPI application entrypoint.

This module wires the web application, configures CORS, checks MongoDB and
its geo indexes on startup, and mounts the feed, search and worker routers.
"""
import logging

import logging_config  # noqa: F401 - configures logging on import
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from database import ensure_indexes, ping_db
from routes.ads import router as ads_router
from routes.home_config import router as home_config_router
from routes.worker_orders import router as worker_orders_router
from routes.workers import router as workers_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Ketmar Geo")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(home_config_router)
app.include_router(ads_router)
app.include_router(worker_orders_router)
app.include_router(workers_router)


@app.on_event("startup")
async def startup() -> None:
    """Verify the database and make sure the 2dsphere indexes exist."""
    await ping_db()
    try:
        await ensure_indexes()
    except Exception as e:  # noqa: BLE001 - serve anyway, queries will report
        logger.error("Index bootstrap failed: %s", e)


@app.get("/health")
async def health() -> dict:
    """Liveness check."""
    return {"status": "ok"}

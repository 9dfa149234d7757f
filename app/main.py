from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.alert_log import build_default_alert_log
from datastore.device_registry import build_default_registry
from logging_config import configure_logging
from services.ingestion import build_default_ingestion_service
from storage.telemetry_store import build_default_store


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    build_default_ingestion_service()
    try:
        yield
    finally:
        build_default_ingestion_service.cache_clear()
        build_default_store.cache_clear()
        build_default_registry.cache_clear()
        build_default_alert_log.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Fleet Telemetry Intake",
        description="Authenticated ingestion of fuel, engine and GPS readings with fuel anomaly detection.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()

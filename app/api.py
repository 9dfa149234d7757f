"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.schemas import AlertRecord, ErrorResponse, IngestResponse, TelemetryRow
from datastore.alert_log import MockAlertLog, build_default_alert_log
from services.errors import IngestionError
from services.ingestion import IngestionService, build_default_ingestion_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_ingestion_service() -> IngestionService:
    return build_default_ingestion_service()


def get_alert_log() -> MockAlertLog:
    return build_default_alert_log()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.post(
    "/telemetry-ingest",
    response_model=IngestResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Ingest one telemetry reading from an authenticated device.",
)
async def ingest_telemetry(
    request: Request,
    x_api_key: Optional[str] = Header(default=None, alias="x-api-key"),
    service: IngestionService = Depends(get_ingestion_service),
):
    try:
        body = await request.body()
        await run_in_threadpool(service.ingest, x_api_key, body)
    except IngestionError as exc:
        return _error(exc.status_code, exc.message)
    except Exception:
        logger.exception("Unhandled error during telemetry ingestion")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")
    return IngestResponse(success=True)


@router.get(
    "/devices/{device_id}/telemetry",
    response_model=list[TelemetryRow],
    summary="List a device's readings, newest first.",
)
async def list_device_telemetry(
    device_id: str,
    limit: int = Query(50, ge=1, le=500),
    service: IngestionService = Depends(get_ingestion_service),
) -> list[TelemetryRow]:
    try:
        readings = service.recent_readings(device_id, limit=limit)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc
    return [TelemetryRow.from_reading(reading) for reading in readings]


@router.get(
    "/devices/{device_id}/telemetry/latest",
    response_model=TelemetryRow,
    summary="Fetch the most recent reading for a device.",
)
async def latest_device_telemetry(
    device_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> TelemetryRow:
    try:
        reading = service.latest_reading(device_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc
    return TelemetryRow.from_reading(reading)


@router.get(
    "/alerts",
    response_model=list[AlertRecord],
    summary="List recorded fuel anomalies, newest first.",
)
async def list_alerts(
    device_id: Optional[str] = Query(None),
    alert_log: MockAlertLog = Depends(get_alert_log),
) -> list[AlertRecord]:
    return alert_log.list_events(device_id=device_id)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}

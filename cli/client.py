from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the telemetry intake service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_reading(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self._config.api_key:
            raise typer.BadParameter("A device API key is required (--api-key or DEVICE_API_KEY).")
        try:
            response = self._client.post(
                "/telemetry-ingest",
                json=payload,
                headers={"x-api-key": self._config.api_key},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def latest_reading(self, device_id: str) -> Dict[str, Any]:
        try:
            response = self._client.get(f"/devices/{device_id}/telemetry/latest")
            if response.status_code == 404:
                raise typer.BadParameter(f"No telemetry found for device {device_id}.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def list_alerts(self, device_id: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"device_id": device_id} if device_id else None
        try:
            response = self._client.get("/alerts", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("error") or data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

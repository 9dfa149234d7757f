"""Failure taxonomy for the ingestion pipeline.

Each error carries the HTTP status it maps to at the endpoint boundary and a
message that is safe to return to the device.
"""

from __future__ import annotations


class IngestionError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingCredential(IngestionError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Missing API Key")


class InvalidCredential(IngestionError):
    status_code = 403

    def __init__(self) -> None:
        super().__init__("Invalid Device")


class InvalidPayload(IngestionError):
    status_code = 400

    def __init__(self, field: str | None, reason: str) -> None:
        super().__init__(reason)
        self.field = field
        self.reason = reason


class StorageError(IngestionError):
    status_code = 500


class AlertEmissionError(IngestionError):
    """Raised by alert sinks; never surfaced to the device."""

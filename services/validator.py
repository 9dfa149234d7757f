"""Schema and range validation for inbound telemetry payloads."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import ValidationError

from app.schemas import TelemetryPayloadIn
from models.records import TelemetryPayload
from services.errors import InvalidPayload

_FIELDS_BY_ALIAS = {
    field.alias: name for name, field in TelemetryPayloadIn.model_fields.items() if field.alias
}


class PayloadValidator:
    """Turns a request body into a ``TelemetryPayload``.

    Values outside their range are rejected, never clamped. Pure: no I/O and
    no knowledge of the sending device.
    """

    def parse(self, body: bytes) -> TelemetryPayload:
        if not body or not body.strip():
            raise InvalidPayload(None, "Request body is empty")
        try:
            model = TelemetryPayloadIn.model_validate_json(body)
        except ValidationError as exc:
            raise self._to_invalid_payload(exc) from exc
        return model.to_payload()

    def validate(self, data: Mapping[str, Any]) -> TelemetryPayload:
        try:
            model = TelemetryPayloadIn.model_validate(data)
        except ValidationError as exc:
            raise self._to_invalid_payload(exc) from exc
        return model.to_payload()

    @classmethod
    def _to_invalid_payload(cls, exc: ValidationError) -> InvalidPayload:
        # Report the first failure only, keyed by its wire name.
        error = exc.errors()[0]
        loc = error.get("loc") or ()
        if not loc:
            if error["type"] == "json_invalid":
                return InvalidPayload(None, "Request body is not valid JSON")
            return InvalidPayload(None, "Request body must be a JSON object")

        name = str(loc[0])
        if name == "timestamp":
            if isinstance(error.get("input"), str):
                return InvalidPayload(name, "Invalid timestamp")
            return InvalidPayload(name, "timestamp must be an ISO-8601 string")

        if error["type"] == "missing" or error.get("input", ...) is None:
            return InvalidPayload(name, f"Missing required field: {name}")
        if error["type"] in ("greater_than_equal", "less_than_equal"):
            return InvalidPayload(name, cls._range_reason(name))
        return InvalidPayload(name, f"Invalid numeric value for {name}")

    @staticmethod
    def _range_reason(name: str) -> str:
        lower: Optional[float] = None
        upper: Optional[float] = None
        for constraint in TelemetryPayloadIn.model_fields[_FIELDS_BY_ALIAS[name]].metadata:
            lower = getattr(constraint, "ge", lower)
            upper = getattr(constraint, "le", upper)
        if lower is not None and upper is not None:
            return f"{name} must be between {lower:g} and {upper:g}"
        return f"{name} must be non-negative"

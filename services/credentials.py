"""Maps a device API key to the registered device."""

from __future__ import annotations

from typing import Optional, Protocol

from models.records import Device
from services.errors import InvalidCredential, MissingCredential


class DeviceRegistry(Protocol):
    def get_by_api_key(self, api_key: str) -> Optional[Device]: ...

    def get_device(self, device_id: str) -> Optional[Device]: ...


class CredentialResolver:
    """Exact-match lookup of the ``x-api-key`` header value. No side effects."""

    def __init__(self, registry: DeviceRegistry) -> None:
        self.registry = registry

    def resolve(self, api_key: Optional[str]) -> Device:
        if api_key is None or api_key == "":
            raise MissingCredential()
        device = self.registry.get_by_api_key(api_key)
        if device is None:
            raise InvalidCredential()
        return device

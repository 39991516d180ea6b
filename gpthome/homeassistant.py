"""Client for the Home Assistant REST API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

import requests

from gpthome.models import Device, DeviceType

logger = logging.getLogger(__name__)

_DOMAIN_TYPES = {
    "light": DeviceType.LIGHT,
    "switch": DeviceType.SWITCH,
    "sensor": DeviceType.SENSOR,
    "binary_sensor": DeviceType.SENSOR,
    "climate": DeviceType.CLIMATE,
    "cover": DeviceType.COVER,
    "fan": DeviceType.FAN,
    "media_player": DeviceType.MEDIA,
}


class HomeAssistantError(Exception):
    """Raised when Home Assistant cannot be reached or answers with an error."""


class EntityNotFoundError(HomeAssistantError):
    """Raised when Home Assistant has no entity with the requested id."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"entity not found: {entity_id}")
        self.entity_id = entity_id


@runtime_checkable
class HomeAssistantBackend(Protocol):
    """What the device manager needs from a Home Assistant connection."""

    def get_entities(self) -> list[Device]:
        """Return every entity as a device."""

    def get_entity(self, entity_id: str) -> Device:
        """Return one entity as a device."""

    def call_service(
        self, domain: str, service: str, entity_id: str, service_data: Mapping[str, Any] | None
    ) -> None:
        """Call a service on one entity."""

    def test_connection(self) -> None:
        """Raise if the API is not reachable."""


def domain_to_device_type(domain: str) -> DeviceType:
    """Map an entity domain to a device type; unknown domains are sensors."""
    return _DOMAIN_TYPES.get(domain, DeviceType.SENSOR)


def _parse_timestamp(text: str) -> datetime | None:
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        moment = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if moment.tzinfo is None:
        return None
    return moment


def entity_to_device(entity: Mapping[str, Any]) -> Device:
    """Build a device from an entity state object."""
    entity_id = entity.get("entity_id") or ""
    domain, dot, _ = entity_id.partition(".")
    if not dot:
        domain = ""

    attributes = dict(entity.get("attributes") or {})
    friendly_name = attributes.get("friendly_name")
    name = friendly_name if isinstance(friendly_name, str) else entity_id

    last_updated = None
    raw_updated = entity.get("last_updated") or ""
    if raw_updated:
        last_updated = _parse_timestamp(raw_updated)
    if last_updated is None:
        last_updated = datetime.now(timezone.utc)

    return Device(
        id=entity_id,
        name=name,
        type=domain_to_device_type(domain),
        state=entity.get("state") or "",
        attributes=attributes,
        last_updated=last_updated,
        domain=domain,
        entity_id=entity_id,
    )


def _check_entity(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError("entity must be a JSON object")
    for key in ("entity_id", "state", "last_changed", "last_updated"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{key} must be a string")
    attributes = data.get("attributes")
    if attributes is not None and not isinstance(attributes, Mapping):
        raise ValueError("attributes must be a JSON object")
    return data


class HomeAssistantClient:
    """Talks to one Home Assistant instance with a long-lived access token."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> HomeAssistantClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _headers(self, json_body: bool = True) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _send(
        self,
        method: str,
        url: str,
        *,
        failure: str = "failed to make request",
        json_body: bool = True,
        payload: Any = None,
    ) -> requests.Response:
        try:
            return self._session.request(
                method,
                url,
                headers=self._headers(json_body),
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise HomeAssistantError(f"{failure}: {exc}") from exc

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise HomeAssistantError(f"failed to decode response: {exc}") from exc

    def get_entities(self) -> list[Device]:
        response = self._send("GET", f"{self.base_url}/api/states")
        with response:
            if response.status_code != 200:
                raise HomeAssistantError(
                    f"API request failed with status: {response.status_code}"
                )
            data = self._decode(response)
        try:
            if not isinstance(data, list):
                raise ValueError("expected a JSON array of entities")
            entities = [_check_entity(item) for item in data]
        except ValueError as exc:
            raise HomeAssistantError(f"failed to decode response: {exc}") from exc
        return [entity_to_device(entity) for entity in entities]

    def get_entity(self, entity_id: str) -> Device:
        response = self._send("GET", f"{self.base_url}/api/states/{entity_id}")
        with response:
            if response.status_code == 404:
                raise EntityNotFoundError(entity_id)
            if response.status_code != 200:
                raise HomeAssistantError(
                    f"API request failed with status: {response.status_code}"
                )
            data = self._decode(response)
        try:
            entity = _check_entity(data)
        except ValueError as exc:
            raise HomeAssistantError(f"failed to decode response: {exc}") from exc
        return entity_to_device(entity)

    def call_service(
        self,
        domain: str,
        service: str,
        entity_id: str,
        service_data: Mapping[str, Any] | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "domain": domain,
            "service": service,
            "target": {"entity_id": [entity_id]},
        }
        if service_data:
            payload["service_data"] = dict(service_data)
        response = self._send(
            "POST", f"{self.base_url}/api/services/{domain}/{service}", payload=payload
        )
        with response:
            if response.status_code != 200:
                raise HomeAssistantError(
                    f"service call failed with status {response.status_code}: {response.text}"
                )
        logger.debug(
            "Successfully called service %s.%s for entity %s", domain, service, entity_id
        )

    def test_connection(self) -> None:
        response = self._send(
            "GET",
            f"{self.base_url}/api/",
            failure="failed to connect to HomeAssistant",
            json_body=False,
        )
        with response:
            if response.status_code != 200:
                raise HomeAssistantError(
                    f"HomeAssistant API returned status: {response.status_code}"
                )
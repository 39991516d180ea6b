"""Cached view of Home Assistant devices and the actions they accept."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from gpthome.homeassistant import HomeAssistantBackend, HomeAssistantError
from gpthome.models import Device, DeviceAction, DeviceType

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 30.0

# Device type -> (service domain, {action: service})
_SERVICE_TABLE: dict[DeviceType, tuple[str, dict[str, str]]] = {
    DeviceType.LIGHT: (
        "light",
        {
            "turn_on": "turn_on",
            "turn_off": "turn_off",
            "toggle": "toggle",
            "set_brightness": "turn_on",
            "set_color": "turn_on",
        },
    ),
    DeviceType.SWITCH: (
        "switch",
        {"turn_on": "turn_on", "turn_off": "turn_off", "toggle": "toggle"},
    ),
    DeviceType.CLIMATE: (
        "climate",
        {"set_temperature": "set_temperature", "set_hvac_mode": "set_hvac_mode"},
    ),
    DeviceType.COVER: (
        "cover",
        {
            "open": "open_cover",
            "close": "close_cover",
            "stop": "stop_cover",
            "set_position": "set_cover_position",
        },
    ),
    DeviceType.FAN: (
        "fan",
        {
            "turn_on": "turn_on",
            "turn_off": "turn_off",
            "toggle": "toggle",
            "set_speed": "set_percentage",
        },
    ),
    DeviceType.MEDIA: (
        "media_player",
        {
            "play": "media_play",
            "pause": "media_pause",
            "stop": "media_stop",
            "volume_set": "volume_set",
        },
    ),
}


class DeviceError(Exception):
    """Raised when a device cannot be read or controlled."""


class DeviceNotFoundError(DeviceError):
    """Raised when no device has the requested id."""

    def __init__(self, device_id: str) -> None:
        super().__init__(f"device not found: {device_id}")
        self.device_id = device_id


class UnsupportedActionError(DeviceError):
    """Raised when a device type has no service for the requested action."""

    def __init__(self, action: str, device_type: DeviceType | str) -> None:
        type_name = device_type.value if isinstance(device_type, DeviceType) else device_type
        super().__init__(f"unsupported action {action} for device type {type_name}")
        self.action = action
        self.device_type = device_type


def map_action_to_service(
    device: Device, action: DeviceAction
) -> tuple[str, str, dict[str, Any]]:
    """Return the domain, service and service data for an action on a device.

    Domain and service are empty strings when the combination is not supported.
    """
    service_data = dict(action.parameters or {})
    entry = _SERVICE_TABLE.get(device.type)
    if entry is None:
        return "", "", service_data
    domain, services = entry
    return domain, services.get(action.action, ""), service_data


class DeviceManager:
    """Keeps a short-lived cache of devices and forwards actions to Home Assistant."""

    def __init__(
        self,
        ha_client: HomeAssistantBackend,
        cache_ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = ha_client
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._devices: dict[str, Device] = {}
        self._last_update: float | None = None
        self._lock = threading.RLock()

    def _is_stale(self) -> bool:
        return self._last_update is None or self._clock() - self._last_update > self._cache_ttl

    def get_all_devices(self) -> list[Device]:
        """Return every device, refreshing the cache when it is older than the TTL."""
        with self._lock:
            stale = self._is_stale()
        if stale:
            try:
                self.refresh_devices()
            except DeviceError as exc:
                with self._lock:
                    if not self._devices:
                        raise
                logger.warning("Failed to refresh devices, using cached data: %s", exc)
        with self._lock:
            return list(self._devices.values())

    def get_device(self, device_id: str) -> Device:
        """Return a device from the cache, or fetch it from Home Assistant."""
        with self._lock:
            cached = self._devices.get(device_id)
        if cached is not None:
            return cached
        try:
            fresh = self._client.get_entity(device_id)
        except HomeAssistantError as exc:
            raise DeviceNotFoundError(device_id) from exc
        with self._lock:
            self._devices[device_id] = fresh
        return fresh

    def refresh_devices(self) -> None:
        """Replace the cache with the current list from Home Assistant."""
        try:
            devices = self._client.get_entities()
        except HomeAssistantError as exc:
            raise DeviceError(f"failed to fetch devices from HomeAssistant: {exc}") from exc
        with self._lock:
            self._devices = {device.id: device for device in devices}
            self._last_update = self._clock()
        logger.info("Refreshed %d devices from HomeAssistant", len(devices))

    def execute_action(self, action: DeviceAction) -> None:
        """Actions without a target device cannot be carried out."""
        raise DeviceError("action execution requires device context")

    def execute_action_on_device(self, device_id: str, action: DeviceAction) -> None:
        """Carry out an action on one device through a Home Assistant service call."""
        device = self.get_device(device_id)
        domain, service, service_data = map_action_to_service(device, action)
        if not domain or not service:
            raise UnsupportedActionError(action.action, device.type)
        try:
            self._client.call_service(domain, service, device_id, service_data)
        except HomeAssistantError as exc:
            raise DeviceError(f"failed to execute action: {exc}") from exc
        logger.info("Executed action %s on device %s", action.action, device_id)

    def find_devices_by_name(self, name: str) -> list[Device]:
        """Return cached devices whose name contains ``name``, ignoring case."""
        needle = name.lower()
        with self._lock:
            return [d for d in self._devices.values() if needle in d.name.lower()]

    def find_devices_by_type(self, device_type: DeviceType) -> list[Device]:
        """Return cached devices of the given type."""
        with self._lock:
            return [d for d in self._devices.values() if d.type == device_type]

    def is_connected(self) -> bool:
        try:
            self._client.test_connection()
        except HomeAssistantError:
            return False
        return True
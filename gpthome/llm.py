"""Rule-based message interpreter that turns chat text into device actions."""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Any

from gpthome.models import Context, DeviceAction

logger = logging.getLogger(__name__)

_HELP_REPLY = (
    "I can help you control your smart home devices. Try asking me to turn on lights, "
    "adjust temperature, or check device status."
)
_FALLBACK_REPLY = (
    "I understand you want to control your smart home, but I'm not sure exactly what "
    "you'd like me to do. Could you be more specific?"
)


class ModelNotLoadedError(RuntimeError):
    """Raised when a message is processed before the model is loaded."""

    def __init__(self) -> None:
        super().__init__("model not loaded")


@dataclass
class ModelInfo:
    """Description of the model behind the service."""

    name: str
    type: str
    version: str = "1.0.0"
    loaded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "version": self.version,
            "loaded": self.loaded,
        }


def _parse_command(message: str) -> tuple[str, list[DeviceAction]]:
    text = message.strip().lower()

    if "turn on" in text and "light" in text:
        return "I'll turn on the lights for you.", [DeviceAction(action="turn_on")]

    if "turn off" in text and "light" in text:
        return "I'll turn off the lights for you.", [DeviceAction(action="turn_off")]

    if "dim" in text and "light" in text:
        return "I'll dim the lights for you.", [
            DeviceAction(action="set_brightness", parameters={"brightness": 128})
        ]

    if "temperature" in text or "thermostat" in text:
        if "set" in text:
            return "I'll adjust the temperature for you.", [
                DeviceAction(action="set_temperature", parameters={"temperature": 22})
            ]
        return "The current temperature is 22°C. Would you like me to adjust it?", []

    if "status" in text or "what" in text:
        return _HELP_REPLY, []

    return _FALLBACK_REPLY, []


class LLMService:
    """Turns chat messages into replies and device actions."""

    def __init__(self, model_path: str, model_type: str) -> None:
        self.model_path = model_path
        self.model_type = model_type
        self._loaded = False
        self._info = ModelInfo(name=f"{model_type}-chat", type=model_type)
        self._lock = threading.RLock()

    def load_model(self) -> None:
        with self._lock:
            logger.info("Loading model from: %s", self.model_path)
            self._loaded = True
            self._info.loaded = True
            logger.info("Model %s loaded successfully", self.model_type)

    def is_loaded(self) -> bool:
        with self._lock:
            return self._loaded

    def get_model_info(self) -> ModelInfo:
        """Return a snapshot of the model description."""
        with self._lock:
            return dataclasses.replace(self._info)

    def process_message(
        self, message: str, context: Context | None = None
    ) -> tuple[str, list[DeviceAction]]:
        """Return the reply and the device actions the message asks for."""
        with self._lock:
            if not self._loaded:
                raise ModelNotLoadedError()
            response, actions = _parse_command(message)
        logger.debug("Processed message: %s -> %s", message, response)
        return response, actions

    def unload_model(self) -> None:
        with self._lock:
            self._loaded = False
            self._info.loaded = False
            logger.info("Model unloaded")
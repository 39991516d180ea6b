"""Data types for devices, conversations, chat requests and health reports."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

NIL_UUID = uuid.UUID(int=0)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(moment: datetime) -> str:
    return moment.isoformat()


class DeviceType(str, Enum):
    """Kind of smart home device."""

    LIGHT = "light"
    SWITCH = "switch"
    SENSOR = "sensor"
    CLIMATE = "climate"
    COVER = "cover"
    FAN = "fan"
    MEDIA = "media_player"


class MessageRole(str, Enum):
    """Who sent a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass
class Device:
    """A smart home device."""

    id: str = ""
    name: str = ""
    type: DeviceType = DeviceType.SENSOR
    state: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=_now)
    domain: str = ""
    entity_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": DeviceType(self.type).value,
            "state": self.state,
            "attributes": dict(self.attributes),
            "last_updated": _timestamp(self.last_updated),
            "domain": self.domain,
            "entity_id": self.entity_id,
        }


@dataclass
class DeviceAction:
    """An action to perform on a device."""

    action: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"action": self.action}
        if self.parameters:
            result["parameters"] = dict(self.parameters)
        return result

    @staticmethod
    def from_dict(data: Any) -> DeviceAction:
        if not isinstance(data, Mapping):
            raise ValueError("device action must be a JSON object")
        action = data.get("action", "")
        if not isinstance(action, str):
            raise ValueError("action must be a string")
        parameters = data.get("parameters")
        if parameters is None:
            parameters = {}
        if not isinstance(parameters, Mapping):
            raise ValueError("parameters must be a JSON object")
        return DeviceAction(action=action, parameters=dict(parameters))


@dataclass
class Context:
    """Conversation context."""

    referenced_devices: list[str] = field(default_factory=list)
    last_action: DeviceAction | None = None
    user_preferences: dict[str, str] = field(default_factory=dict)
    session_data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"referenced_devices": list(self.referenced_devices)}
        if self.last_action is not None:
            result["last_action"] = self.last_action.to_dict()
        result["user_preferences"] = dict(self.user_preferences)
        result["session_data"] = dict(self.session_data)
        return result

    @staticmethod
    def from_dict(data: Any) -> Context:
        if not isinstance(data, Mapping):
            raise ValueError("context must be a JSON object")
        devices = data.get("referenced_devices") or []
        if not isinstance(devices, list) or not all(isinstance(d, str) for d in devices):
            raise ValueError("referenced_devices must be a list of strings")
        preferences = data.get("user_preferences") or {}
        if not isinstance(preferences, Mapping) or not all(
            isinstance(v, str) for v in preferences.values()
        ):
            raise ValueError("user_preferences must map strings to strings")
        session = data.get("session_data") or {}
        if not isinstance(session, Mapping):
            raise ValueError("session_data must be a JSON object")
        raw_action = data.get("last_action")
        last_action = DeviceAction.from_dict(raw_action) if raw_action is not None else None
        return Context(
            referenced_devices=list(devices),
            last_action=last_action,
            user_preferences=dict(preferences),
            session_data=dict(session),
        )


@dataclass
class Metadata:
    """Additional information attached to a message."""

    devices_referenced: list[str] = field(default_factory=list)
    actions_performed: list[str] = field(default_factory=list)
    processing_time: float = 0.0
    model_used: str = ""
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.devices_referenced:
            result["devices_referenced"] = list(self.devices_referenced)
        if self.actions_performed:
            result["actions_performed"] = list(self.actions_performed)
        if self.processing_time:
            result["processing_time"] = self.processing_time
        if self.model_used:
            result["model_used"] = self.model_used
        if self.confidence:
            result["confidence"] = self.confidence
        return result


@dataclass
class Message:
    """A single message in a conversation."""

    role: MessageRole
    content: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp: datetime = field(default_factory=_now)
    metadata: Metadata = field(default_factory=Metadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "role": MessageRole(self.role).value,
            "content": self.content,
            "timestamp": _timestamp(self.timestamp),
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class Conversation:
    """A chat conversation."""

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    context: Context = field(default_factory=Context)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "messages": [message.to_dict() for message in self.messages],
            "created_at": _timestamp(self.created_at),
            "updated_at": _timestamp(self.updated_at),
            "context": self.context.to_dict(),
        }


@dataclass
class ChatRequest:
    """An incoming chat request."""

    message: str
    conversation_id: uuid.UUID | None = None
    context: Context | None = None

    @staticmethod
    def from_dict(data: Any) -> ChatRequest:
        if not isinstance(data, Mapping):
            raise ValueError("chat request must be a JSON object")
        message = data.get("message")
        if not isinstance(message, str) or not message:
            raise ValueError("message is required")
        raw_id = data.get("conversation_id")
        conversation_id = None
        if raw_id:
            if not isinstance(raw_id, str):
                raise ValueError("conversation_id must be a string")
            try:
                parsed = uuid.UUID(raw_id)
            except ValueError as exc:
                raise ValueError(f"invalid conversation_id: {raw_id}") from exc
            if parsed != NIL_UUID:
                conversation_id = parsed
        raw_context = data.get("context")
        context = Context.from_dict(raw_context) if raw_context is not None else None
        return ChatRequest(message=message, conversation_id=conversation_id, context=context)


@dataclass
class ChatResponse:
    """A reply to a chat request."""

    response: str
    conversation_id: uuid.UUID
    message_id: uuid.UUID
    context: Context = field(default_factory=Context)
    actions_performed: list[DeviceAction] = field(default_factory=list)
    metadata: Metadata = field(default_factory=Metadata)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "response": self.response,
            "conversation_id": str(self.conversation_id),
            "message_id": str(self.message_id),
            "context": self.context.to_dict(),
        }
        if self.actions_performed:
            result["actions_performed"] = [a.to_dict() for a in self.actions_performed]
        result["metadata"] = self.metadata.to_dict()
        return result


@dataclass
class ServiceStatus:
    """Status of one backing service."""

    status: str
    last_checked: datetime = field(default_factory=_now)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.status,
            "last_checked": _timestamp(self.last_checked),
        }
        if self.message:
            result["message"] = self.message
        return result


@dataclass
class Services:
    """Status of every backing service."""

    llm: ServiceStatus
    home_assistant: ServiceStatus
    database: ServiceStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "llm": self.llm.to_dict(),
            "home_assistant": self.home_assistant.to_dict(),
            "database": self.database.to_dict(),
        }


@dataclass
class HealthStatus:
    """Overall system health."""

    status: str
    version: str
    uptime: str
    memory_usage: str
    services: Services
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": _timestamp(self.timestamp),
            "version": self.version,
            "uptime": self.uptime,
            "memory_usage": self.memory_usage,
            "services": self.services.to_dict(),
        }


@dataclass
class LLMConfig:
    """Chat model settings."""

    model_path: str
    model_type: str
    max_tokens: int
    temperature: float
    top_p: float
    top_k: int
    context_length: int
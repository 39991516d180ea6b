"""HTTP handlers for chat, devices, conversations and health."""

from __future__ import annotations

import logging
import sys
import time
import uuid
from datetime import timedelta

from flask import Blueprint, jsonify, request

from gpthome.conversation import ConversationManager, ConversationNotFoundError
from gpthome.devices import DeviceError, DeviceManager
from gpthome.llm import LLMService, ModelNotLoadedError
from gpthome.models import (
    ChatRequest,
    ChatResponse,
    DeviceAction,
    HealthStatus,
    Message,
    MessageRole,
    Metadata,
    Services,
    ServiceStatus,
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def format_bytes(num_bytes: int) -> str:
    """Render a byte count with a binary unit, such as ``1.5 KB``."""
    if num_bytes < 0:
        raise ValueError("byte count must not be negative")
    unit = 1024
    if num_bytes < unit:
        return f"{num_bytes} B"
    div, exp = unit, 0
    n = num_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{num_bytes / div:.1f} {'KMGTPE'[exp]}B"


def _trim(number: float, places: int) -> str:
    text = f"{number:.{places}f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def _format_duration(elapsed: timedelta) -> str:
    """Render a duration in the compact ``1h2m3.5s`` style."""
    total = elapsed.total_seconds()
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    total = abs(total)
    if total < 1:
        micros = total * 1_000_000
        if micros < 1000:
            return f"{sign}{_trim(micros, 3)}µs"
        return f"{sign}{_trim(micros / 1000, 6)}ms"
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{int(hours)}h")
    if hours or minutes:
        parts.append(f"{int(minutes)}m")
    parts.append(f"{_trim(seconds, 6)}s")
    return sign + "".join(parts)


def _memory_in_use() -> int:
    try:
        import resource
    except ImportError:
        return 0
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return peak if sys.platform == "darwin" else peak * 1024


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def _parse_id(text: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(text)
    except ValueError:
        return None


def create_api(
    device_manager: DeviceManager,
    llm_service: LLMService,
    conversation_manager: ConversationManager,
) -> Blueprint:
    """Build the ``/api/v1`` blueprint over the given services."""
    api = Blueprint("api", __name__, url_prefix="/api/v1")
    started = time.monotonic()

    @api.post("/chat")
    def handle_chat():
        try:
            chat = ChatRequest.from_dict(request.get_json(silent=True))
        except ValueError as exc:
            return _error(str(exc), 400)

        start = time.perf_counter()

        if chat.conversation_id is not None:
            try:
                conv = conversation_manager.get_conversation(chat.conversation_id)
            except ConversationNotFoundError:
                logger.exception("Failed to get conversation")
                return _error("Failed to get conversation", 500)
        else:
            conv = conversation_manager.create_conversation()

        conv.messages.append(Message(role=MessageRole.USER, content=chat.message))

        try:
            response, actions = llm_service.process_message(chat.message, conv.context)
        except ModelNotLoadedError:
            logger.exception("Failed to process message")
            return _error("Failed to process message", 500)

        for action in actions:
            try:
                device_manager.execute_action(action)
            except DeviceError as exc:
                logger.error("Failed to execute action: %s: %s", action.action, exc)

        reply = Message(
            role=MessageRole.ASSISTANT,
            content=response,
            metadata=Metadata(
                processing_time=time.perf_counter() - start,
                model_used=llm_service.get_model_info().name,
            ),
        )
        conv.messages.append(reply)

        try:
            conversation_manager.update_conversation(conv)
        except ConversationNotFoundError as exc:
            logger.warning("Failed to update conversation: %s", exc)

        result = ChatResponse(
            response=response,
            conversation_id=conv.id,
            message_id=reply.id,
            context=conv.context,
            actions_performed=actions,
            metadata=reply.metadata,
        )
        return jsonify(result.to_dict()), 200

    @api.get("/devices")
    def get_devices():
        try:
            devices = device_manager.get_all_devices()
        except DeviceError:
            logger.exception("Failed to get devices")
            return _error("Failed to get devices", 500)
        return jsonify({"devices": [d.to_dict() for d in devices]}), 200

    @api.get("/devices/<device_id>")
    def get_device(device_id: str):
        try:
            device = device_manager.get_device(device_id)
        except DeviceError:
            logger.exception("Failed to get device: %s", device_id)
            return _error("Device not found", 404)
        return jsonify(device.to_dict()), 200

    @api.post("/devices/<device_id>/action")
    def control_device(device_id: str):
        try:
            action = DeviceAction.from_dict(request.get_json(silent=True))
        except ValueError as exc:
            return _error(str(exc), 400)
        try:
            device_manager.execute_action_on_device(device_id, action)
        except DeviceError:
            logger.exception("Failed to control device: %s", device_id)
            return _error("Failed to control device", 500)
        return jsonify({"status": "success"}), 200

    @api.get("/conversations/<conversation_id>")
    def get_conversation(conversation_id: str):
        parsed = _parse_id(conversation_id)
        if parsed is None:
            return _error("Invalid conversation ID", 400)
        try:
            conv = conversation_manager.get_conversation(parsed)
        except ConversationNotFoundError:
            logger.exception("Failed to get conversation: %s", parsed)
            return _error("Conversation not found", 404)
        return jsonify(conv.to_dict()), 200

    @api.delete("/conversations/<conversation_id>")
    def delete_conversation(conversation_id: str):
        parsed = _parse_id(conversation_id)
        if parsed is None:
            return _error("Invalid conversation ID", 400)
        try:
            conversation_manager.delete_conversation(parsed)
        except ConversationNotFoundError:
            logger.exception("Failed to delete conversation: %s", parsed)
            return _error("Failed to delete conversation", 500)
        return jsonify({"status": "deleted"}), 200

    @api.get("/health")
    def health_check():
        health = HealthStatus(
            status="healthy",
            version=VERSION,
            uptime=_format_duration(timedelta(seconds=time.monotonic() - started)),
            memory_usage=format_bytes(_memory_in_use()),
            services=Services(
                llm=ServiceStatus("healthy" if llm_service.is_loaded() else "error"),
                home_assistant=ServiceStatus(
                    "healthy" if device_manager.is_connected() else "error"
                ),
                database=ServiceStatus("healthy"),
            ),
        )
        return jsonify(health.to_dict()), 200

    return api
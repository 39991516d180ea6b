"""In-memory, thread-safe store of chat conversations."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from gpthome.models import Context, Conversation, Message


class ConversationNotFoundError(LookupError):
    """Raised when no conversation has the requested id."""

    def __init__(self, conversation_id: uuid.UUID) -> None:
        super().__init__(f"conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationManager:
    """Holds conversations by id, guarded by a lock."""

    def __init__(self) -> None:
        self._conversations: dict[uuid.UUID, Conversation] = {}
        self._lock = threading.RLock()

    def _lookup(self, conversation_id: uuid.UUID) -> Conversation:
        try:
            return self._conversations[conversation_id]
        except KeyError:
            raise ConversationNotFoundError(conversation_id) from None

    def create_conversation(self) -> Conversation:
        with self._lock:
            now = _now()
            conv = Conversation(created_at=now, updated_at=now, context=Context())
            self._conversations[conv.id] = conv
            return conv

    def get_conversation(self, conversation_id: uuid.UUID) -> Conversation:
        with self._lock:
            return self._lookup(conversation_id)

    def update_conversation(self, conversation: Conversation) -> None:
        with self._lock:
            self._lookup(conversation.id)
            conversation.updated_at = _now()
            self._conversations[conversation.id] = conversation

    def delete_conversation(self, conversation_id: uuid.UUID) -> None:
        with self._lock:
            self._lookup(conversation_id)
            del self._conversations[conversation_id]

    def get_all_conversations(self) -> list[Conversation]:
        with self._lock:
            return list(self._conversations.values())

    def add_message(self, conversation_id: uuid.UUID, message: Message) -> None:
        with self._lock:
            conv = self._lookup(conversation_id)
            conv.messages.append(message)
            conv.updated_at = _now()

    def update_context(self, conversation_id: uuid.UUID, context: Context) -> None:
        with self._lock:
            conv = self._lookup(conversation_id)
            conv.context = context
            conv.updated_at = _now()

    def get_recent_messages(self, conversation_id: uuid.UUID, limit: int) -> list[Message]:
        """Return at most the last ``limit`` messages, oldest first."""
        if limit < 0:
            raise ValueError("limit must not be negative")
        with self._lock:
            messages = self._lookup(conversation_id).messages
            return list(messages[len(messages) - min(limit, len(messages)):])

    def cleanup_old_conversations(self, max_age: timedelta) -> int:
        """Delete conversations not updated within ``max_age``; return how many."""
        with self._lock:
            cutoff = _now() - max_age
            stale = [cid for cid, conv in self._conversations.items() if conv.updated_at < cutoff]
            for cid in stale:
                del self._conversations[cid]
            return len(stale)

    def get_conversation_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total_conversations": len(self._conversations),
                "total_messages": sum(len(c.messages) for c in self._conversations.values()),
            }
"""Staff view over every customer conversation, plus staff presence."""

from __future__ import annotations

from typing import Callable, Optional

from marketsync.adapters.conversation_api import StaffApi
from marketsync.channels.connection import ConnectionManager
from marketsync.core.exceptions import ApiError
from marketsync.infra.logging_config import get_logger
from marketsync.schemas.conversation import (
    Conversation,
    PresenceStatus,
    SenderType,
)
from marketsync.schemas.events import MESSAGE_NEW, MessageNewEvent

logger = get_logger("staff_inbox")

ATTACHMENT_PREVIEW = "[attachment]"

Listener = Callable[[], None]


class StaffInbox:
    def __init__(
        self, staff_api: StaffApi, connection: Optional[ConnectionManager] = None
    ) -> None:
        self._api = staff_api
        self._connection = connection
        self._conversations: list[Conversation] = []
        self._generation = 0
        self._listeners: list[Listener] = []
        self._attached = False
        self.presence = PresenceStatus.OFFLINE
        self.active_conversation_id: Optional[str] = None
        self.last_error: Optional[ApiError] = None
        self._message_handler = self.on_message

    @property
    def conversations(self) -> list[Conversation]:
        return list(self._conversations)

    @property
    def total_unread(self) -> int:
        return sum(c.unread_count for c in self._conversations)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [l for l in self._listeners if l is not listener]

    def attach(self) -> None:
        if self._attached or self._connection is None:
            return
        self._connection.subscribe(MESSAGE_NEW, self._message_handler)
        self._attached = True

    def close(self) -> None:
        self._generation += 1
        if self._attached and self._connection is not None:
            self._connection.unsubscribe(MESSAGE_NEW, self._message_handler)
        self._attached = False

    async def refresh(
        self,
        state: Optional[str] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
        search: Optional[str] = None,
    ) -> list[Conversation]:
        """Reload the list. Raises ApiError and keeps the previous list on failure."""
        self._generation += 1
        generation = self._generation
        try:
            rows = await self._api.list_conversations(
                state=state, limit=limit, skip=skip, search=search
            )
        except ApiError as e:
            self.last_error = e
            raise
        if generation != self._generation:
            logger.debug("Discarding stale conversation list")
            return self.conversations
        self._conversations = rows
        self.last_error = None
        self._notify()
        return self.conversations

    async def mark_read(self, conversation_id: str) -> bool:
        """Optimistically zero a conversation's unread count."""
        self._replace(conversation_id, unread_count=0)
        try:
            await self._api.mark_conversation_read(conversation_id)
        except ApiError as e:
            logger.warning("Server rejected mark_read for conversation %s: %s", conversation_id, e)
            return False
        return True

    def on_message(self, event: MessageNewEvent) -> None:
        """Move the conversation to the top and update its preview."""
        message = event.message
        index = self._index_of(message.conversation_id)
        if index is None:
            return
        row = self._conversations.pop(index)
        unread = row.unread_count
        if (
            message.sender_type == SenderType.USER
            and message.conversation_id != self.active_conversation_id
        ):
            unread += 1
        preview = (message.text or "").strip() or ATTACHMENT_PREVIEW
        self._conversations.insert(
            0,
            row.model_copy(
                update={
                    "last_message": preview,
                    "last_message_at": message.created_at or row.last_message_at,
                    "unread_count": unread,
                }
            ),
        )
        self._notify()

    async def set_online(self, max_conversations: Optional[int] = None) -> bool:
        return await self._set_presence(PresenceStatus.ONLINE, max_conversations)

    async def set_offline(self) -> bool:
        return await self._set_presence(PresenceStatus.OFFLINE)

    async def _set_presence(
        self, status: PresenceStatus, max_conversations: Optional[int] = None
    ) -> bool:
        ok = await self._api.set_presence(status, max_conversations)
        if ok:
            self.presence = status
            logger.info("Staff presence set to %s", status.value)
            self._notify()
        return ok

    def _index_of(self, conversation_id: str) -> Optional[int]:
        for index, row in enumerate(self._conversations):
            if row.id == conversation_id:
                return index
        return None

    def _replace(self, conversation_id: str, **changes) -> None:
        index = self._index_of(conversation_id)
        if index is None:
            return
        self._conversations[index] = self._conversations[index].model_copy(update=changes)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Inbox listener failed")

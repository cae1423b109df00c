"""
Live customer↔staff chat over one conversation.

A session moves NONE → CREATING → ACTIVE. Opening resolves the conversation
id (cached per customer, otherwise create-or-get), joins the room and merges
the history snapshot. Sending goes over REST as multipart; the push channel
only ever delivers messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, Optional

from marketsync.adapters.conversation_api import ConversationApi, StaffApi
from marketsync.channels.connection import ConnectionManager
from marketsync.core.exceptions import (
    ApiError,
    AttachmentLimitError,
    ChatSessionError,
    EmptyMessageError,
)
from marketsync.infra.logging_config import get_logger
from marketsync.schemas.conversation import DraftFile, Message
from marketsync.schemas.events import (
    HISTORY_MESSAGES,
    JOIN_CONVERSATION,
    MESSAGE_NEW,
    HistoryMessagesEvent,
    JoinConversation,
    MessageNewEvent,
)

logger = get_logger("chat_session")

MAX_ATTACHMENTS = 5
SELF_KEY = "me"

Listener = Callable[[], None]


class ChatState(str, Enum):
    NONE = "none"
    CREATING = "creating"
    ACTIVE = "active"


class ConversationIdCache:
    """Conversation ids by customer. Lives as long as the runtime, nothing is persisted."""

    def __init__(self) -> None:
        self._ids: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._ids.get(key)

    def set(self, key: str, conversation_id: str) -> None:
        self._ids[key] = conversation_id

    def forget(self, key: str) -> None:
        self._ids.pop(key, None)


class ChatDraft:
    """Unsent text and staged files."""

    def __init__(self, max_files: int = MAX_ATTACHMENTS) -> None:
        self.max_files = max_files
        self.text = ""
        self._files: list[DraftFile] = []

    @property
    def files(self) -> tuple[DraftFile, ...]:
        return tuple(self._files)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self._files

    def stage_text(self, text: str) -> None:
        self.text = text

    def stage_files(self, files: Iterable[DraftFile]) -> int:
        """Add files up to the limit; the rest are dropped. Returns how many were kept."""
        incoming = list(files)
        room = max(0, self.max_files - len(self._files))
        accepted = incoming[:room]
        self._files.extend(accepted)
        if len(incoming) > room:
            logger.info(
                "Dropped %d file(s) beyond the %d attachment limit",
                len(incoming) - room,
                self.max_files,
            )
        return len(accepted)

    def remove_file(self, index: int) -> DraftFile:
        return self._files.pop(index)

    def clear(self) -> None:
        self.text = ""
        self._files = []

    def validate(self) -> None:
        if self.is_empty:
            raise EmptyMessageError("message needs text or at least one file")
        if len(self._files) > self.max_files:
            raise AttachmentLimitError(
                f"at most {self.max_files} files per message, got {len(self._files)}"
            )


class ChatSession:
    def __init__(
        self,
        connection: ConnectionManager,
        conversation_api: ConversationApi,
        staff_api: Optional[StaffApi] = None,
        as_staff: bool = False,
        id_cache: Optional[ConversationIdCache] = None,
        max_attachments: int = MAX_ATTACHMENTS,
    ) -> None:
        self._connection = connection
        self._api = conversation_api
        self._staff_api = staff_api
        self.as_staff = as_staff
        self._id_cache = id_cache if id_cache is not None else ConversationIdCache()

        self.state = ChatState.NONE
        self.conversation_id: Optional[str] = None
        self.draft = ChatDraft(max_attachments)
        self.last_send_error: Optional[ApiError] = None
        self._messages: list[Message] = []
        self._seen_ids: set[str] = set()
        self._generation = 0
        self._listeners: list[Listener] = []
        self._subscribed = False

        self._history_handler = self._on_history
        self._message_handler = self._on_message
        self._reconnect_listener = self._on_reconnect

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [l for l in self._listeners if l is not listener]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(
        self, user_id: Optional[str] = None, conversation_id: Optional[str] = None
    ) -> str:
        """
        Resolve the conversation and join it.

        Customers pass nothing; staff pass the customer's user_id or an
        explicit conversation_id. Returns the conversation id.
        """
        if self.state != ChatState.NONE:
            raise ChatSessionError(f"session is already {self.state.value}")
        self.state = ChatState.CREATING
        generation = self._generation
        self._notify()
        try:
            if conversation_id is None:
                conversation_id = await self._resolve_conversation_id(user_id)
            if generation != self._generation:
                raise ChatSessionError("session was closed while opening")
            self.conversation_id = conversation_id
            self._subscribe()
            await self._join()
            if generation != self._generation:
                raise ChatSessionError("session was closed while opening")
        except Exception:
            if generation == self._generation:
                self._unsubscribe()
                self.conversation_id = None
                self.state = ChatState.NONE
                self._notify()
            raise
        self.state = ChatState.ACTIVE
        logger.info("Chat session active on conversation %s", conversation_id)
        self._notify()
        return conversation_id

    def close(self) -> None:
        """Leave the conversation. Responses still in flight are discarded."""
        self._generation += 1
        self._unsubscribe()
        self.state = ChatState.NONE
        self.conversation_id = None
        self._messages = []
        self._seen_ids = set()
        self.draft.clear()
        self.last_send_error = None
        self._notify()

    async def switch(self, conversation_id: str) -> str:
        self.close()
        return await self.open(conversation_id=conversation_id)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def refresh_messages(self) -> int:
        """Staff only: pull the full message list over REST and merge it."""
        if self._staff_api is None:
            raise ChatSessionError("refresh_messages needs staff access")
        if self.state != ChatState.ACTIVE or self.conversation_id is None:
            raise ChatSessionError("no active conversation")
        generation = self._generation
        messages = await self._staff_api.get_conversation_messages(self.conversation_id)
        if generation != self._generation:
            return 0
        return self.merge_messages(messages)

    def merge_messages(self, messages: Iterable[Message]) -> int:
        added = 0
        for message in messages:
            if message.conversation_id == self.conversation_id and self._append(message):
                added += 1
        if added:
            self._notify()
        return added

    # ------------------------------------------------------------------
    # Draft and send
    # ------------------------------------------------------------------

    def stage_text(self, text: str) -> None:
        self.draft.stage_text(text)

    def stage_files(self, files: Iterable[DraftFile]) -> int:
        return self.draft.stage_files(files)

    def remove_file(self, index: int) -> DraftFile:
        return self.draft.remove_file(index)

    def clear_draft(self) -> None:
        self.draft.clear()

    async def send(self) -> Optional[Message]:
        """
        Send the draft over REST.

        Raises EmptyMessageError or AttachmentLimitError before any network
        call. A failed request keeps the draft, records last_send_error and
        returns None; retry_send() sends it again.
        """
        if self.state != ChatState.ACTIVE or self.conversation_id is None:
            raise ChatSessionError("no active conversation")
        self.draft.validate()
        text = self.draft.text.strip()
        files = self.draft.files
        generation = self._generation
        try:
            message = await self._api.send_message(
                self.conversation_id, text=text, files=files, as_staff=self.as_staff
            )
        except ApiError as e:
            if generation == self._generation:
                self.last_send_error = e
                self._notify()
            logger.warning("Send to conversation %s failed, draft kept: %s", self.conversation_id, e)
            return None
        if generation != self._generation:
            return message
        self.last_send_error = None
        if self.draft.text.strip() == text and self.draft.files == files:
            self.draft.clear()
        if message.conversation_id == self.conversation_id:
            self._append(message)
        self._notify()
        return message

    async def retry_send(self) -> Optional[Message]:
        if self.last_send_error is None:
            raise ChatSessionError("nothing to retry")
        return await self.send()

    # ------------------------------------------------------------------
    # Push handling
    # ------------------------------------------------------------------

    def _on_history(self, event: HistoryMessagesEvent) -> None:
        if self.state == ChatState.NONE:
            return
        snapshot: list[Message] = []
        ids: set[str] = set()
        for message in event.messages:
            if message.conversation_id == self.conversation_id and message.id not in ids:
                ids.add(message.id)
                snapshot.append(message)
        # messages that arrived before the snapshot stay, after it
        snapshot.extend(m for m in self._messages if m.id not in ids)
        self._messages = snapshot
        self._seen_ids = {m.id for m in snapshot}
        self._notify()

    def _on_message(self, event: MessageNewEvent) -> None:
        if self.state == ChatState.NONE:
            return
        if event.message.conversation_id != self.conversation_id:
            return
        if self._append(event.message):
            self._notify()

    async def _on_reconnect(self) -> None:
        if self.state == ChatState.ACTIVE:
            logger.info("Rejoining conversation %s after reconnect", self.conversation_id)
            await self._join()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _resolve_conversation_id(self, user_id: Optional[str]) -> str:
        key = user_id or SELF_KEY
        cached = self._id_cache.get(key)
        if cached:
            return cached
        response = await self._api.create_or_get(user_id)
        logger.info(
            "Conversation %s resolved (new=%s)", response.conversation_id, response.is_new
        )
        self._id_cache.set(key, response.conversation_id)
        return response.conversation_id

    async def _join(self) -> None:
        payload = JoinConversation(conversation_id=self.conversation_id).to_payload()
        await self._connection.emit(JOIN_CONVERSATION, payload)

    def _subscribe(self) -> None:
        if self._subscribed:
            return
        self._connection.subscribe(HISTORY_MESSAGES, self._history_handler)
        self._connection.subscribe(MESSAGE_NEW, self._message_handler)
        self._connection.on_reconnect(self._reconnect_listener)
        self._subscribed = True

    def _unsubscribe(self) -> None:
        if not self._subscribed:
            return
        self._connection.unsubscribe(HISTORY_MESSAGES, self._history_handler)
        self._connection.unsubscribe(MESSAGE_NEW, self._message_handler)
        self._connection.remove_reconnect_listener(self._reconnect_listener)
        self._subscribed = False

    def _append(self, message: Message) -> bool:
        if message.id in self._seen_ids:
            return False
        self._seen_ids.add(message.id)
        self._messages.append(message)
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Chat listener failed")

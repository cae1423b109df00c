"""
Typed push events.

Every server→client event is a variant of a discriminated union keyed by its
event name. Payloads that do not match their variant, and names nobody
declared, are rejected by parse_push_event instead of being passed on with
an assumed shape.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from marketsync.infra.logging_config import get_logger
from marketsync.schemas.conversation import Message

logger = get_logger("events")

JOIN_CONVERSATION = "join_conversation"
HISTORY_MESSAGES = "history.messages"
MESSAGE_NEW = "message.new"
NOTIFICATION_NEW = "notification:new"
NOTIFICATION_COMMENT_REPLY = "notification:comment-reply"
NOTIFICATION_UNREAD_COUNT = "notification:unread-count"
ORDER_STATUS_UPDATED = "order:status-updated"
STAFF_NEW_ORDER = "staff:new-order"


class _PushEvent(BaseModel):
    model_config = {"populate_by_name": True}


class HistoryMessagesEvent(_PushEvent):
    """Snapshot of a conversation, sent once per join."""

    event: Literal["history.messages"] = HISTORY_MESSAGES
    messages: list[Message] = Field(default_factory=list)


class MessageNewEvent(_PushEvent):
    event: Literal["message.new"] = MESSAGE_NEW
    message: Message


class _NotificationPayload(_PushEvent):
    notification_id: Optional[str] = Field(default=None, alias="notificationId")
    type: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    link: Optional[str] = None
    actor: Optional[Any] = None


class NotificationNewEvent(_NotificationPayload):
    event: Literal["notification:new"] = NOTIFICATION_NEW


class CommentReplyEvent(_NotificationPayload):
    event: Literal["notification:comment-reply"] = NOTIFICATION_COMMENT_REPLY


class UnreadCountEvent(_PushEvent):
    event: Literal["notification:unread-count"] = NOTIFICATION_UNREAD_COUNT
    count: int = Field(ge=0)


class OrderStatusUpdatedEvent(_PushEvent):
    event: Literal["order:status-updated"] = ORDER_STATUS_UPDATED
    order_id: str = Field(alias="orderId")
    status: str
    title: Optional[str] = None
    message: Optional[str] = None


class StaffNewOrderMetadata(_PushEvent):
    order_id: Optional[str] = None
    customer_name: Optional[str] = None


class StaffNewOrderEvent(_PushEvent):
    event: Literal["staff:new-order"] = STAFF_NEW_ORDER
    notification_id: Optional[str] = Field(default=None, alias="notificationId")
    title: Optional[str] = None
    message: Optional[str] = None
    actor: Optional[Any] = None
    metadata: StaffNewOrderMetadata = Field(default_factory=StaffNewOrderMetadata)


PushEvent = Annotated[
    Union[
        HistoryMessagesEvent,
        MessageNewEvent,
        NotificationNewEvent,
        CommentReplyEvent,
        UnreadCountEvent,
        OrderStatusUpdatedEvent,
        StaffNewOrderEvent,
    ],
    Field(discriminator="event"),
]

_push_event_adapter: TypeAdapter[PushEvent] = TypeAdapter(PushEvent)

# Events whose wire payload is not an object get wrapped under this key
_WRAP_KEYS = {
    HISTORY_MESSAGES: "messages",
    MESSAGE_NEW: "message",
}

KNOWN_EVENTS = frozenset(
    {
        HISTORY_MESSAGES,
        MESSAGE_NEW,
        NOTIFICATION_NEW,
        NOTIFICATION_COMMENT_REPLY,
        NOTIFICATION_UNREAD_COUNT,
        ORDER_STATUS_UPDATED,
        STAFF_NEW_ORDER,
    }
)


class JoinConversation(BaseModel):
    """Client→server request to join a conversation room."""

    conversation_id: str

    def to_payload(self) -> dict[str, str]:
        return {"conversation_id": self.conversation_id}


def parse_push_event(name: str, payload: Any) -> Optional[PushEvent]:
    """Validate a raw push payload into its typed variant. None if unknown or invalid."""
    if name not in KNOWN_EVENTS:
        logger.warning("Dropping unrecognized push event %s", name)
        return None
    wrap_key = _WRAP_KEYS.get(name)
    data: dict[str, Any]
    if wrap_key is not None:
        data = {wrap_key: payload}
    elif isinstance(payload, dict):
        data = dict(payload)
    else:
        logger.warning("Dropping push event %s with non-object payload", name)
        return None
    data["event"] = name
    try:
        return _push_event_adapter.validate_python(data)
    except ValidationError as e:
        logger.warning("Dropping invalid %s payload: %s", name, e)
        return None

"""Tests for push event parsing and the wire schemas it relies on."""

import pytest
from pydantic import ValidationError

from marketsync.schemas.ai_chat import AIImage
from marketsync.schemas.conversation import Conversation, Message, SenderType
from marketsync.schemas.events import (
    HISTORY_MESSAGES,
    MESSAGE_NEW,
    NOTIFICATION_UNREAD_COUNT,
    ORDER_STATUS_UPDATED,
    STAFF_NEW_ORDER,
    HistoryMessagesEvent,
    JoinConversation,
    MessageNewEvent,
    OrderStatusUpdatedEvent,
    StaffNewOrderEvent,
    UnreadCountEvent,
    parse_push_event,
)
from marketsync.schemas.notification import Notification, NotificationQuery


def test_message_new_wraps_bare_message(make_message_payload):
    """message.new accepts a bare message payload."""
    payload = make_message_payload("c1", _id="m1", text="hi")
    event = parse_push_event(MESSAGE_NEW, payload)
    assert isinstance(event, MessageNewEvent)
    assert event.message.id == "m1"
    assert event.message.conversation_id == "c1"


def test_history_messages_accepts_list(make_message_payload):
    """history.messages accepts a list."""
    payload = [make_message_payload("c1", _id=f"m{i}") for i in range(3)]
    event = parse_push_event(HISTORY_MESSAGES, payload)
    assert isinstance(event, HistoryMessagesEvent)
    assert [m.id for m in event.messages] == ["m0", "m1", "m2"]


def test_history_messages_empty_snapshot():
    """Empty history snapshot parses."""
    event = parse_push_event(HISTORY_MESSAGES, [])
    assert isinstance(event, HistoryMessagesEvent)
    assert event.messages == []


def test_unknown_event_is_dropped(caplog):
    """Unknown events parse to None."""
    assert parse_push_event("something:else", {"a": 1}) is None
    assert "unrecognized" in caplog.text


def test_invalid_payload_is_dropped():
    """Invalid payloads parse to None."""
    assert parse_push_event(NOTIFICATION_UNREAD_COUNT, {"count": -1}) is None
    assert parse_push_event(NOTIFICATION_UNREAD_COUNT, "3") is None
    assert parse_push_event(ORDER_STATUS_UPDATED, {"status": "delivered"}) is None


def test_unread_count_event():
    """Parse the unread count event."""
    event = parse_push_event(NOTIFICATION_UNREAD_COUNT, {"count": 4})
    assert isinstance(event, UnreadCountEvent)
    assert event.count == 4


def test_order_status_uses_camel_case_keys():
    """Order status event reads camelCase keys."""
    event = parse_push_event(
        ORDER_STATUS_UPDATED, {"orderId": "o1", "status": "delivered", "title": "Done"}
    )
    assert isinstance(event, OrderStatusUpdatedEvent)
    assert event.order_id == "o1"


def test_staff_new_order_metadata():
    """Staff new-order event keeps metadata."""
    event = parse_push_event(
        STAFF_NEW_ORDER,
        {"title": "New order", "metadata": {"order_id": "o9", "customer_name": "Ana"}},
    )
    assert isinstance(event, StaffNewOrderEvent)
    assert event.metadata.order_id == "o9"


def test_join_conversation_payload():
    """join_conversation payload shape."""
    assert JoinConversation(conversation_id="c1").to_payload() == {"conversation_id": "c1"}


def test_message_normalizes_sender_type(make_message_payload):
    """Sender type is normalized to upper case."""
    staff = Message.model_validate(make_message_payload(sender_type="admin"))
    assert staff.sender_type == SenderType.STAFF
    user = Message.model_validate(make_message_payload(sender_type="user"))
    assert user.sender_type == SenderType.USER


def test_message_flattens_populated_sender(make_message_payload):
    """A populated sender collapses to its id."""
    message = Message.model_validate(
        make_message_payload(sender_id={"_id": "u1", "name": "Ana"})
    )
    assert message.sender_id == "u1"


def test_message_requires_text_or_attachment(make_message_payload):
    """A message with no text and no attachments is rejected."""
    with pytest.raises(ValidationError):
        Message.model_validate(make_message_payload(text="  ", attachments=[]))
    only_file = Message.model_validate(
        make_message_payload(text="", attachments=[{"url": "https://cdn.test/a.pdf"}])
    )
    assert only_file.attachments[0].kind == "file"


def test_notification_defaults_actor_to_system(make_notification_payload):
    """Missing actor becomes "system"."""
    notification = Notification.model_validate(make_notification_payload(actor_id=None))
    assert notification.actor_id == "system"
    populated = Notification.model_validate(
        make_notification_payload(actor_id={"_id": "u7", "name": "Bo"})
    )
    assert populated.actor_id == "u7"


def test_notification_visibility(make_notification_payload):
    """Hidden or deleted notifications are not visible."""
    assert Notification.model_validate(make_notification_payload()).is_visible
    assert not Notification.model_validate(make_notification_payload(is_hidden=True)).is_visible
    assert not Notification.model_validate(make_notification_payload(is_deleted=True)).is_visible


def test_notification_query_params_use_lowercase_bools():
    """Query bools render lowercase."""
    params = NotificationQuery(page=2, limit=10, unread_only=True).to_params()
    assert params == {"page": 2, "limit": 10, "unread_only": "true"}


def test_conversation_splits_embedded_customer():
    """Embedded customer splits into id and profile."""
    conversation = Conversation.model_validate(
        {"_id": "c1", "user_id": {"_id": "u1", "name": "Ana"}, "unread_count": 2}
    )
    assert conversation.customer_id == "u1"
    assert conversation.customer.name == "Ana"


def test_ai_image_from_data_url():
    """Parse an image from a data URL."""
    image = AIImage.from_base64("data:image/png;base64,aGVsbG8=")
    assert image.data == b"hello"
    assert image.media_type == "image/png"


def test_ai_image_from_bare_base64():
    """Parse an image from bare base64."""
    image = AIImage.from_base64("aGVsbG8=")
    assert image.media_type == "image/jpeg"


def test_ai_image_rejects_garbage():
    """Undecodable image data raises ValueError."""
    with pytest.raises(ValueError):
        AIImage.from_base64("not base64 at all!")
    with pytest.raises(ValueError):
        AIImage.from_base64("")

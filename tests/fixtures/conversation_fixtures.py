"""Fixtures for conversations and messages."""

from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from marketsync.adapters.conversation_api import ConversationApi, StaffApi
from marketsync.schemas.conversation import CreateConversationResponse, Message


def message_payload(faker, conversation_id: str, **overrides) -> dict[str, Any]:
    """A message as the server serializes it in push events."""
    payload = {
        "_id": faker.hexify(text="^" * 24),
        "conversation_id": conversation_id,
        "sender_type": "USER",
        "sender_id": faker.hexify(text="^" * 24),
        "text": faker.sentence(),
        "attachments": [],
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope="function")
def make_message_payload(faker):
    def _make(conversation_id: str = "c1", **overrides):
        return message_payload(faker, conversation_id, **overrides)

    return _make


@pytest.fixture(scope="function")
def make_message(make_message_payload):
    def _make(conversation_id: str = "c1", **overrides) -> Message:
        return Message.model_validate(make_message_payload(conversation_id, **overrides))

    return _make


@pytest.fixture(scope="function")
def conversation_api():
    """ConversationApi double; create_or_get resolves to conversation c1."""
    api = MagicMock(spec=ConversationApi)
    api.create_or_get = AsyncMock(
        return_value=CreateConversationResponse(
            conversation_id="c1", is_new=True, state="OPEN"
        )
    )
    api.send_message = AsyncMock()
    return api


@pytest.fixture(scope="function")
def staff_api():
    api = MagicMock(spec=StaffApi)
    api.list_conversations = AsyncMock(return_value=[])
    api.get_conversation_messages = AsyncMock(return_value=[])
    api.mark_conversation_read = AsyncMock(return_value=None)
    api.set_presence = AsyncMock(return_value=True)
    return api

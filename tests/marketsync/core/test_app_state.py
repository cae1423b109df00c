"""Tests for the AppState composition root."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import requests

from marketsync.config import Settings
from marketsync.core.app_state import AppState
from marketsync.schemas.events import MESSAGE_NEW, NOTIFICATION_NEW, STAFF_NEW_ORDER
from marketsync.schemas.notification import RoleView
from marketsync.services.ai_chat_session import AIChatSession
from tests.fixtures.push_fixtures import FakeTransport


def fake_response(body):
    response = MagicMock()
    response.status_code = 200
    response.content = json.dumps(body).encode()
    response.text = response.content.decode()
    response.json.side_effect = lambda: json.loads(response.content)
    return response


@pytest.fixture
def settings():
    return Settings(
        api_base_url="http://api.test/api",
        access_token="abc",
        reconcile_interval_seconds=60,
    )


@pytest.fixture
def session():
    session = MagicMock(spec=requests.Session)
    session.request.return_value = fake_response({"unreadCount": 2})
    return session


def test_push_url_defaults_to_api_origin(settings):
    """Push URL falls back to the API origin."""
    assert settings.push_url == "http://api.test"


@pytest.mark.asyncio
async def test_customer_state_wires_services(settings, session):
    """Customer state builds the customer services."""
    transport = FakeTransport()
    state = AppState(settings, session=session, transport_factory=lambda: transport)

    await state.start()

    assert transport.connect_calls == [("http://api.test", {"token": "abc"})]
    assert state.notifications.unread_count == 2
    assert state.inbox is None
    assert state.connection.handler_count(NOTIFICATION_NEW) == 2

    await state.stop()
    assert transport.disconnect_calls == 1


@pytest.mark.asyncio
async def test_staff_state_has_inbox(settings, session):
    """Staff state gets an inbox and staff API."""
    transport = FakeTransport()
    state = AppState(
        settings, role=RoleView.STAFF, session=session, transport_factory=lambda: transport
    )

    await state.start()

    assert state.inbox is not None
    assert state.connection.handler_count(MESSAGE_NEW) == 1
    assert state.connection.handler_count(STAFF_NEW_ORDER) == 2
    assert state.new_chat_session().as_staff is True
    await state.stop()


@pytest.mark.asyncio
async def test_start_survives_push_failure(settings, session, caplog):
    """start logs and continues when the push channel is down."""
    transport = FakeTransport()
    transport.fail_connect = ConnectionError("refused")
    state = AppState(settings, session=session, transport_factory=lambda: transport)

    await state.start()

    assert state.notifications.unread_count == 2
    assert "Push channel unavailable" in caplog.text


def test_chat_sessions_share_conversation_cache(settings, session):
    """Chat sessions share one conversation id cache."""
    state = AppState(settings, session=session, transport_factory=FakeTransport)
    first, second = state.new_chat_session(), state.new_chat_session()
    assert first._id_cache is second._id_cache is state.conversation_ids


def test_ai_chat_session_uses_injected_responder(settings, session):
    """AI chat uses the injected responder."""
    responder = MagicMock()
    responder.reply = AsyncMock(return_value="hi")
    state = AppState(settings, session=session, responder=responder)
    assert isinstance(state.new_ai_chat_session(), AIChatSession)

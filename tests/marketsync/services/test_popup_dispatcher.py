"""Tests for PopupDispatcher."""

import asyncio
from unittest.mock import MagicMock

import pytest

from marketsync.schemas.events import (
    NOTIFICATION_COMMENT_REPLY,
    NOTIFICATION_NEW,
    ORDER_STATUS_UPDATED,
    STAFF_NEW_ORDER,
    parse_push_event,
)
from marketsync.schemas.notification import RoleView
from marketsync.schemas.popup import Popup, PopupLevel
from marketsync.services.popup_dispatcher import PopupDispatcher, project_event


def order_event(status: str, title=None):
    payload = {"orderId": "o1", "status": status}
    if title:
        payload["title"] = title
    return parse_push_event(ORDER_STATUS_UPDATED, payload)


@pytest.mark.parametrize(
    "status,level",
    [
        ("delivered", PopupLevel.SUCCESS),
        ("completed", PopupLevel.SUCCESS),
        ("cancelled", PopupLevel.ERROR),
        ("payment_failed", PopupLevel.ERROR),
        ("refunded", PopupLevel.WARNING),
        ("returned", PopupLevel.WARNING),
        ("shipped", PopupLevel.INFO),
    ],
)
def test_order_status_levels(status, level):
    """Order status maps to a popup level."""
    popup = project_event(order_event(status, title="Order update"))
    assert popup.level == level


def test_order_status_without_title_gets_one():
    """Order status without a title gets one."""
    popup = project_event(order_event("payment_failed"))
    assert popup.title == "Order #o1 updated"
    assert popup.message == "Status: payment failed"


def test_notification_levels():
    """Notification events map to info and new orders to success."""
    new = project_event(parse_push_event(NOTIFICATION_NEW, {"title": "Hi"}))
    reply = project_event(parse_push_event(NOTIFICATION_COMMENT_REPLY, {"title": "Reply"}))
    order = project_event(parse_push_event(STAFF_NEW_ORDER, {"title": "New order"}))
    assert new.level == PopupLevel.INFO
    assert reply.level == PopupLevel.INFO
    assert order.level == PopupLevel.SUCCESS


def test_event_without_title_is_skipped():
    """Events without a title make no popup."""
    assert project_event(parse_push_event(NOTIFICATION_NEW, {"message": "no title"})) is None


@pytest.mark.asyncio
async def test_popup_expires_after_duration():
    """Popups dismiss themselves after their duration."""
    dispatcher = PopupDispatcher(default_duration_ms=10)
    on_close = MagicMock()
    popup = dispatcher.show(Popup(title="Saved", duration_ms=10, on_close=on_close))
    assert dispatcher.active == [popup]

    await asyncio.sleep(0.05)

    assert dispatcher.active == []
    on_close.assert_called_once()
    assert dispatcher.history == [popup]


@pytest.mark.asyncio
async def test_sticky_popup_stays_until_dismissed():
    """Zero duration keeps the popup until dismissed."""
    dispatcher = PopupDispatcher()
    popup = dispatcher.show(Popup(title="Sticky", duration_ms=0))
    await asyncio.sleep(0.02)

    assert dispatcher.active == [popup]
    assert dispatcher.dismiss(popup.id) is True
    assert dispatcher.dismiss(popup.id) is False
    assert dispatcher.active == []


def test_history_is_capped_newest_first():
    """History is newest first and capped."""
    dispatcher = PopupDispatcher()
    for index in range(55):
        dispatcher.show(Popup(title=f"p{index}", duration_ms=0))

    assert len(dispatcher.history) == 50
    assert dispatcher.history[0].title == "p54"
    assert dispatcher.history[-1].title == "p5"


def test_clear_all_and_clear_history():
    """clear_all and clear_history empty their lists."""
    dispatcher = PopupDispatcher()
    dispatcher.show(Popup(title="a", duration_ms=0))
    dispatcher.clear_all()
    assert dispatcher.active == []
    assert len(dispatcher.history) == 1
    dispatcher.clear_history()
    assert dispatcher.history == []


def test_listeners_are_notified():
    """Listeners hear shown and dismissed popups."""
    dispatcher = PopupDispatcher()
    listener = MagicMock()
    dispatcher.add_listener(listener)
    dispatcher.show(Popup(title="a", duration_ms=0))
    listener.assert_called_once()


@pytest.mark.asyncio
async def test_attached_dispatcher_projects_push_events(connection, fake_transport):
    """Attached dispatcher turns push events into popups."""
    dispatcher = PopupDispatcher(connection, role=RoleView.CUSTOMER)
    dispatcher.attach()
    await connection.get_connection()

    await fake_transport.push(
        ORDER_STATUS_UPDATED, {"orderId": "o1", "status": "delivered", "title": "Delivered"}
    )
    await fake_transport.push(NOTIFICATION_NEW, {"message": "untitled"})

    assert [p.title for p in dispatcher.active] == ["Delivered"]
    assert dispatcher.active[0].source_event == ORDER_STATUS_UPDATED
    dispatcher.clear_all()


@pytest.mark.asyncio
async def test_staff_dispatcher_only_listens_to_new_orders(connection):
    """Staff dispatcher listens to new orders only."""
    dispatcher = PopupDispatcher(connection, role=RoleView.STAFF)
    dispatcher.attach()

    assert connection.handler_count(STAFF_NEW_ORDER) == 1
    assert connection.handler_count(NOTIFICATION_NEW) == 0

    dispatcher.detach()
    assert connection.handler_count(STAFF_NEW_ORDER) == 0

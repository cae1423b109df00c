"""
Toast popups projected from push events.

Active popups expire on their own after duration_ms; the last few shown are
kept in an in-memory history.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from marketsync.channels.connection import ConnectionManager
from marketsync.infra.logging_config import get_logger
from marketsync.schemas.events import (
    NOTIFICATION_COMMENT_REPLY,
    NOTIFICATION_NEW,
    ORDER_STATUS_UPDATED,
    STAFF_NEW_ORDER,
    CommentReplyEvent,
    NotificationNewEvent,
    OrderStatusUpdatedEvent,
    PushEvent,
    StaffNewOrderEvent,
)
from marketsync.schemas.notification import RoleView
from marketsync.schemas.popup import DEFAULT_POPUP_DURATION_MS, Popup, PopupLevel

logger = get_logger("popups")

HISTORY_LIMIT = 50

POPUP_EVENTS: dict[RoleView, tuple[str, ...]] = {
    RoleView.CUSTOMER: (NOTIFICATION_NEW, NOTIFICATION_COMMENT_REPLY, ORDER_STATUS_UPDATED),
    RoleView.STAFF: (STAFF_NEW_ORDER,),
}

ORDER_STATUS_LEVELS = {
    "delivered": PopupLevel.SUCCESS,
    "completed": PopupLevel.SUCCESS,
    "cancelled": PopupLevel.ERROR,
    "failed": PopupLevel.ERROR,
    "payment_failed": PopupLevel.ERROR,
    "returned": PopupLevel.WARNING,
    "refunded": PopupLevel.WARNING,
}

Listener = Callable[[], None]


def project_event(event: PushEvent, duration_ms: int = DEFAULT_POPUP_DURATION_MS) -> Optional[Popup]:
    """Map a push event to a popup. None when the event carries nothing to show."""
    if isinstance(event, OrderStatusUpdatedEvent):
        status = event.status.lower()
        return Popup(
            level=ORDER_STATUS_LEVELS.get(status, PopupLevel.INFO),
            title=event.title or f"Order #{event.order_id} updated",
            message=event.message or f"Status: {status.replace('_', ' ')}",
            duration_ms=duration_ms,
            source_event=event.event,
        )
    if isinstance(event, (NotificationNewEvent, CommentReplyEvent, StaffNewOrderEvent)):
        if not event.title:
            return None
        level = PopupLevel.SUCCESS if isinstance(event, StaffNewOrderEvent) else PopupLevel.INFO
        return Popup(
            level=level,
            title=event.title,
            message=event.message,
            duration_ms=duration_ms,
            source_event=event.event,
        )
    return None


class PopupDispatcher:
    def __init__(
        self,
        connection: Optional[ConnectionManager] = None,
        role: RoleView = RoleView.CUSTOMER,
        default_duration_ms: int = DEFAULT_POPUP_DURATION_MS,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self._connection = connection
        self.role = role
        self._default_duration_ms = default_duration_ms
        self._history_limit = history_limit
        self._active: list[Popup] = []
        self._history: list[Popup] = []
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[Listener] = []
        self._attached = False
        self._event_handler = self.handle_event

    @property
    def active(self) -> list[Popup]:
        return list(self._active)

    @property
    def history(self) -> list[Popup]:
        """Most recent first."""
        return list(self._history)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [l for l in self._listeners if l is not listener]

    def attach(self) -> None:
        if self._attached or self._connection is None:
            return
        for event in POPUP_EVENTS[self.role]:
            self._connection.subscribe(event, self._event_handler)
        self._attached = True

    def detach(self) -> None:
        if not self._attached or self._connection is None:
            return
        for event in POPUP_EVENTS[self.role]:
            self._connection.unsubscribe(event, self._event_handler)
        self._attached = False

    def handle_event(self, event: PushEvent) -> None:
        popup = project_event(event, self._default_duration_ms)
        if popup is None:
            logger.debug("No popup for %s without a title", event.event)
            return
        self.show(popup)

    def show(self, popup: Popup) -> Popup:
        self._active.append(popup)
        self._history.insert(0, popup)
        del self._history[self._history_limit :]
        if popup.duration_ms > 0:
            self._schedule_expiry(popup)
        self._notify()
        return popup

    def dismiss(self, popup_id: str) -> bool:
        """Remove an active popup and run its on_close callback."""
        for index, popup in enumerate(self._active):
            if popup.id == popup_id:
                break
        else:
            return False
        del self._active[index]
        timer = self._timers.pop(popup_id, None)
        if timer is not None:
            timer.cancel()
        if popup.on_close is not None:
            try:
                popup.on_close()
            except Exception:
                logger.exception("on_close for popup %s failed", popup_id)
        self._notify()
        return True

    def clear_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._active = []
        self._notify()

    def clear_history(self) -> None:
        self._history = []
        self._notify()

    def _schedule_expiry(self, popup: Popup) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; popup %s stays until dismissed", popup.id)
            return
        self._timers[popup.id] = loop.call_later(
            popup.duration_ms / 1000, self._expire, popup.id
        )

    def _expire(self, popup_id: str) -> None:
        self._timers.pop(popup_id, None)
        self.dismiss(popup_id)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Popup listener failed")

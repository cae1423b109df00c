"""Fixtures for notifications: wire payloads and an in-memory notification server."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from marketsync.core.exceptions import ApiError
from marketsync.schemas.notification import (
    DeleteAllResponse,
    DeleteResponse,
    MarkAllReadResponse,
    Notification,
    NotificationPage,
    NotificationQuery,
    RoleView,
)


def notification_payload(faker, **overrides) -> dict[str, Any]:
    """A notification as the server serializes it."""
    payload = {
        "_id": faker.hexify(text="^" * 24),
        "user_id": faker.hexify(text="^" * 24),
        "actor_id": None,
        "type": "order_update",
        "title": faker.sentence(nb_words=4),
        "message": faker.sentence(),
        "link": f"/orders/{faker.uuid4()}",
        "metadata": {},
        "is_read": False,
        "is_hidden": False,
        "is_deleted": False,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    payload.update(overrides)
    return payload


class FakeNotificationServer:
    """Speaks the NotificationApi interface against an in-memory store."""

    def __init__(self, role: RoleView = RoleView.CUSTOMER) -> None:
        self.role = role
        # most recent first, like the server's sort
        self.items: list[dict[str, Any]] = []
        self.calls: list[tuple[str, Any]] = []
        self.fail_unread_count: Optional[Exception] = None
        self.fail_list: Optional[Exception] = None
        self.fail_writes: Optional[Exception] = None

    def add(self, payload: dict[str, Any]) -> None:
        self.items.insert(0, payload)

    def _live(self) -> list[dict[str, Any]]:
        return [item for item in self.items if not item["is_deleted"]]

    def _find(self, notification_id: str) -> dict[str, Any]:
        for item in self.items:
            if item["_id"] == notification_id and not item["is_deleted"]:
                return item
        raise ApiError(404, "Notification not found")

    def unread(self) -> int:
        return sum(1 for item in self._live() if not item["is_read"])

    async def list_notifications(
        self, query: Optional[NotificationQuery] = None
    ) -> NotificationPage:
        self.calls.append(("list", query))
        if self.fail_list is not None:
            raise self.fail_list
        query = query or NotificationQuery()
        page, limit = query.page or 1, query.limit or 20
        live = self._live()
        rows = live[(page - 1) * limit : page * limit]
        return NotificationPage(
            notifications=[Notification.model_validate(dict(row)) for row in rows],
            total=len(live),
            page=page,
            limit=limit,
            totalPages=(len(live) + limit - 1) // limit,
            unreadCount=self.unread(),
        )

    async def get_unread_count(self) -> int:
        self.calls.append(("unread_count", None))
        if self.fail_unread_count is not None:
            raise self.fail_unread_count
        return self.unread()

    async def get_notification(self, notification_id: str) -> Notification:
        return Notification.model_validate(dict(self._find(notification_id)))

    async def mark_read(self, notification_id: str) -> Notification:
        self.calls.append(("mark_read", notification_id))
        if self.fail_writes is not None:
            raise self.fail_writes
        item = self._find(notification_id)
        item["is_read"] = True
        return Notification.model_validate(dict(item))

    async def mark_all_read(self) -> MarkAllReadResponse:
        self.calls.append(("mark_all_read", None))
        if self.fail_writes is not None:
            raise self.fail_writes
        modified = 0
        for item in self._live():
            if not item["is_read"]:
                item["is_read"] = True
                modified += 1
        return MarkAllReadResponse(message="ok", modifiedCount=modified)

    async def hide(self, notification_id: str) -> Notification:
        self.calls.append(("hide", notification_id))
        if self.fail_writes is not None:
            raise self.fail_writes
        item = self._find(notification_id)
        item["is_hidden"] = True
        return Notification.model_validate(dict(item))

    async def delete(self, notification_id: str) -> DeleteResponse:
        self.calls.append(("delete", notification_id))
        if self.fail_writes is not None:
            raise self.fail_writes
        self._find(notification_id)["is_deleted"] = True
        return DeleteResponse(message="deleted")

    async def delete_all(self) -> DeleteAllResponse:
        self.calls.append(("delete_all", None))
        if self.fail_writes is not None:
            raise self.fail_writes
        live = self._live()
        for item in live:
            item["is_deleted"] = True
        return DeleteAllResponse(message="deleted", deletedCount=len(live))


@pytest.fixture(scope="function")
def make_notification_payload(faker):
    def _make(**overrides):
        return notification_payload(faker, **overrides)

    return _make


@pytest.fixture(scope="function")
def notification_server():
    return FakeNotificationServer()


@pytest.fixture(scope="function")
def seeded_server(notification_server, make_notification_payload):
    """Three unread notifications n1 (oldest) to n3 (newest)."""
    now = datetime.now(timezone.utc)
    for index in (1, 2, 3):
        notification_server.add(
            make_notification_payload(
                _id=f"n{index}",
                createdAt=(now + timedelta(seconds=index)).isoformat(),
            )
        )
    return notification_server

"""REST client for /notifications, scoped to one role view."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import requests

from marketsync.adapters.base import TIMEOUT_SECONDS, BaseApiClient
from marketsync.schemas.notification import (
    DeleteAllResponse,
    DeleteResponse,
    MarkAllReadResponse,
    Notification,
    NotificationPage,
    NotificationQuery,
    RoleView,
    UnreadCountResponse,
)

BASE_PATH = "/notifications"


@dataclass(frozen=True)
class NotificationRoutes:
    """Role-specific paths. Routes without a staff variant are shared."""

    listing: str
    unread_count: str
    mark_read: str

    @classmethod
    def for_role(cls, role: RoleView) -> "NotificationRoutes":
        if role == RoleView.STAFF:
            return cls(
                listing=f"{BASE_PATH}/staff",
                unread_count=f"{BASE_PATH}/staff/unread-count",
                mark_read=f"{BASE_PATH}/staff/{{id}}/read",
            )
        return cls(
            listing=BASE_PATH,
            unread_count=f"{BASE_PATH}/unread-count",
            mark_read=f"{BASE_PATH}/{{id}}/read",
        )


class NotificationApi(BaseApiClient):
    def __init__(
        self,
        base_url: str,
        role: RoleView = RoleView.CUSTOMER,
        session: Optional[requests.Session] = None,
        timeout: float = TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(base_url, session=session, timeout=timeout)
        self.role = role
        self._routes = NotificationRoutes.for_role(role)

    async def list_notifications(
        self, query: Optional[NotificationQuery] = None
    ) -> NotificationPage:
        params = query.to_params() if query else None
        data = await self._request("GET", self._routes.listing, params=params)
        return self._validate(NotificationPage, data)

    async def get_unread_count(self) -> int:
        data = await self._request("GET", self._routes.unread_count)
        return self._validate(UnreadCountResponse, data).unread_count

    async def get_notification(self, notification_id: str) -> Notification:
        data = await self._request("GET", f"{BASE_PATH}/{notification_id}")
        return self._validate(Notification, data)

    async def mark_read(self, notification_id: str) -> Notification:
        data = await self._request(
            "PATCH", self._routes.mark_read.format(id=notification_id)
        )
        return self._validate(Notification, data)

    async def mark_all_read(self) -> MarkAllReadResponse:
        data = await self._request("PATCH", f"{BASE_PATH}/read-all")
        return self._validate(MarkAllReadResponse, data or {})

    async def hide(self, notification_id: str) -> Notification:
        data = await self._request("PATCH", f"{BASE_PATH}/{notification_id}/hide")
        return self._validate(Notification, data)

    async def delete(self, notification_id: str) -> DeleteResponse:
        data = await self._request("DELETE", f"{BASE_PATH}/{notification_id}")
        return self._validate(DeleteResponse, data or {})

    async def delete_all(self) -> DeleteAllResponse:
        data = await self._request("DELETE", BASE_PATH)
        return self._validate(DeleteAllResponse, data or {})

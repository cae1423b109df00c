"""
NotificationRepository: role-scoped cache of notifications plus the unread counter.

Page 1 replaces the cache, later pages append with id dedup. Reads and hides
are optimistic; deletes wait for the server. Late responses are dropped:
every page-1 fetch bumps the list generation, and every counter write carries
a stamp taken when its information was produced (request issue for REST,
receipt for push), so older information never overwrites newer.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Callable, Optional

from marketsync.adapters.notification_api import NotificationApi
from marketsync.channels.connection import ConnectionManager
from marketsync.core.exceptions import ApiError
from marketsync.infra.logging_config import get_logger
from marketsync.schemas.events import (
    NOTIFICATION_COMMENT_REPLY,
    NOTIFICATION_NEW,
    NOTIFICATION_UNREAD_COUNT,
    ORDER_STATUS_UPDATED,
    STAFF_NEW_ORDER,
    PushEvent,
    UnreadCountEvent,
)
from marketsync.schemas.notification import (
    Notification,
    NotificationQuery,
    RoleView,
)

logger = get_logger("notification_repository")

DEFAULT_PAGE_SIZE = 20

# Push events that mean "something new exists": answered with a full refetch
REFRESH_EVENTS: dict[RoleView, tuple[str, ...]] = {
    RoleView.CUSTOMER: (
        NOTIFICATION_NEW,
        NOTIFICATION_COMMENT_REPLY,
        ORDER_STATUS_UPDATED,
    ),
    RoleView.STAFF: (STAFF_NEW_ORDER, NOTIFICATION_NEW),
}

# notification:unread-count carries the customer counter only
PUSH_COUNT_ROLES = frozenset({RoleView.CUSTOMER})

Listener = Callable[[], None]


class NotificationRepository:
    def __init__(
        self,
        api: NotificationApi,
        connection: Optional[ConnectionManager] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._api = api
        self.role: RoleView = api.role
        self._connection = connection
        self._page_size = page_size

        self._items: list[Notification] = []
        self._deleted_ids: set[str] = set()
        self._pending_reads: set[str] = set()
        self._pending_hides: set[str] = set()
        self._page = 0
        self._total = 0
        self._total_pages = 0

        self._unread_count = 0
        self._count_stamp = 0
        self._stamps = itertools.count(1)
        self._list_generation = 0

        self.list_visible = False
        self.last_error: Optional[ApiError] = None
        self._listeners: list[Listener] = []
        self._attached = False
        self._closed = False

        # stored once so unsubscribe sees the same references
        self._refresh_handler = self._on_refresh_event
        self._count_handler = self._on_unread_count
        self._reconnect_listener = self._on_reconnect

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def notifications(self) -> list[Notification]:
        """Default view: hidden and deleted items are left out."""
        return [n for n in self._items if n.is_visible]

    @property
    def all_notifications(self) -> list[Notification]:
        return list(self._items)

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def page(self) -> int:
        return self._page

    @property
    def total(self) -> int:
        return self._total

    @property
    def has_more(self) -> bool:
        return self._page < self._total_pages

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [l for l in self._listeners if l is not listener]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Subscribe to push events; pair with close() when the surface goes away."""
        self._closed = False
        if self._attached or self._connection is None:
            return
        for event in REFRESH_EVENTS[self.role]:
            self._connection.subscribe(event, self._refresh_handler)
        if self.role in PUSH_COUNT_ROLES:
            self._connection.subscribe(NOTIFICATION_UNREAD_COUNT, self._count_handler)
        self._connection.on_reconnect(self._reconnect_listener)
        self._attached = True

    def close(self) -> None:
        """Detach from the push channel; responses still in flight are discarded."""
        self._closed = True
        self._list_generation += 1
        if not self._attached or self._connection is None:
            return
        for event in REFRESH_EVENTS[self.role]:
            self._connection.unsubscribe(event, self._refresh_handler)
        if self.role in PUSH_COUNT_ROLES:
            self._connection.unsubscribe(NOTIFICATION_UNREAD_COUNT, self._count_handler)
        self._connection.remove_reconnect_listener(self._reconnect_listener)
        self._attached = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_page(
        self,
        page: int = 1,
        page_size: Optional[int] = None,
        query: Optional[NotificationQuery] = None,
    ) -> list[Notification]:
        """
        Load one page. Page 1 replaces the cache; later pages append.

        Raises ApiError on failure; the cache is left as it was.
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if page == 1:
            self._list_generation += 1
        generation = self._list_generation
        stamp = next(self._stamps)
        params = (query or NotificationQuery()).model_copy(
            update={"page": page, "limit": page_size or self._page_size}
        )
        try:
            result = await self._api.list_notifications(params)
        except ApiError as e:
            self.last_error = e
            raise

        if self._closed or generation != self._list_generation:
            logger.debug(
                "Discarding stale page %d response for %s view", page, self.role.value
            )
            return self.notifications

        incoming = [self._apply_pending(n) for n in result.notifications if self._keep(n)]
        if page == 1:
            self._items = _dedup(incoming)
        else:
            known = {n.id for n in self._items}
            self._items.extend(n for n in _dedup(incoming) if n.id not in known)
        self._page = page
        self._total = result.total
        self._total_pages = result.total_pages
        self._set_count(result.unread_count, stamp)
        self.last_error = None
        self._notify()
        return self.notifications

    async def fetch_next_page(self) -> list[Notification]:
        if not self.has_more:
            return self.notifications
        return await self.fetch_page(self._page + 1)

    async def fetch_unread_count(self) -> int:
        """Refresh the badge. Never raises: any failure shows 0."""
        stamp = next(self._stamps)
        try:
            count = await self._api.get_unread_count()
        except Exception as e:
            logger.warning(
                "Unread count for %s view unavailable, showing 0: %s",
                self.role.value,
                e,
            )
            count = 0
        if self._closed:
            return self._unread_count
        if self._set_count(count, stamp):
            self._notify()
        return self._unread_count

    async def get(self, notification_id: str) -> Optional[Notification]:
        """Fetch a single notification; deleted ones are never returned."""
        notification = await self._api.get_notification(notification_id)
        if not self._keep(notification):
            return None
        return notification

    async def refresh(self, include_list: bool = True) -> None:
        """Full reconciliation: page 1 (optional) then the unread count."""
        if include_list:
            try:
                await self.fetch_page(1)
            except ApiError as e:
                logger.warning(
                    "Refetch of %s notifications failed, keeping cache: %s",
                    self.role.value,
                    e,
                )
        await self.fetch_unread_count()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def mark_read(self, notification_id: str) -> bool:
        """Optimistically mark one item read. No rollback if the server refuses."""
        item = self._find(notification_id)
        if item is not None and not item.is_read:
            item.is_read = True
            item.read_at = datetime.now(timezone.utc)
            self._adjust_count(-1)
            self._notify()
        self._pending_reads.add(notification_id)
        try:
            await self._api.mark_read(notification_id)
        except ApiError as e:
            logger.warning(
                "Server rejected mark_read(%s); local change kept until next sync: %s",
                notification_id,
                e,
            )
            return False
        finally:
            self._pending_reads.discard(notification_id)
        return True

    async def mark_all_read(self) -> Optional[int]:
        """
        Mark everything read.

        The counter drops by the number of cached items actually flipped, then
        settles at 0 on server confirmation unless a newer push count arrived.
        Returns the server's modifiedCount, or None if the call failed.
        """
        flipped = [n for n in self._items if not n.is_read]
        now = datetime.now(timezone.utc)
        for item in flipped:
            item.is_read = True
            item.read_at = now
        flipped_ids = {n.id for n in flipped}
        if flipped:
            self._adjust_count(-len(flipped))
            self._notify()
        stamp = next(self._stamps)
        self._pending_reads.update(flipped_ids)
        try:
            response = await self._api.mark_all_read()
        except ApiError as e:
            logger.warning("Server rejected mark_all_read: %s", e)
            return None
        finally:
            self._pending_reads.difference_update(flipped_ids)
        if not self._closed and self._set_count(0, stamp):
            self._notify()
        logger.info(
            "Marked all %s notifications read (flipped=%d, modified=%d)",
            self.role.value,
            len(flipped),
            response.modified_count,
        )
        return response.modified_count

    async def hide(self, notification_id: str) -> bool:
        """Optimistically drop an item from the default view."""
        item = self._find(notification_id)
        if item is not None and not item.is_hidden:
            item.is_hidden = True
            self._notify()
        self._pending_hides.add(notification_id)
        try:
            await self._api.hide(notification_id)
        except ApiError as e:
            logger.warning(
                "Server rejected hide(%s); local change kept until next sync: %s",
                notification_id,
                e,
            )
            return False
        finally:
            self._pending_hides.discard(notification_id)
        return True

    async def delete(self, notification_id: str) -> None:
        """Delete after server confirmation. Raises ApiError if the server refuses."""
        await self._api.delete(notification_id)
        self._deleted_ids.add(notification_id)
        item = self._find(notification_id)
        if item is None:
            return
        self._items = [n for n in self._items if n.id != notification_id]
        if not item.is_read:
            self._adjust_count(-1)
        self._notify()

    async def delete_all(self) -> int:
        response = await self._api.delete_all()
        self._deleted_ids.update(n.id for n in self._items)
        self._items = []
        self._page = 0
        self._total = 0
        self._total_pages = 0
        self._set_count(0, next(self._stamps))
        self._notify()
        return response.deleted_count

    # ------------------------------------------------------------------
    # Push handling
    # ------------------------------------------------------------------

    async def _on_refresh_event(self, event: PushEvent) -> None:
        logger.debug("Refetching %s notifications after %s", self.role.value, event.event)
        await self.refresh()

    def _on_unread_count(self, event: UnreadCountEvent) -> None:
        if self._set_count(event.count, next(self._stamps)):
            self._notify()

    async def _on_reconnect(self) -> None:
        await self.refresh(include_list=self.list_visible)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_count(self, value: int, stamp: int) -> bool:
        if stamp < self._count_stamp:
            logger.debug(
                "Ignoring unread count %d older than the last reconciliation", value
            )
            return False
        self._count_stamp = stamp
        self._unread_count = max(0, value)
        return True

    def _adjust_count(self, delta: int) -> None:
        # local edits supersede any reconciliation already in flight
        self._count_stamp = next(self._stamps)
        self._unread_count = max(0, self._unread_count + delta)

    def _keep(self, notification: Notification) -> bool:
        return not notification.is_deleted and notification.id not in self._deleted_ids

    def _apply_pending(self, notification: Notification) -> Notification:
        if notification.id in self._pending_reads and not notification.is_read:
            notification.is_read = True
        if notification.id in self._pending_hides:
            notification.is_hidden = True
        return notification

    def _find(self, notification_id: str) -> Optional[Notification]:
        for item in self._items:
            if item.id == notification_id:
                return item
        return None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Notification listener failed")


def _dedup(items: list[Notification]) -> list[Notification]:
    seen: set[str] = set()
    out: list[Notification] = []
    for item in items:
        if item.id not in seen:
            seen.add(item.id)
            out.append(item)
    return out

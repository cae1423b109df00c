from __future__ import annotations

from typing import Optional

import requests

from marketsync.adapters.base import build_session
from marketsync.adapters.conversation_api import ConversationApi, StaffApi
from marketsync.adapters.notification_api import NotificationApi
from marketsync.channels.connection import ConnectionManager, TransportFactory
from marketsync.channels.socketio_transport import SocketIOTransport
from marketsync.config import Settings, get_settings
from marketsync.infra.logging_config import LoggingConfig, get_logger
from marketsync.schemas.notification import RoleView
from marketsync.services.ai_chat_session import AIChatSession, AIResponder
from marketsync.services.chat_session import ChatSession, ConversationIdCache
from marketsync.services.notification_repository import NotificationRepository
from marketsync.services.popup_dispatcher import PopupDispatcher
from marketsync.services.reconciliation import ReconciliationLoop
from marketsync.services.staff_inbox import StaffInbox

logger = get_logger("app_state")


class AppState:
    """Owns one push connection, the REST clients and the services for one role."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        role: RoleView = RoleView.CUSTOMER,
        session: Optional[requests.Session] = None,
        transport_factory: Optional[TransportFactory] = None,
        responder: Optional[AIResponder] = None,
    ) -> None:
        self.settings = settings or get_settings()
        LoggingConfig(self.settings.log_level)
        self.role = role

        s = self.settings
        http = session or build_session(s.access_token)
        self.connection = ConnectionManager(
            url=s.push_url,
            transport_factory=transport_factory
            or (
                lambda: SocketIOTransport(
                    connect_timeout=s.push_connect_timeout_seconds,
                    reconnection_attempts=s.push_reconnection_attempts,
                )
            ),
            token_provider=lambda: s.access_token,
        )

        self.notification_api = NotificationApi(
            s.api_base_url, role=role, session=http, timeout=s.http_timeout_seconds
        )
        self.conversation_api = ConversationApi(
            s.api_base_url, session=http, timeout=s.http_timeout_seconds
        )
        self.staff_api: Optional[StaffApi] = None
        if role == RoleView.STAFF:
            self.staff_api = StaffApi(
                s.api_base_url, session=http, timeout=s.http_timeout_seconds
            )

        self.notifications = NotificationRepository(
            self.notification_api, self.connection, page_size=s.notification_page_size
        )
        self.reconciliation = ReconciliationLoop(
            self.notifications, interval=s.reconcile_interval_seconds
        )
        self.popups = PopupDispatcher(
            self.connection,
            role=role,
            default_duration_ms=s.popup_default_duration_ms,
            history_limit=s.popup_history_limit,
        )
        self.inbox: Optional[StaffInbox] = (
            StaffInbox(self.staff_api, self.connection) if self.staff_api else None
        )
        self.conversation_ids = ConversationIdCache()
        self._responder = responder

    async def start(self) -> None:
        """Attach services, open the push channel and run a first reconciliation."""
        self.notifications.attach()
        self.popups.attach()
        if self.inbox is not None:
            self.inbox.attach()
        try:
            await self.connection.get_connection()
        except Exception as e:
            # REST and the reconciliation loop keep working without push
            logger.warning("Push channel unavailable at %s: %s", self.settings.push_url, e)
        await self.notifications.refresh(include_list=self.notifications.list_visible)

    async def stop(self) -> None:
        await self.reconciliation.stop()
        self.popups.detach()
        self.popups.clear_all()
        self.notifications.close()
        if self.inbox is not None:
            self.inbox.close()
        await self.connection.close()

    def new_chat_session(self) -> ChatSession:
        return ChatSession(
            self.connection,
            self.conversation_api,
            staff_api=self.staff_api,
            as_staff=self.role == RoleView.STAFF,
            id_cache=self.conversation_ids,
            max_attachments=self.settings.chat_max_attachments,
        )

    def new_ai_chat_session(self) -> AIChatSession:
        if self._responder is None:
            from marketsync.workers.llm import build_llm_responder_from_env

            self._responder = build_llm_responder_from_env(self.settings)
        return AIChatSession(self._responder)

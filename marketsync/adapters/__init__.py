"""REST clients for the storefront backend."""

from marketsync.adapters.base import BaseApiClient, build_session
from marketsync.adapters.conversation_api import ConversationApi, StaffApi
from marketsync.adapters.notification_api import NotificationApi

__all__ = [
    "BaseApiClient",
    "ConversationApi",
    "NotificationApi",
    "StaffApi",
    "build_session",
]

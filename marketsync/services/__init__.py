from marketsync.services.ai_chat_session import AIChatSession
from marketsync.services.chat_session import ChatSession, ChatState
from marketsync.services.notification_repository import NotificationRepository
from marketsync.services.popup_dispatcher import PopupDispatcher
from marketsync.services.reconciliation import ReconciliationLoop
from marketsync.services.staff_inbox import StaffInbox

__all__ = [
    "AIChatSession",
    "ChatSession",
    "ChatState",
    "NotificationRepository",
    "PopupDispatcher",
    "ReconciliationLoop",
    "StaffInbox",
]

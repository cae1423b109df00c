"""REST clients for customer↔staff conversations."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from marketsync.adapters.base import BaseApiClient
from marketsync.schemas.conversation import (
    Conversation,
    ConversationListResponse,
    CreateConversationRequest,
    CreateConversationResponse,
    DraftFile,
    Message,
    PresenceRequest,
    PresenceResponse,
    PresenceStatus,
)

CONVERSATIONS_PATH = "/conversations"
STAFF_PATH = "/staff"


def _multipart(text: str, files: Sequence[DraftFile]) -> list[tuple[str, Any]]:
    """Text and files as one multipart body; (None, value) makes a plain form field."""
    parts: list[tuple[str, Any]] = []
    if text:
        parts.append(("text", (None, text)))
    parts.extend(f.to_upload() for f in files)
    return parts


class ConversationApi(BaseApiClient):
    async def create_or_get(self, user_id: Optional[str] = None) -> CreateConversationResponse:
        """Idempotent: returns the existing conversation with is_new=False if one exists."""
        body = CreateConversationRequest(user_id=user_id).model_dump(
            by_alias=True, exclude_none=True
        )
        data = await self._request("POST", CONVERSATIONS_PATH, json=body)
        return self._validate(CreateConversationResponse, data)

    async def send_message(
        self,
        conversation_id: str,
        text: str = "",
        files: Sequence[DraftFile] = (),
        as_staff: bool = False,
    ) -> Message:
        path = f"{CONVERSATIONS_PATH}/{conversation_id}/messages"
        if as_staff:
            path = f"{path}/staff"
        data = await self._request("POST", path, files=_multipart(text, files))
        return self._validate(Message, data)


class StaffApi(BaseApiClient):
    """Staff inbox and presence endpoints."""

    async def list_conversations(
        self,
        state: Optional[str] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
        search: Optional[str] = None,
    ) -> list[Conversation]:
        params = {
            k: v
            for k, v in {
                "state": state,
                "limit": limit,
                "skip": skip,
                "search": search,
            }.items()
            if v is not None
        }
        data = await self._request(
            "GET", f"{STAFF_PATH}/conversations", params=params or None
        )
        return self._validate(ConversationListResponse, data or {}).conversations

    async def get_conversation_messages(self, conversation_id: str) -> list[Message]:
        data = await self._request(
            "GET", f"{STAFF_PATH}/conversations/{conversation_id}/messages"
        )
        return [self._validate(Message, item) for item in (data or [])]

    async def mark_conversation_read(self, conversation_id: str) -> None:
        await self._request(
            "PATCH", f"{STAFF_PATH}/conversations/{conversation_id}/read", json={}
        )

    async def set_presence(
        self, status: PresenceStatus, max_conversations: Optional[int] = None
    ) -> bool:
        body = PresenceRequest(status=status, max=max_conversations).model_dump(
            mode="json", exclude_none=True
        )
        data = await self._request("POST", f"{STAFF_PATH}/presence", json=body)
        return self._validate(PresenceResponse, data).ok

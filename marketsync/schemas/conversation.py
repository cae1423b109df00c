"""Pydantic schemas for customer/staff conversations and their messages."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


class SenderType(str, Enum):
    USER = "USER"
    STAFF = "STAFF"
    SYSTEM = "SYSTEM"
    AI = "AI"


class PresenceStatus(str, Enum):
    ONLINE = "ONLINE"
    AWAY = "AWAY"
    OFFLINE = "OFFLINE"


class Attachment(BaseModel):
    """File attached to a message; order within the message is preserved."""

    url: str
    kind: Literal["image", "file"] = "file"
    name: Optional[str] = None
    size: Optional[int] = None
    mime: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("mime", "mime_type", "mimetype")
    )

    model_config = {"populate_by_name": True}


class Message(BaseModel):
    """One chat message. Messages are append-only; text or attachments is set."""

    id: str = Field(validation_alias=AliasChoices("_id", "id", "message_id"))
    conversation_id: str
    sender_type: SenderType
    sender_id: Optional[str] = None
    text: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("text", "content")
    )
    attachments: list[Attachment] = Field(default_factory=list)
    is_read: bool = False
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("createdAt", "created_at")
    )
    updated_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("updatedAt", "updated_at")
    )

    model_config = {"populate_by_name": True}

    @field_validator("sender_type", mode="before")
    @classmethod
    def _upper_sender_type(cls, value: Any) -> Any:
        # staff endpoints send lowercase; "admin" is the legacy staff label
        if isinstance(value, str):
            value = value.upper()
            return SenderType.STAFF.value if value == "ADMIN" else value
        return value

    @field_validator("sender_id", mode="before")
    @classmethod
    def _flatten_sender(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("_id") or value.get("id")
        return value

    @model_validator(mode="after")
    def _text_or_attachments(self) -> "Message":
        if not (self.text or "").strip() and not self.attachments:
            raise ValueError("message has neither text nor attachments")
        return self


class CreateConversationRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, serialization_alias="userId")


class CreateConversationResponse(BaseModel):
    """Create-or-get result; is_new is False when the conversation already existed."""

    conversation_id: str
    is_new: bool
    state: str


class ConversationCustomer(BaseModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None

    model_config = {"populate_by_name": True}


class Conversation(BaseModel):
    """Conversation row as listed in the staff inbox."""

    id: str = Field(validation_alias=AliasChoices("_id", "id", "conversation_id"))
    customer_id: Optional[str] = None
    customer: Optional[ConversationCustomer] = None
    state: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    is_active: bool = True
    unread_count: int = Field(default=0, ge=0)

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _split_customer(cls, data: Any) -> Any:
        # staff list embeds the customer under user_id
        if isinstance(data, dict) and "user_id" in data:
            data = dict(data)
            user = data.pop("user_id")
            if isinstance(user, dict):
                data.setdefault("customer", user)
                data.setdefault("customer_id", user.get("_id") or user.get("id"))
            else:
                data.setdefault("customer_id", user)
        return data


class ConversationListResponse(BaseModel):
    conversations: list[Conversation] = Field(default_factory=list)


class PresenceRequest(BaseModel):
    status: PresenceStatus
    max: Optional[int] = Field(default=None, ge=1)


class PresenceResponse(BaseModel):
    ok: bool


class DraftFile(BaseModel):
    """A file staged in a chat draft; never persisted."""

    name: str
    content: bytes
    mime: str = "application/octet-stream"

    def to_upload(self) -> tuple[str, tuple[str, bytes, str]]:
        """Return the (field, file-tuple) pair for a requests multipart upload."""
        return ("files", (self.name, self.content, self.mime))

"""Pydantic schemas for notifications and the notification REST contract."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

SYSTEM_ACTOR = "system"


class RoleView(str, Enum):
    """Which projection of the notification domain a surface shows."""

    CUSTOMER = "customer"
    STAFF = "staff"


class NotificationType(str, Enum):
    COMMENT_REPLY = "comment_reply"
    ORDER_UPDATE = "order_update"
    PRODUCT_REVIEW = "product_review"
    SYSTEM = "system"


class NotificationActor(BaseModel):
    """Embedded actor, as populated by the server for user-triggered notifications."""

    id: str = Field(alias="_id")
    name: Optional[str] = None
    avatar: Optional[str] = None

    model_config = {"populate_by_name": True}


class Notification(BaseModel):
    """A persisted notification as returned by the server."""

    id: str = Field(alias="_id")
    recipient_id: str = Field(alias="user_id")
    actor: NotificationActor | str = Field(default=SYSTEM_ACTOR, alias="actor_id")
    type: NotificationType
    title: str
    message: str = ""
    link: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    is_hidden: bool = False
    is_deleted: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("createdAt", "created_at")
    )
    updated_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("updatedAt", "updated_at")
    )

    model_config = {"populate_by_name": True}

    @field_validator("actor", mode="before")
    @classmethod
    def _default_actor(cls, value: Any) -> Any:
        return SYSTEM_ACTOR if value is None else value

    @property
    def actor_id(self) -> str:
        if isinstance(self.actor, NotificationActor):
            return self.actor.id
        return self.actor

    @property
    def is_visible(self) -> bool:
        """Shown in default views: neither hidden nor deleted."""
        return not self.is_hidden and not self.is_deleted


class NotificationQuery(BaseModel):
    """Query parameters for GET /notifications."""

    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1)
    type: Optional[NotificationType] = None
    is_read: Optional[bool] = None
    unread_only: Optional[bool] = None

    def to_params(self) -> dict[str, Any]:
        params = self.model_dump(mode="json", exclude_none=True)
        # requests renders bools as "True"/"False"; the server expects lowercase
        for key, value in params.items():
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
        return params


class NotificationPage(BaseModel):
    """Paginated list response, most recent first."""

    notifications: list[Notification] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 0
    total_pages: int = Field(default=0, alias="totalPages")
    unread_count: int = Field(default=0, alias="unreadCount")

    model_config = {"populate_by_name": True}


class UnreadCountResponse(BaseModel):
    unread_count: int = Field(alias="unreadCount", ge=0)

    model_config = {"populate_by_name": True}


class MarkAllReadResponse(BaseModel):
    message: str = ""
    modified_count: int = Field(default=0, alias="modifiedCount")

    model_config = {"populate_by_name": True}


class DeleteResponse(BaseModel):
    message: str = ""


class DeleteAllResponse(BaseModel):
    message: str = ""
    deleted_count: int = Field(default=0, alias="deletedCount")

    model_config = {"populate_by_name": True}

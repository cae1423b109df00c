"""Ephemeral toast popups projected from push events."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

DEFAULT_POPUP_DURATION_MS = 5000


class PopupLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Popup(BaseModel):
    """A self-expiring toast. duration_ms <= 0 keeps it until dismissed."""

    id: str = Field(default_factory=lambda: f"popup-{uuid4().hex}")
    level: PopupLevel = PopupLevel.INFO
    title: str
    message: Optional[str] = None
    duration_ms: int = DEFAULT_POPUP_DURATION_MS
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_event: Optional[str] = None
    on_close: Optional[Callable[[], None]] = Field(default=None, exclude=True)

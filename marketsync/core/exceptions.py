"""Error types raised by the sync layer."""

from __future__ import annotations

from typing import Optional


class ApiError(Exception):
    """A REST call failed: non-2xx status, bad body, timeout or connection error."""

    def __init__(self, status_code: Optional[int], detail: str) -> None:
        super().__init__(f"HTTP {status_code}: {detail}" if status_code else detail)
        self.status_code = status_code
        self.detail = detail

    @property
    def is_transient(self) -> bool:
        """Timeouts, connection failures and 5xx are corrected by the next poll."""
        return self.status_code is None or self.status_code >= 500


class DraftValidationError(ValueError):
    """A chat draft was rejected before any network call."""


class EmptyMessageError(DraftValidationError):
    pass


class AttachmentLimitError(DraftValidationError):
    pass


class ChatSessionError(RuntimeError):
    """Operation not allowed in the session's current state."""

"""Schemas for the client-held AI chat transcript."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Literal, Optional

from pydantic import BaseModel

AIRole = Literal["user", "model"]

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.S)
DEFAULT_IMAGE_MIME = "image/jpeg"


class AITurn(BaseModel):
    """One turn of the transcript; replayed on every call, never persisted."""

    role: AIRole
    text: str
    has_image: bool = False


class AIImage(BaseModel):
    """A single image attached to the latest user turn."""

    data: bytes
    media_type: str = DEFAULT_IMAGE_MIME

    @classmethod
    def from_base64(cls, value: str) -> "AIImage":
        """Accept a data URL (data:image/png;base64,...) or bare base64."""
        match = _DATA_URL.match(value.strip())
        mime: Optional[str] = None
        raw = value.strip()
        if match:
            mime = match.group("mime")
            raw = match.group("data")
        try:
            data = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"image is not valid base64: {e}") from e
        if not data:
            raise ValueError("image is empty")
        return cls(data=data, media_type=mime or DEFAULT_IMAGE_MIME)


from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

RawHandler = Callable[[Any], Awaitable[None]]
LifecycleHandler = Callable[..., Awaitable[None]]


@dataclass(frozen=True)
class TransportMeta:
    label: str
    docs: Optional[str] = None


class PushTransport(Protocol):
    """Bidirectional push connection. Reconnect behaviour is owned by the transport."""

    meta: TransportMeta

    @property
    def connected(self) -> bool: ...

    async def connect(self, url: str, auth: dict[str, Any]) -> None: ...
    async def disconnect(self) -> None: ...

    def on(self, event: str, handler: RawHandler) -> None: ...
    def on_connect(self, handler: LifecycleHandler) -> None: ...
    def on_disconnect(self, handler: LifecycleHandler) -> None: ...

    async def emit(self, event: str, payload: Any) -> None: ...

"""Socket.IO push transport using python-socketio's asyncio client."""

from __future__ import annotations

from typing import Any, Optional

import socketio

from marketsync.channels.base import LifecycleHandler, RawHandler, TransportMeta
from marketsync.infra.logging_config import get_logger

logger = get_logger("socketio_transport")


class SocketIOTransport:
    meta = TransportMeta(label="Socket.IO", docs="https://socket.io/docs/v4/")

    def __init__(
        self,
        connect_timeout: float = 10.0,
        reconnection_attempts: int = 0,
        client: Optional[socketio.AsyncClient] = None,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._client = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=reconnection_attempts,
            logger=False,
            engineio_logger=False,
        )

    @property
    def connected(self) -> bool:
        return bool(self._client.connected)

    async def connect(self, url: str, auth: dict[str, Any]) -> None:
        logger.info("Connecting push channel to %s", url)
        await self._client.connect(
            url,
            auth=auth,
            transports=["websocket", "polling"],
            wait_timeout=self._connect_timeout,
        )

    async def disconnect(self) -> None:
        if self._client.connected:
            await self._client.disconnect()

    def on(self, event: str, handler: RawHandler) -> None:
        self._client.on(event, handler=handler)

    def on_connect(self, handler: LifecycleHandler) -> None:
        self._client.on("connect", handler=handler)

    def on_disconnect(self, handler: LifecycleHandler) -> None:
        self._client.on("disconnect", handler=handler)

    async def emit(self, event: str, payload: Any) -> None:
        await self._client.emit(event, payload)

"""
Connection manager for the push channel.

Owns exactly one transport per runtime, opened lazily on first use and shared
by every subscriber. Subscribers register typed handlers per event name; the
manager binds a single raw dispatcher per name on the transport and fans out
to the registered handlers.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from marketsync.channels.base import PushTransport
from marketsync.infra.logging_config import get_logger
from marketsync.schemas.events import PushEvent, parse_push_event

logger = get_logger("connection")

EventHandler = Callable[[PushEvent], Union[Awaitable[None], None]]
ReconnectListener = Callable[[], Union[Awaitable[None], None]]
TokenProvider = Callable[[], Optional[str]]
TransportFactory = Callable[[], PushTransport]


async def _call(handler: Callable[..., Any], *args: Any) -> None:
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


class ConnectionManager:
    def __init__(
        self,
        url: str,
        transport_factory: TransportFactory,
        token_provider: Optional[TokenProvider] = None,
    ) -> None:
        self._url = url
        self._transport_factory = transport_factory
        self._token_provider = token_provider or (lambda: None)
        self._transport: Optional[PushTransport] = None
        self._pending: Optional[PushTransport] = None
        self._lock = asyncio.Lock()
        self._handlers: dict[str, list[EventHandler]] = {}
        self._bound_events: set[str] = set()
        self._reconnect_listeners: list[ReconnectListener] = []
        self._connect_count = 0
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._transport is not None and self._transport.connected

    async def get_connection(self) -> PushTransport:
        """Return the shared transport, opening it on first use."""
        if self._closed:
            raise RuntimeError("Connection manager is closed")
        if self._transport is not None:
            return self._transport
        async with self._lock:
            if self._transport is None:
                transport = self._transport_factory()
                self._pending = transport
                self._bound_events = set()
                transport.on_connect(self._handle_connect)
                transport.on_disconnect(self._handle_disconnect)
                self._bind_all(transport)
                token = self._token_provider()
                try:
                    await transport.connect(
                        self._url, auth={"token": token} if token else {}
                    )
                finally:
                    self._pending = None
                self._transport = transport
        return self._transport

    def subscribe(self, event: str, handler: EventHandler) -> None:
        """Register a handler. Keep the reference: unsubscribe matches by identity."""
        handlers = self._handlers.setdefault(event, [])
        if any(h is handler for h in handlers):
            return
        handlers.append(handler)
        transport = self._transport or self._pending
        if transport is not None and event not in self._bound_events:
            self._bind(transport, event)

    def unsubscribe(self, event: str, handler: EventHandler) -> bool:
        handlers = self._handlers.get(event, [])
        for index, registered in enumerate(handlers):
            if registered is handler:
                del handlers[index]
                return True
        logger.warning(
            "unsubscribe(%s) called with a handler that was never subscribed", event
        )
        return False

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    async def emit(self, event: str, payload: Any) -> None:
        """Fire-and-forget send; no acknowledgement is awaited."""
        transport = await self.get_connection()
        await transport.emit(event, payload)

    def on_reconnect(self, listener: ReconnectListener) -> None:
        if not any(registered is listener for registered in self._reconnect_listeners):
            self._reconnect_listeners.append(listener)

    def remove_reconnect_listener(self, listener: ReconnectListener) -> None:
        self._reconnect_listeners = [
            registered
            for registered in self._reconnect_listeners
            if registered is not listener
        ]

    async def dispatch(self, event: str, payload: Any) -> None:
        """Parse a raw payload and hand the typed event to every subscriber."""
        parsed = parse_push_event(event, payload)
        if parsed is None:
            return
        for handler in list(self._handlers.get(event, [])):
            try:
                await _call(handler, parsed)
            except Exception:
                logger.exception("Push handler for %s failed", event)

    async def close(self) -> None:
        self._closed = True
        transport, self._transport = self._transport, None
        self._handlers.clear()
        self._reconnect_listeners.clear()
        if transport is not None:
            await transport.disconnect()

    def _bind_all(self, transport: PushTransport) -> None:
        for event in list(self._handlers):
            self._bind(transport, event)

    def _bind(self, transport: PushTransport, event: str) -> None:
        async def _on_event(*args: Any) -> None:
            await self.dispatch(event, args[0] if args else None)

        transport.on(event, _on_event)
        self._bound_events.add(event)

    async def _handle_connect(self, *_args: Any) -> None:
        self._connect_count += 1
        if self._connect_count == 1:
            logger.info("Push channel connected")
            return
        logger.info("Push channel reconnected (%d)", self._connect_count - 1)
        transport = self._transport or self._pending
        if transport is not None:
            # subscriptions are not assumed to survive a reconnect
            self._bound_events = set()
            self._bind_all(transport)
        for listener in list(self._reconnect_listeners):
            try:
                await _call(listener)
            except Exception:
                logger.exception("Reconnect listener failed")

    async def _handle_disconnect(self, *_args: Any) -> None:
        logger.warning("Push channel disconnected")

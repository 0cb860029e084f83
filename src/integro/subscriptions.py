"""Subscription multiplexing over one shared WebSocket.

Every subscription of a client shares a single socket, opened on the
first subscription. Each subscription adds a listener scoped to its call
path and registers itself with the server. The server pushes msgpack
frames::

    {"type": "event", "path": [...], "message": ...}
    {"type": "error", "path": [...], "message": ...}

Frames are delivered to the listeners whose path matches. An error frame
is terminal for the listener that receives it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

import aiohttp

from integro import codec
from integro.config import ClientConfig
from integro.types import Path

if TYPE_CHECKING:
    from aiohttp import ClientWebSocketResponse

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Awaitable[aiohttp.ClientSession]]
Unsubscribe = Callable[[], None]


class Listener:
    """Delivers pushed messages for one path to one callback."""

    __slots__ = ("path", "callback", "_multiplexer")

    def __init__(
        self,
        path: Path,
        callback: Callable[..., Any],
        multiplexer: SubscriptionMultiplexer,
    ) -> None:
        self.path = path
        self.callback = callback
        self._multiplexer = multiplexer

    def matches(self, path: Any) -> bool:
        return isinstance(path, (list, tuple)) and tuple(path) == self.path

    async def deliver(self, message: dict[str, Any]) -> None:
        kind = message.get("type")
        if kind not in ("event", "error") or not self.matches(message.get("path")):
            return

        if kind == "error":
            self._multiplexer.remove(self)
            await self._invoke(None, message.get("message"))
        else:
            await self._invoke(message.get("message"))

    async def _invoke(self, *args: Any) -> None:
        try:
            result = self.callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Subscription callback for %s failed", ".".join(self.path))


class SubscriptionMultiplexer:
    """Owns a client's shared WebSocket and its listeners.

    The socket is opened lazily and at most once. Unsubscribing removes a
    listener but never closes the socket; only ``close()`` does.
    """

    def __init__(self, config: ClientConfig, get_session: SessionFactory) -> None:
        """Initialize the multiplexer.

        Args:
            config: Client configuration
            get_session: Coroutine function returning the shared aiohttp session
        """
        self._config = config
        self._get_session = get_session
        self._ws: ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._connect_lock = asyncio.Lock()
        self._listeners: list[Listener] = []

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def listeners(self) -> tuple[Listener, ...]:
        return tuple(self._listeners)

    async def subscribe(self, path: Sequence[str], callback: Callable[..., Any]) -> Unsubscribe:
        """Register ``callback`` for pushes on ``path``.

        Returns:
            A function removing this subscription
        """
        if not callable(callback):
            raise TypeError("First parameter must be a callback function.")

        listener = Listener(tuple(path), callback, self)
        self._listeners.append(listener)

        try:
            ws = await self._connect()
            await ws.send_bytes(codec.pack({
                "type": "subscribe",
                "auth": self._config.resolve_auth(),
                "path": list(listener.path),
            }))
        except BaseException:
            self.remove(listener)
            raise

        logger.debug("Subscribed to %s", ".".join(listener.path))
        return lambda: self.remove(listener)

    def remove(self, listener: Listener) -> None:
        """Remove a listener if it is still registered."""
        with suppress(ValueError):
            self._listeners.remove(listener)
            logger.debug("Unsubscribed from %s", ".".join(listener.path))

    async def _connect(self) -> ClientWebSocketResponse:
        async with self._connect_lock:
            if self._ws is None:
                session = await self._get_session()
                url = self._config.resolve_websocket_url()
                self._ws = await session.ws_connect(url)
                self._reader = asyncio.create_task(self._read_loop(self._ws))
                logger.debug("Subscription socket opened: %s", url)
            return self._ws

    async def _read_loop(self, ws: ClientWebSocketResponse) -> None:
        while True:
            msg = await ws.receive()

            if msg.type == aiohttp.WSMsgType.BINARY:
                await self._dispatch(msg.data)
            elif msg.type == aiohttp.WSMsgType.TEXT:
                await self._dispatch(msg.data.encode("utf-8"))
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                if self._listeners:
                    logger.warning(
                        "Subscription socket closed with %d active listeners",
                        len(self._listeners),
                    )
                return
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error("Subscription socket error: %s", ws.exception())
                return

    async def _dispatch(self, data: bytes) -> None:
        try:
            message = codec.unpack(data)
        except Exception:
            logger.error("Dropping undecodable push frame (%d bytes)", len(data))
            return

        if not isinstance(message, dict):
            return
        for listener in list(self._listeners):
            # an earlier callback may have unsubscribed it
            if listener in self._listeners:
                await listener.deliver(message)

    async def close(self) -> None:
        """Close the socket and stop the reader."""
        self._listeners.clear()

        if self._reader and not self._reader.done():
            self._reader.cancel()
            with suppress(asyncio.CancelledError):
                await self._reader
        self._reader = None

        if self._ws is not None:
            await self._ws.close()
            self._ws = None

"""Client session for an integro server.

The client owns everything shared between its calls: the aiohttp session,
the request/response transport, the subscription socket and the root of
the mirrored API. Separate clients share nothing.

Example:
    ```python
    async with create_client("http://localhost:8000", auth="Bearer abc") as client:
        version = await client.api.version()

        artist, missing, run = batch([
            client.api.artists.find_by_id("miles"),
            client.api.artists.find_by_id(""),
        ])
        outcomes = await run()

        unsubscribe = await client.api["messages$"].subscribe(print)
        ...
        unsubscribe()
    ```
"""

from __future__ import annotations

import logging
from typing import Any, Self

import aiohttp

from integro.config import ClientConfig
from integro.lazy import LazyCall, SubscriptionCall
from integro.proxy import CallProxy
from integro.subscriptions import SubscriptionMultiplexer
from integro.transport import HttpTransport
from integro.types import Path

logger = logging.getLogger(__name__)

CALLBACK_REQUIRED_MESSAGE = "First parameter must be a callback function."


class Client:
    """An integro client.

    Attributes:
        config: The client configuration
        api: Root proxy of the mirrored remote API
        transport: Request/response transport used by lazy calls and batches
        subscriptions: Shared-socket subscription multiplexer
    """

    def __init__(self, config: ClientConfig) -> None:
        self.config = config
        self._http_session: aiohttp.ClientSession | None = None
        self.transport = HttpTransport(config, self._get_http_session)
        self.subscriptions = SubscriptionMultiplexer(config, self._get_http_session)
        self.api = CallProxy(self)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def _get_http_session(self) -> aiohttp.ClientSession:
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    def is_subscription(self, path: Path) -> bool:
        """Whether a call on ``path`` registers a push subscription."""
        return (
            len(path) >= 2
            and path[-1] == self.config.subscribe_method
            and path[-2].endswith(self.config.event_suffix)
        )

    def create_call(self, path: Path, args: tuple[Any, ...]) -> LazyCall:
        """Create the lazy call for an invocation of ``path``.

        Raises:
            TypeError: If a subscription is not given exactly one callback
        """
        if self.is_subscription(path):
            if len(args) != 1 or not callable(args[0]):
                raise TypeError(CALLBACK_REQUIRED_MESSAGE)
            return SubscriptionCall(self, path, args)
        return LazyCall(self, path, args)

    async def close(self) -> None:
        """Close the subscription socket and the HTTP session."""
        await self.subscriptions.close()
        if self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        logger.debug("Client for %s closed", self.config.url)

    def __repr__(self) -> str:
        return f"Client({self.config.url!r})"


def create_client(url: str, **options: Any) -> Client:
    """Create a client for the dispatcher at ``url``.

    Args:
        url: HTTP endpoint of the dispatcher
        **options: Other ClientConfig fields (auth, request_options, ...)

    Returns:
        A new Client; connections are opened on first use
    """
    return Client(ClientConfig(url=url, **options))

"""HTTP request/response transport.

Each call, or each batch of calls, is sent as one msgpack-encoded POST to
the dispatcher endpoint. A single call is the envelope ``{path, args}`` and
the response body is the call's value. A batch is a list of envelopes and
the response body is a list of ``{status, value | reason}`` outcomes in the
same order.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

from multidict import CIMultiDict

from integro import codec
from integro.config import ClientConfig
from integro.error import CallError, ServerError
from integro.types import CallRequest, Outcome

if TYPE_CHECKING:
    import aiohttp

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "The server responded in error."

SessionFactory = Callable[[], Awaitable["aiohttp.ClientSession"]]


def error_from_payload(payload: Any) -> CallError | ServerError:
    """Classify the decoded body of a non-success response."""
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            name = payload.get("name")
            kind = name if isinstance(name, str) and name else "Error"
            return CallError(message, (kind, message))
    return ServerError(GENERIC_ERROR_MESSAGE, cause=payload)


class HttpTransport:
    """Performs request/response exchanges with the dispatcher.

    Credentials and request options are resolved from the config on every
    exchange, so a resolver function always supplies the latest value.
    """

    __slots__ = ("_config", "_get_session")

    def __init__(self, config: ClientConfig, get_session: SessionFactory) -> None:
        """Initialize the transport.

        Args:
            config: Client configuration
            get_session: Coroutine function returning the shared aiohttp session
        """
        self._config = config
        self._get_session = get_session

    async def call(self, request: CallRequest) -> Any:
        """Execute one call and return its value.

        Raises:
            CallError: If the dispatcher reports a failure with a message
            ServerError: If the dispatcher responds in error otherwise
        """
        logger.debug("POST %s (%s)", ".".join(request.path), self._config.url)
        return await self._post(request.to_wire())

    async def call_batch(self, requests: Sequence[CallRequest]) -> list[Outcome]:
        """Execute several calls in one exchange.

        Returns:
            One Outcome per request, in request order

        Raises:
            ServerError: If the response is not an aligned list of outcomes
            CallError: If the whole exchange was rejected with a message
        """
        logger.debug("POST batch of %d calls (%s)", len(requests), self._config.url)
        payload = await self._post([request.to_wire() for request in requests])

        if not isinstance(payload, list) or len(payload) != len(requests):
            raise ServerError(
                f"The server returned a batch response that does not match "
                f"the {len(requests)} requested calls.",
                cause=payload,
            )
        return [Outcome.from_wire(entry) for entry in payload]

    async def _post(self, body: Any) -> Any:
        options = self._config.resolve_request_options()
        auth = self._config.resolve_auth()

        headers = CIMultiDict({"Content-Type": codec.CONTENT_TYPE})
        if auth:
            headers["Authorization"] = auth
        headers.update(options.pop("headers", None) or {})
        method = options.pop("method", "POST")

        session = await self._get_session()
        async with session.request(
            method,
            self._config.url,
            data=codec.pack(body),
            headers=headers,
            **options,
        ) as response:
            raw = await response.read()
            payload = codec.unpack(raw) if raw else None

            if not response.ok:
                logger.debug("Dispatcher responded with status %d", response.status)
                raise error_from_payload(payload)

        return payload

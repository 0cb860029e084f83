"""Lazy, memoizing call descriptors.

A LazyCall is created for every invocation made through a CallProxy. It
does nothing until it is awaited (or until a batch containing it is
triggered). It then runs at most one standalone execution and memoizes the
result, so every later await returns the same value or raises the same
error without touching the network.

State machine::

    PENDING --await / batch trigger--> EXECUTING --result--> SETTLED

Late joiners on an EXECUTING call wait on the call's shared future instead
of issuing another request. A batch may settle a call at any time; its
outcome overwrites whatever the call had memoized before.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Generator

from integro.error import CallError
from integro.types import CallRequest, CallState, Outcome, Path

if TYPE_CHECKING:
    from integro.client import Client

logger = logging.getLogger(__name__)


class LazyCall:
    """A deferred remote call.

    Example:
        ```python
        call = client.api.artists.find_by_id("miles")  # nothing sent yet
        artist = await call  # one request
        again = await call  # memoized, no request
        ```
    """

    __slots__ = (
        "_client",
        "_request",
        "_state",
        "_future",
        "_task",
        "_value",
        "_error",
    )

    def __init__(self, client: Client, path: Path, args: tuple[Any, ...]) -> None:
        self._client = client
        self._request = CallRequest(tuple(path), tuple(args))
        self._state = CallState.PENDING
        # Completes when the current execution ends: None once settled, or the
        # error that returned the call to PENDING. Results live in the memo.
        self._future: asyncio.Future[BaseException | None] | None = None
        self._task: asyncio.Task[None] | None = None
        self._value: Any = None
        self._error: BaseException | None = None

    @property
    def client(self) -> Client:
        return self._client

    @property
    def path(self) -> Path:
        return self._request.path

    @property
    def args(self) -> tuple[Any, ...]:
        return self._request.args

    @property
    def request(self) -> CallRequest:
        return self._request

    @property
    def state(self) -> CallState:
        return self._state

    @property
    def settled(self) -> bool:
        return self._state is CallState.SETTLED

    def __await__(self) -> Generator[Any, None, Any]:
        return self._resolve().__await__()

    async def _resolve(self) -> Any:
        if self._state is CallState.PENDING:
            self._task = asyncio.ensure_future(self._run_standalone(self._begin()))

        future = self._future
        if self._state is CallState.EXECUTING and future is not None:
            failure = await asyncio.shield(future)
            if failure is not None:
                raise failure

        if self._error is not None:
            raise self._error
        return self._value

    async def _execute(self) -> Any:
        return await self._client.transport.call(self._request)

    async def _run_standalone(self, future: asyncio.Future[BaseException | None]) -> None:
        try:
            value = await self._execute()
        except asyncio.CancelledError as e:
            self._abandon(e)
            raise
        except Exception as e:
            value, error = None, e
        else:
            error = None

        if self._future is not future or self._state is not CallState.EXECUTING:
            logger.debug("Discarding late standalone result for %r", self)
            return
        self._store(value, error)

    # Batch coordination

    def _begin(self) -> asyncio.Future[BaseException | None]:
        """Move PENDING -> EXECUTING and create the shared future."""
        self._state = CallState.EXECUTING
        self._future = asyncio.get_running_loop().create_future()
        return self._future

    def _claim(self) -> bool:
        """Let a batch take ownership of this call if it is still pending."""
        if self._state is not CallState.PENDING:
            return False
        self._begin()
        return True

    def _settle(self, outcome: Outcome) -> None:
        """Settle from a batch outcome, overwriting any previous memo."""
        if outcome.ok:
            self._store(outcome.value, None)
        else:
            self._store(None, CallError.from_reason(outcome.reason))

    def _abandon(self, error: BaseException) -> None:
        """Return an executing call to PENDING without memoizing anything."""
        if self._state is not CallState.EXECUTING:
            return
        self._state = CallState.PENDING
        self._signal(error)

    def _store(self, value: Any, error: BaseException | None) -> None:
        self._value = value
        self._error = error
        self._state = CallState.SETTLED
        self._signal(None)

    def _signal(self, failure: BaseException | None) -> None:
        if self._future is not None and not self._future.done():
            self._future.set_result(failure)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({'.'.join(self.path)}, {self._state})"


class SubscriptionCall(LazyCall):
    """A lazy subscription to an event-stream path.

    Awaiting it registers the callback on the client's shared socket and
    returns a function that removes the subscription again.
    """

    __slots__ = ()

    @property
    def callback(self) -> Callable[..., Any]:
        return self.args[0]

    async def _execute(self) -> Callable[[], None]:
        return await self._client.subscriptions.subscribe(self.path, self.callback)

"""Batching of lazy calls into a single HTTP exchange.

``batch(calls)`` groups lazy calls without sending anything. The returned
Batch can be awaited for the per-call outcomes, or unpacked back into the
original calls followed by a trigger function::

    artist, missing, run = batch([
        client.api.artists.find_by_id("miles"),
        client.api.artists.find_by_id(""),
    ])
    await run()          # one request for both calls
    await artist         # memoized, no request
    await missing        # raises CallError, no request

The first trigger (await or ``run()``) sends one combined request with every
call in order, even calls that already settled on their own. Each outcome
settles its call, replacing any earlier memoized result. A failure of one
call never fails the batch; only a failed exchange does.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, Callable, Generator, overload

from integro.lazy import LazyCall, SubscriptionCall
from integro.types import Outcome

if TYPE_CHECKING:
    from integro.client import Client

logger = logging.getLogger(__name__)

NOT_BATCHABLE_MESSAGE = "Only lazy calls can be batched"


class Batch(Sequence[Any]):
    """A one-shot group of lazy calls executed as one exchange.

    As a sequence it holds the original calls at their positions followed
    by ``run`` as its last item.
    """

    __slots__ = ("_calls", "_task")

    def __init__(self, calls: Sequence[LazyCall]) -> None:
        self._calls: tuple[LazyCall, ...] = tuple(calls)
        self._task: asyncio.Future[list[Outcome]] | None = None

    @property
    def calls(self) -> tuple[LazyCall, ...]:
        return self._calls

    @property
    def triggered(self) -> bool:
        return self._task is not None

    def run(self) -> asyncio.Future[list[Outcome]]:
        """Trigger the batch and return the future of its outcomes.

        Calling it again returns the same future.
        """
        if self._task is None:
            if not self._calls:
                future: asyncio.Future[list[Outcome]] = asyncio.get_running_loop().create_future()
                future.set_result([])
                self._task = future
            else:
                # members move to EXECUTING before anything else can await them
                claimed = [call for call in self._calls if call._claim()]
                self._task = asyncio.ensure_future(self._execute(claimed))
                self._task.add_done_callback(self._release_on_cancel(claimed))
        return self._task

    def __await__(self) -> Generator[Any, None, list[Outcome]]:
        return self.run().__await__()

    @staticmethod
    def _release_on_cancel(claimed: list[LazyCall]) -> Callable[[asyncio.Future[Any]], None]:
        # a task cancelled before its first step never reaches _execute's handler
        futures = [(call, call._future) for call in claimed]

        def release(task: asyncio.Future[Any]) -> None:
            if not task.cancelled():
                return
            for call, future in futures:
                if call._future is future:
                    call._abandon(asyncio.CancelledError())

        return release

    async def _execute(self, claimed: list[LazyCall]) -> list[Outcome]:
        client: Client = self._calls[0].client

        try:
            outcomes = await client.transport.call_batch([call.request for call in self._calls])
        except BaseException as e:
            for call in claimed:
                call._abandon(e)
            raise

        for call, outcome in zip(self._calls, outcomes):
            call._settle(outcome)

        logger.debug(
            "Batch of %d calls settled (%d rejected)",
            len(outcomes),
            sum(1 for outcome in outcomes if not outcome.ok),
        )
        return outcomes

    def __len__(self) -> int:
        return len(self._calls) + 1

    @overload
    def __getitem__(self, index: int) -> Any: ...

    @overload
    def __getitem__(self, index: slice) -> list[Any]: ...

    def __getitem__(self, index: int | slice) -> Any:
        items = [*self._calls, self.run]
        return items[index]

    def __iter__(self):
        yield from self._calls
        yield self.run

    def __repr__(self) -> str:
        status = "triggered" if self.triggered else "pending"
        return f"Batch({len(self._calls)} calls, {status})"


def batch(calls: Iterable[LazyCall]) -> Batch:
    """Group lazy calls for execution in one exchange.

    Nothing is sent until the batch is awaited or its trigger is called.

    Raises:
        TypeError: If an element is not a LazyCall, or is a subscription
        ValueError: If the calls belong to different clients
    """
    items = list(calls)

    for item in items:
        if not isinstance(item, LazyCall):
            raise TypeError(NOT_BATCHABLE_MESSAGE)
        if isinstance(item, SubscriptionCall):
            raise TypeError("Subscriptions cannot be batched")

    if items and any(item.client is not items[0].client for item in items):
        raise ValueError("Batched calls must belong to the same client")

    return Batch(items)

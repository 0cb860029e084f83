"""Pytest configuration for all tests."""

import asyncio
from typing import Any, Callable

import pytest
import pytest_asyncio

from dispatcher import Dispatcher, find_by_id, make_api

from integro import Client, ClientConfig, Outcome
from integro.error import CallError
from integro.types import CallRequest


class FakeTransport:
    """In-memory transport for testing the call engine without a network.

    ``gate`` holds every exchange until it is set, so tests can observe
    calls while they are in flight.
    """

    def __init__(self, handlers: dict[tuple[str, ...], Callable[..., Any]]) -> None:
        self.handlers = handlers
        self.calls: list[CallRequest] = []
        self.batches: list[list[CallRequest]] = []
        self.gate = asyncio.Event()
        self.gate.set()
        self.error: Exception | None = None

    @property
    def exchange_count(self) -> int:
        return len(self.calls) + len(self.batches)

    def _run(self, request: CallRequest) -> Any:
        return self.handlers[request.path](*request.args)

    async def call(self, request: CallRequest) -> Any:
        self.calls.append(request)
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        try:
            return self._run(request)
        except Exception as e:
            raise CallError(str(e), (type(e).__name__, str(e))) from e

    async def call_batch(self, requests: list[CallRequest]) -> list[Outcome]:
        self.batches.append(list(requests))
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        outcomes = []
        for request in requests:
            try:
                outcomes.append(Outcome.fulfilled(self._run(request)))
            except Exception as e:
                outcomes.append(Outcome.rejected(type(e).__name__, str(e)))
        return outcomes


@pytest.fixture
def fake_transport() -> FakeTransport:
    counter = {"n": 0}

    def increment() -> int:
        counter["n"] += 1
        return counter["n"]

    return FakeTransport({
        ("version",): lambda: "0.1.0",
        ("counter", "next"): increment,
        ("artists", "find_by_id"): find_by_id,
    })


@pytest.fixture
def offline_client(fake_transport: FakeTransport) -> Client:
    """A client whose request/response transport is the fake transport."""
    client = Client(ClientConfig(url="http://integro.test/"))
    client.transport = fake_transport
    return client


@pytest_asyncio.fixture
async def dispatcher():
    server = Dispatcher(make_api())
    await server.start()
    try:
        yield server
    finally:
        await server.stop()


@pytest_asyncio.fixture
async def client(dispatcher: Dispatcher):
    async with Client(ClientConfig(url=dispatcher.url)) as c:
        yield c

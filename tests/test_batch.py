"""Tests for batching lazy calls into one HTTP exchange.

These run against the in-process dispatcher and count the requests it
receives.
"""

import asyncio

import pytest

from dispatcher import ARTISTS
from integro import Batch, CallError, CallState, Outcome, ServerError, batch
from integro.batch import NOT_BATCHABLE_MESSAGE

MILES, MONK, MINGUS = ARTISTS
EMPTY_ID_ERROR = ("ValueError", "id must be a non-empty string")


@pytest.mark.asyncio
class TestBatchResults:
    """Aggregate results of awaiting a batch."""

    async def test_returns_outcome_per_call(self, client, dispatcher):
        """Test three successful calls resolve in order."""
        find = client.api.artists.find_by_id
        result = await batch([find(MILES["id"]), find(MONK["id"]), find(MINGUS["id"])])

        assert result == [
            Outcome.fulfilled(MILES),
            Outcome.fulfilled(MONK),
            Outcome.fulfilled(MINGUS),
        ]
        assert dispatcher.request_count == 1

    async def test_succeeds_when_some_calls_fail(self, client, dispatcher):
        """Test one failing call does not fail the batch."""
        result = await batch([client.api.version(), client.api.artists.find_by_id("")])

        assert result == [
            Outcome.fulfilled("0.1.0"),
            Outcome.rejected(*EMPTY_ID_ERROR),
        ]
        assert result[1].to_dict() == {"status": "rejected", "reason": EMPTY_ID_ERROR}
        assert dispatcher.request_count == 1

    async def test_empty_batch(self, dispatcher):
        """Test an empty batch resolves to [] without any request."""
        assert await batch([]) == []
        assert dispatcher.request_count == 0

    async def test_datetimes_survive_the_round_trip(self, client):
        """Test values decode back to aware datetimes."""
        result = await batch([client.api.artists.find_by_name("monk")])

        assert result[0].value["dob"] == MONK["dob"]


@pytest.mark.asyncio
class TestBatchLaziness:
    """Batches only touch the network when triggered."""

    async def test_construction_sends_nothing(self, client, dispatcher):
        """Test building a batch is pure data composition."""
        call = client.api.version()
        b = batch([call])
        await asyncio.sleep(0.05)

        assert isinstance(b, Batch)
        assert b.calls == (call,)
        assert not b.triggered
        assert dispatcher.request_count == 0

    async def test_rejects_non_lazy_calls(self, client, dispatcher):
        """Test a plain awaitable cannot be batched."""
        task = asyncio.ensure_future(client.api.version())

        with pytest.raises(TypeError, match=NOT_BATCHABLE_MESSAGE):
            batch([task])

        await task
        assert dispatcher.request_count == 1

    async def test_rejects_plain_values(self, client):
        """Test any non-call element raises synchronously."""
        with pytest.raises(TypeError, match=NOT_BATCHABLE_MESSAGE):
            batch([client.api.version(), "version"])

    async def test_reruns_the_same_calls(self, client, dispatcher):
        """Test each batch of the same calls is a new exchange."""
        find = client.api.artists.find_by_id
        calls = [find(MILES["id"]), find(MONK["id"]), find(MINGUS["id"])]

        await calls[0]
        await batch(calls)
        await batch(calls)

        assert dispatcher.request_count == 3


@pytest.mark.asyncio
class TestBatchDistribution:
    """Outcomes are fanned back out to the original calls."""

    async def test_resolves_passed_in_calls(self, client, dispatcher):
        """Test members settle from the batch without extra requests."""
        artist = client.api.artists.find_by_id(MILES["id"])
        missing = client.api.artists.find_by_id("")

        result = await batch([artist, missing])

        assert result == [Outcome.fulfilled(MILES), Outcome.rejected(*EMPTY_ID_ERROR)]
        assert await artist == MILES
        with pytest.raises(CallError, match="id must be a non-empty string"):
            await missing
        assert dispatcher.request_count == 1

    async def test_failed_member_raises_structured_error(self, client, dispatcher):
        """Test a rejected member raises CallError with message and details."""
        artist = client.api.artists.find_by_id(MILES["id"])
        missing = client.api.artists.find_by_id("")
        await batch([artist, missing])

        with pytest.raises(CallError) as exc_info:
            await missing

        assert exc_info.value.message == "id must be a non-empty string"
        assert exc_info.value.details == EMPTY_ID_ERROR
        assert dispatcher.request_count == 1

    async def test_unpacks_into_original_calls(self, client, dispatcher):
        """Test unpacking yields the original calls and a trigger."""
        version = client.api.version()
        artist = client.api.artists.find_by_id(MILES["id"])
        missing = client.api.artists.find_by_id("")

        b = batch([version, artist, missing])
        first, second, third, run = b

        assert len(b) == 4
        assert (first, second, third) == (version, artist, missing)
        assert first is version and third is missing
        assert callable(run)

        assert await first == "0.1.0"
        assert await second == MILES
        with pytest.raises(CallError, match="id must be a non-empty string"):
            await third

    async def test_trigger_runs_the_batch(self, client, dispatcher):
        """Test calling the trailing trigger executes one exchange."""
        artist, missing, run = batch([
            client.api.artists.find_by_id(MILES["id"]),
            client.api.artists.find_by_id(""),
        ])

        await run()

        assert artist.state is CallState.SETTLED
        assert await artist == MILES
        with pytest.raises(CallError):
            await missing
        assert dispatcher.request_count == 1

    async def test_trigger_and_await_share_one_exchange(self, client, dispatcher):
        """Test the trigger and awaiting the batch are the same execution."""
        b = batch([client.api.version()])
        *_, run = b

        first = await run()
        second = await b

        assert first is second
        assert dispatcher.request_count == 1

    async def test_member_awaited_with_batch_shares_exchange(self, client, dispatcher):
        """Test a member awaited alongside its batch is not sent twice."""
        artist = client.api.artists.find_by_id(MILES["id"])

        outcomes, value = await asyncio.gather(batch([artist]), artist)

        assert value == MILES
        assert outcomes == [Outcome.fulfilled(MILES)]
        assert dispatcher.request_count == 1

    async def test_batch_supersedes_standalone_result(self, client, dispatcher):
        """Test an already-settled call still takes part in the batch."""
        calls = [client.api.artists.find_by_id(MILES["id"]), client.api.version()]
        assert await calls[0] == MILES

        result = await batch(calls)

        assert len(result) == 2
        assert dispatcher.request_count == 2
        assert await calls[0] == MILES
        assert dispatcher.request_count == 2

    async def test_standalone_calls_are_memoized(self, client, dispatcher):
        """Test awaiting the same call twice issues one request."""
        call = client.api.version()

        assert await call == "0.1.0"
        assert await call == "0.1.0"
        assert dispatcher.request_count == 1


@pytest.mark.asyncio
class TestBatchExchangeFailure:
    """A failed exchange rejects the batch and leaves members unsettled."""

    async def test_server_error_rejects_batch(self, client, dispatcher):
        dispatcher.fail_with = (502, "bad gateway")
        call = client.api.version()

        with pytest.raises(ServerError) as exc_info:
            await batch([call])

        assert exc_info.value.message == "The server responded in error."
        assert exc_info.value.cause == "bad gateway"
        assert call.state is CallState.PENDING

        dispatcher.fail_with = None
        assert await call == "0.1.0"
        assert dispatcher.request_count == 2

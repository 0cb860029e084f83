"""Client demonstrating batched vs sequential calls and a subscription.

Usage (separate terminal from server):
    uv run python examples/batching/client.py
"""

import asyncio
import time

from integro import CallError, batch, create_client

URL = "http://localhost:3000/"


async def run_sequential() -> dict:
    """Run with one HTTP request per call."""
    t0 = time.perf_counter()

    async with create_client(URL) as client:
        user = await client.api.users.authenticate("cookie-123")
        profile = await client.api.users.get_profile(user["id"])
        notifications = await client.api.users.get_notifications(user["id"])

    t1 = time.perf_counter()
    return {
        "user": user,
        "profile": profile,
        "notifications": notifications,
        "ms": (t1 - t0) * 1000,
        "requests": 3,
    }


async def run_batched() -> dict:
    """Run the independent calls in a single HTTP request."""
    t0 = time.perf_counter()

    async with create_client(URL) as client:
        user = await client.api.users.authenticate("cookie-123")

        profile, notifications, missing, run = batch([
            client.api.users.get_profile(user["id"]),
            client.api.users.get_notifications(user["id"]),
            client.api.users.get_profile("u_404"),
        ])
        await run()

        try:
            await missing
        except CallError as e:
            print(f"Expected failure inside the batch: {e.details}")

        result = {
            "user": user,
            "profile": await profile,
            "notifications": await notifications,
        }

    t1 = time.perf_counter()
    return {**result, "ms": (t1 - t0) * 1000, "requests": 2}


async def watch_clock(ticks: int = 3) -> None:
    """Subscribe to the clock stream for a few events."""
    received = asyncio.Queue()

    async with create_client(URL) as client:
        unsubscribe = await client.api["clock$"].subscribe(received.put_nowait)
        for _ in range(ticks):
            print(f"  tick: {await received.get()}")
        unsubscribe()


async def main() -> None:
    """Run both call styles and the subscription."""
    print("=" * 60)
    print("Integro - Batching Demo")
    print("=" * 60)

    print("\n--- Running sequential calls ---")
    sequential = await run_sequential()
    print(f"HTTP requests: {sequential['requests']}")
    print(f"Time: {sequential['ms']:.2f} ms")
    print(f"Authenticated user: {sequential['user']}")
    print(f"Profile: {sequential['profile']}")
    print(f"Notifications: {sequential['notifications']}")

    print("\n--- Running batched calls ---")
    batched = await run_batched()
    print(f"HTTP requests: {batched['requests']}")
    print(f"Time: {batched['ms']:.2f} ms")
    print(f"Profile: {batched['profile']}")
    print(f"Notifications: {batched['notifications']}")

    print("\n--- Subscribing to clock$ ---")
    await watch_clock()

    print("\n" + "=" * 60)
    print("Summary:")
    print(f"  Sequential: {sequential['requests']} request(s), {sequential['ms']:.2f} ms")
    print(f"  Batched:    {batched['requests']} request(s), {batched['ms']:.2f} ms")
    print("=" * 60)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except Exception as e:
        print(f"\n❌ Error: {e}")
        print("Make sure the server is running:")
        print("  uv run python examples/batching/server.py")

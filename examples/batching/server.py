"""Integro dispatcher demonstrating batching and subscriptions.

Serves msgpack calls on ``POST /`` and event pushes on ``GET /``
(WebSocket). A ticker pushes a ``clock$`` event every second to every
subscribed socket.

Usage:
    uv run python examples/batching/server.py
"""

import asyncio
import os
from datetime import datetime, timezone
from typing import Any

from aiohttp import WSMsgType, web

from integro import codec

USERS = {
    "cookie-123": {"id": "u_1", "name": "Ada Lovelace"},
    "cookie-456": {"id": "u_2", "name": "Alan Turing"},
}

PROFILES = {
    "u_1": {"id": "u_1", "bio": "Mathematician & first programmer"},
    "u_2": {"id": "u_2", "bio": "Mathematician & computer science pioneer"},
}

NOTIFICATIONS = {
    "u_1": ["Welcome to integro!", "You have 2 new followers"],
    "u_2": ["New feature: batching!", "Security tips for your account"],
}


async def authenticate(session_token: str) -> dict[str, str]:
    """Simulate authentication from a session cookie/token."""
    await asyncio.sleep(int(os.getenv("DELAY_AUTH_MS", "80")) / 1000.0)
    user = USERS.get(session_token)
    if not user:
        raise PermissionError("Invalid session token")
    return user


async def get_user_profile(user_id: str) -> dict[str, str]:
    await asyncio.sleep(int(os.getenv("DELAY_PROFILE_MS", "120")) / 1000.0)
    profile = PROFILES.get(user_id)
    if not profile:
        raise LookupError(f"User '{user_id}' not found")
    return profile


async def get_notifications(user_id: str) -> list[str]:
    await asyncio.sleep(int(os.getenv("DELAY_NOTIFS_MS", "120")) / 1000.0)
    return NOTIFICATIONS.get(user_id, [])


API: dict[str, Any] = {
    "users": {
        "authenticate": authenticate,
        "get_profile": get_user_profile,
        "get_notifications": get_notifications,
    },
}

CLOCK_PATH = ["clock$", "subscribe"]


async def invoke(envelope: dict[str, Any]) -> Any:
    target: Any = API
    for name in envelope["path"]:
        target = target[name]
    return await target(*envelope["args"])


async def handle_post(request: web.Request) -> web.Response:
    body = codec.unpack(await request.read())

    if isinstance(body, list):
        outcomes = []
        for envelope in body:
            try:
                outcomes.append({"status": "fulfilled", "value": await invoke(envelope)})
            except Exception as e:
                outcomes.append({"status": "rejected", "reason": [type(e).__name__, str(e)]})
        return web.Response(body=codec.pack(outcomes), content_type=codec.CONTENT_TYPE)

    try:
        value = await invoke(body)
    except Exception as e:
        payload, status = {"name": type(e).__name__, "message": str(e)}, 500
    else:
        payload, status = value, 200
    return web.Response(body=codec.pack(payload), status=status, content_type=codec.CONTENT_TYPE)


async def handle_ws(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    subscribers: set[web.WebSocketResponse] = request.app["subscribers"]

    try:
        async for msg in ws:
            if msg.type != WSMsgType.BINARY:
                continue
            message = codec.unpack(msg.data)
            if message.get("type") != "subscribe":
                continue
            if message.get("path") == CLOCK_PATH:
                subscribers.add(ws)
            else:
                await ws.send_bytes(codec.pack({
                    "type": "error",
                    "path": message.get("path"),
                    "message": "Unknown event stream",
                }))
    finally:
        subscribers.discard(ws)

    return ws


async def tick(app: web.Application) -> None:
    while True:
        await asyncio.sleep(1)
        frame = codec.pack({
            "type": "event",
            "path": CLOCK_PATH,
            "message": datetime.now(timezone.utc),
        })
        for ws in list(app["subscribers"]):
            await ws.send_bytes(frame)


async def main() -> None:
    """Run the dispatcher."""
    port = int(os.getenv("PORT", "3000"))

    app = web.Application()
    app["subscribers"] = set()
    app.router.add_post("/", handle_post)
    app.router.add_get("/", handle_ws)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    ticker = asyncio.create_task(tick(app))

    print(f"🚀 Integro dispatcher listening on http://localhost:{port}/")
    print()
    print("Available procedures:")
    print("  - users.authenticate(token) → {id, name}")
    print("  - users.get_profile(user_id) → {id, bio}")
    print("  - users.get_notifications(user_id) → [...]")
    print("  - clock$.subscribe(callback) → one event per second")
    print()
    print("Run client with: uv run python examples/batching/client.py")
    print("Press Ctrl+C to stop")

    try:
        await asyncio.Event().wait()
    finally:
        ticker.cancel()
        await runner.cleanup()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutting down...")

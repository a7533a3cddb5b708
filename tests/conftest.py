"""Shared test fixtures for the tvbot_client test suite.

WHY: Most modules under test need the same three things: a session
provider backed by a temporary state file, a scripted backend behind
httpx.MockTransport, and a fake timer scheduler so expiry and revert
timers can be driven without sleeping.

HOW: FakeScheduler records (due, callback) timers and fires them in due
order when advance() is called. ScriptedBackend maps (method, path) to
response factories and records every request it receives. run_api()
opens a BotApiClient on a MockTransport inside asyncio.run().

RULES:
- No test touches the network or the real home directory
- Response factories build a fresh httpx.Response per request
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from tvbot_client.api.client import BotApiClient
from tvbot_client.session import SessionIdentityProvider

BASE_URL = "http://backend.test"


# ---------------------------------------------------------------------------
# Fake timers
# ---------------------------------------------------------------------------


class FakeTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose clock only moves when advance() is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: List[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target


# ---------------------------------------------------------------------------
# Scripted backend
# ---------------------------------------------------------------------------


def respond(
    status: int = 200,
    json: Any = None,
    headers: Optional[Dict[str, str]] = None,
    content: Optional[bytes] = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """Build a response factory for ScriptedBackend routes."""

    def _factory(request: httpx.Request) -> httpx.Response:
        if content is not None:
            return httpx.Response(status, content=content, headers=headers)
        if json is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=json, headers=headers)

    return _factory


def network_failure(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


class ScriptedBackend:
    """MockTransport handler answering from a (method, path) route table.

    A route is a response factory, or a list of factories consumed in
    order (the last one repeats).
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
        self.routes: Dict[Tuple[str, str], Any] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes[(request.method, request.url.path)]
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        return route(request)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


def run_api(
    session: SessionIdentityProvider,
    handler: Callable[[httpx.Request], Any],
    fn: Callable[[BotApiClient], Any],
) -> Any:
    """Run fn(api) inside asyncio.run() with a BotApiClient on MockTransport."""

    async def _run():
        async with BotApiClient(
            session,
            base_url=BASE_URL,
            transport=httpx.MockTransport(handler),
        ) as api:
            return await fn(api)

    return asyncio.run(_run())


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------

FLAT_DASHBOARD: Dict[str, Any] = {
    "botUsername": "demo_bot",
    "alertType": "group",
    "authStatus": {
        "type": "warning",
        "message": "Bot is not authenticated. Send <code>/auth 1a2b3c4d</code> to @demo_bot.",
    },
    "webhookUrl": "https://backend.test/webhook/secret-one",
    "recentAlerts": [
        {"createdAt": "2026-10-18T09:30:00Z", "sentSuccessfully": False, "webhookData": "BTCUSD crossed 60000"},
        {"createdAt": "2026-10-18T08:00:00Z", "sentSuccessfully": True, "webhookData": "ETHUSD RSI > 70"},
    ],
}

NESTED_DASHBOARD: Dict[str, Any] = {
    "user": {
        "user_id": "u42",
        "bot_username": "demo_bot",
        "alert_type": "group",
        "is_authenticated": False,
        "auth_command": "/auth 1a2b3c4d",
        "webhook_url": "https://backend.test/webhook/secret-one",
    },
    "alerts": [
        {"created_at": "2026-10-18T08:00:00+00:00", "sent_successfully": True, "webhook_data": "ETHUSD RSI > 70"},
        {"created_at": "2026-10-18T09:30:00+00:00", "sent_successfully": False, "webhook_data": "BTCUSD crossed 60000"},
    ],
}


def dashboard_payload(**overrides: Any) -> Dict[str, Any]:
    data = dict(FLAT_DASHBOARD)
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "state.json"


@pytest.fixture
def session(state_file):
    """A session provider backed by a temporary state file."""
    return SessionIdentityProvider(state_file)


@pytest.fixture
def scheduler():
    return FakeScheduler()

"""Async HTTP transport for the bot backend.

WHY: Setup, dashboard retrieval and secret rotation all talk to the same
backend with the same rules: carry the session identity, adopt a rotated
identity, and classify failures the same way. This module keeps those
rules in one place so the flows never touch HTTP details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. BotApiClient is an
async context manager — enter it to open the connection pool, exit to
close it. request() is the single choke point; the typed operations
(setup, fetch_dashboard, regenerate_secret) build on it and return
normalized models from api/models.py.

RULES:
- Always use the async context manager (async with BotApiClient(...) as api:)
- The session header is built per request from the SessionIdentityProvider;
  shared client headers are never mutated
- A rotated session header is adopted before request() returns
- Network failure, non-2xx status and malformed body raise distinct
  TransportError subclasses; 404 raises NotFoundError
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from tvbot_client.api.models import (
    BotConfigRequest,
    DashboardPayload,
    FlashMessage,
    SetupResult,
    parse_flash_messages,
)
from tvbot_client.config import REGENERATE_METHOD, SESSION_HEADER, load_base_url
from tvbot_client.session import SessionIdentityProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TransportError(Exception):
    """Base class for every failure raised by BotApiClient.

    WHY: Flow boundaries catch one type and convert it to a flash message
    or an error view; nothing transport-related reaches rendering.
    """


class NetworkError(TransportError):
    """Raised when no response was received (DNS, connect, read failure)."""


class ServerError(TransportError):
    """Raised when the backend answers with a non-2xx status.

    WHY: Callers show the server's own explanation when it sent one, and
    replay any flash messages attached to the failure.

    HOW: Wraps the status code plus the ``error`` text and ``flashMessages``
    parsed from the JSON body when present.

    RULES:
    - message is None when the body carried no ``error`` string
    - flash_messages is empty when the body carried none
    """

    def __init__(
        self,
        status_code: int,
        message: str | None = None,
        flash_messages: list[FlashMessage] | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.flash_messages = flash_messages or []
        super().__init__(
            "Backend error {}: {}".format(status_code, message or "no message")
        )


class NotFoundError(ServerError):
    """Raised on 404 — the subject does not exist."""


class MalformedResponseError(TransportError):
    """Raised when a 2xx body is not the JSON object the contract promises.

    RULES:
    - flash_messages holds any ``flashMessages`` the body did carry, so a
      caller can still show them
    """

    def __init__(
        self,
        message: str,
        flash_messages: list[FlashMessage] | None = None,
    ) -> None:
        self.flash_messages = flash_messages or []
        super().__init__(message)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class BotApiClient:
    """Async client for the bot backend.

    WHY: Provides a typed interface for the three backend workflows and
    owns the session propagation contract.

    HOW: Wraps httpx.AsyncClient. request() attaches X-Session-ID, absorbs
    a rotated identity from the response, then classifies the outcome.

    RULES:
    - Use as: async with BotApiClient(session) as api: ...
    - base_url defaults to config.API_BASE_URL
    - transport is for tests (httpx.MockTransport / httpx.ASGITransport)
    """

    def __init__(
        self,
        session: SessionIdentityProvider,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        regenerate_method: str | None = None,
    ) -> None:
        self._session = session
        self._base_url = load_base_url(base_url)
        self._transport = transport
        self._regenerate_method = (regenerate_method or REGENERATE_METHOD).upper()
        self._client: httpx.AsyncClient | None = None

    @property
    def session(self) -> SessionIdentityProvider:
        return self._session

    async def __aenter__(self) -> BotApiClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            transport=self._transport,
            timeout=httpx.Timeout(60.0, connect=15.0),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "BotApiClient must be used as an async context manager: "
                "async with BotApiClient(session) as api: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        json: dict | None = None,
    ) -> httpx.Response:
        """Send one request and return the 2xx response.

        WHY: Every backend call shares session propagation and error
        classification; this is the only place they are implemented.

        HOW: Reads the current identity, sends it as X-Session-ID, and
        adopts any X-Session-ID on the response before inspecting the
        status. Non-2xx responses are converted to ServerError (or
        NotFoundError for 404) with the body's ``error`` and
        ``flashMessages`` when the body is JSON.

        RULES:
        - Session rotation is applied for error responses too
        - httpx.TransportError becomes NetworkError
        - Returns the httpx.Response for 2xx statuses only

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            json: Optional JSON body.

        Returns:
            The successful httpx.Response.
        """
        client = self._ensure_client()
        headers = {SESSION_HEADER: self._session.get_or_create()}

        try:
            resp = await client.request(method, path, json=json, headers=headers)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError(str(exc)) from exc

        rotated = resp.headers.get(SESSION_HEADER)
        if rotated:
            self._session.replace(rotated)

        if resp.is_success:
            logger.debug("%s %s -> %s", method, path, resp.status_code)
            return resp

        message, flashes = _error_details(resp)
        logger.info("%s %s -> %s (%s)", method, path, resp.status_code, message)
        if resp.status_code == 404:
            raise NotFoundError(resp.status_code, message, flashes)
        raise ServerError(resp.status_code, message, flashes)

    async def _request_json(
        self,
        method: str,
        path: str,
        json: dict | None = None,
    ) -> dict:
        resp = await self.request(method, path, json=json)
        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(
                "{} {} returned a non-JSON body".format(method, path)
            ) from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(
                "{} {} returned JSON that is not an object".format(method, path)
            )
        return data

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def setup(self, config: BotConfigRequest) -> SetupResult:
        """Submit a bot credential and delivery target; return the new subject."""
        data = await self._request_json("POST", "/setup", json=config.to_payload())
        try:
            return SetupResult.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError(
                "Invalid setup response: {}".format(exc),
                _body_flashes(data),
            ) from exc

    async def fetch_dashboard(self, subject_id: str) -> DashboardPayload:
        """Fetch and normalize the dashboard for subject_id."""
        data = await self._request_json(
            "GET", "/dashboard/{}".format(quote(subject_id, safe=""))
        )
        try:
            return DashboardPayload.from_dict(subject_id, data)
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError(
                "Invalid dashboard response: {}".format(exc)
            ) from exc

    async def regenerate_secret(self, subject_id: str) -> list[FlashMessage]:
        """Rotate the webhook secret for subject_id; return server notices."""
        resp = await self.request(
            self._regenerate_method, "/regenerate/{}".format(quote(subject_id, safe=""))
        )
        # An empty 2xx body is a successful rotation with no notices.
        if not resp.content:
            return []
        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError("regenerate returned a non-JSON body") from exc
        if not isinstance(data, dict):
            return []
        try:
            return parse_flash_messages(data.get("flashMessages"))
        except TypeError as exc:
            raise MalformedResponseError(str(exc)) from exc


def _error_details(resp: httpx.Response) -> tuple[str | None, list[FlashMessage]]:
    """Extract ``error`` and ``flashMessages`` from an error body, if JSON."""
    try:
        data: Any = resp.json()
    except ValueError:
        return None, []
    if not isinstance(data, dict):
        return None, []
    error = data.get("error")
    message = error if isinstance(error, str) and error else None
    return message, _body_flashes(data)


def _body_flashes(data: dict) -> list[FlashMessage]:
    try:
        return parse_flash_messages(data.get("flashMessages"))
    except TypeError:
        return []

"""Shared pieces of the setup, dashboard and rotation flows."""

from __future__ import annotations

import inspect
from typing import Any

from tvbot_client.api.client import MalformedResponseError, ServerError, TransportError
from tvbot_client.api.models import FlashMessage


class ValidationError(ValueError):
    """Raised when a flow is asked to act on invalid input or in the wrong state.

    WHY: Empty required fields and out-of-order actions are caught at the
    point of submission so nothing invalid is ever sent to the backend.

    RULES:
    - Raised before any request is made
    - Leaves the flow in the state it was in
    """


def server_message(exc: TransportError) -> str | None:
    """The backend's own ``error`` text for exc, if it sent one."""
    if isinstance(exc, ServerError):
        return exc.message
    return None


def server_flashes(exc: TransportError) -> list[FlashMessage]:
    """Messages the backend attached to a failed or malformed response."""
    if isinstance(exc, (ServerError, MalformedResponseError)):
        return list(exc.flash_messages)
    return []


async def maybe_await(value: Any) -> Any:
    """Await value if it is awaitable; callbacks may be sync or async."""
    if inspect.isawaitable(value):
        return await value
    return value

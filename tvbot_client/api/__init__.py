"""Backend API package — async HTTP interface to the bot backend.

WHY: Setup, dashboard and secret rotation share one backend contract:
session header propagation, rotated-identity adoption, and a common
failure taxonomy. This package keeps that contract behind one client.

HOW: BotApiClient (client.py) wraps httpx.AsyncClient. Responses are
normalized into the frozen dataclasses defined in models.py.

RULES:
- All HTTP calls go through BotApiClient (no direct httpx usage elsewhere)
- Flows catch TransportError subclasses; nothing else escapes
"""

from tvbot_client.api.client import (
    BotApiClient,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    ServerError,
    TransportError,
)
from tvbot_client.api.models import (
    AlertRecord,
    BotConfigRequest,
    DashboardState,
    DeliveryTarget,
    FlashKind,
    FlashMessage,
)

__all__ = [
    "AlertRecord",
    "BotApiClient",
    "BotConfigRequest",
    "DashboardState",
    "DeliveryTarget",
    "FlashKind",
    "FlashMessage",
    "MalformedResponseError",
    "NetworkError",
    "NotFoundError",
    "ServerError",
    "TransportError",
]

"""Client flows: setup, dashboard and secret rotation.

WHY: These are the only parts of the client with real state transitions.
Each flow owns its own phase and converts transport failures into flash
messages or error views at its boundary.

RULES:
- Flows talk to the backend only through BotApiClient
- Flows write user-facing outcomes only into the FlashMessageQueue
"""

from tvbot_client.flows.base import ValidationError
from tvbot_client.flows.dashboard import (
    AuthenticationTimeoutError,
    DashboardFlow,
    DashboardPhase,
)
from tvbot_client.flows.rotation import SecretRotation
from tvbot_client.flows.setup import SetupFlow, SetupPhase

__all__ = [
    "AuthenticationTimeoutError",
    "DashboardFlow",
    "DashboardPhase",
    "SecretRotation",
    "SetupFlow",
    "SetupPhase",
    "ValidationError",
]

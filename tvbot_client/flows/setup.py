"""Setup flow: submit a bot credential and delivery target.

WHY: Connecting a bot is the entry point of the whole client. The flow
has to keep the user's input honest (no empty credential reaches the
backend), report every message the backend sends on failure, and hand the
newly configured subject to the dashboard.

HOW: SetupFlow walks Idle → Submitting → Succeeded | Failed → Idle.
On success the subject id is passed to on_success (the app controller
navigates to /dashboard/{subjectId}). On failure the server's flash list is
enqueued verbatim, followed by one error message: the server's error
text, or a general failure message when it sent none.

RULES:
- An empty or whitespace-only credential raises ValidationError
- An unknown delivery target raises ValidationError
- submit() while Submitting raises ValidationError
- Transport failures never escape submit(); they become flash messages
- A 2xx response without a subject id is a failure
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from typing import Any, Optional, Union

from tvbot_client.api.client import BotApiClient, TransportError
from tvbot_client.api.models import BotConfigRequest, DeliveryTarget
from tvbot_client.flash import FlashMessageQueue
from tvbot_client.flows.base import (
    ValidationError,
    maybe_await,
    server_flashes,
    server_message,
)

logger = logging.getLogger(__name__)

SETUP_SUCCESS_MESSAGE = "Bot configured successfully!"
SETUP_FAILURE_MESSAGE = "An error occurred while setting up the bot"


class SetupPhase(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def build_request(
    credential: str,
    delivery_target: Union[DeliveryTarget, str] = DeliveryTarget.PERSONAL,
) -> BotConfigRequest:
    """Validate form input and build the immutable request."""
    credential = (credential or "").strip()
    if not credential:
        raise ValidationError("Bot token is required")
    try:
        target = DeliveryTarget(delivery_target)
    except ValueError:
        choices = ", ".join(t.value for t in DeliveryTarget)
        raise ValidationError(
            "Unknown delivery target {!r} (choose one of: {})".format(
                delivery_target, choices
            )
        )
    return BotConfigRequest(credential=credential, delivery_target=target)


class SetupFlow:
    """State machine for configuring a bot."""

    def __init__(
        self,
        api: BotApiClient,
        flash: FlashMessageQueue,
        on_success: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self._api = api
        self._flash = flash
        self._on_success = on_success
        self.phase = SetupPhase.IDLE
        self.subject_id: Optional[str] = None
        self.last_error: Optional[TransportError] = None

    async def submit(
        self,
        credential: str,
        delivery_target: Union[DeliveryTarget, str] = DeliveryTarget.PERSONAL,
    ) -> Optional[str]:
        """Submit the form. Returns the new subject id, or None on failure."""
        if self.phase is SetupPhase.SUBMITTING:
            raise ValidationError("A setup request is already in progress")
        request = build_request(credential, delivery_target)

        self.phase = SetupPhase.SUBMITTING
        self.last_error = None
        logger.info("Submitting setup (delivery target: %s)", request.delivery_target.value)

        try:
            result = await self._api.setup(request)
        except TransportError as exc:
            self._fail(exc)
            return None

        self.phase = SetupPhase.SUCCEEDED
        self.subject_id = result.subject_id
        if result.flash_messages:
            self._flash.extend(result.flash_messages)
        else:
            self._flash.success(SETUP_SUCCESS_MESSAGE)

        if self._on_success is not None:
            await maybe_await(self._on_success(result.subject_id))
        return result.subject_id

    def _fail(self, exc: TransportError) -> None:
        self.phase = SetupPhase.FAILED
        self.last_error = exc
        logger.warning("Setup failed: %s", exc)

        self._flash.extend(server_flashes(exc))
        self._flash.error(server_message(exc) or SETUP_FAILURE_MESSAGE)

        self.phase = SetupPhase.IDLE

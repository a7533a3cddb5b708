"""Dashboard flow: fetch and hold the authoritative DashboardState.

WHY: The dashboard shows whether the bot is authenticated in chat, the
command to authenticate it, the webhook URL, and recent alerts. Those
values must always come from one backend response; a re-fetch that is
overtaken by a newer one must never overwrite the newer result.

HOW: DashboardFlow walks Idle → Loading → Loaded | NotFound | Errored.
Every fetch takes a generation number; when the response arrives it is
applied only if no later fetch has started. Loaded replaces the whole
DashboardState. poll_until_authenticated() re-fetches with exponential
backoff until the bot reports authenticated.

RULES:
- 404 → NotFound with "Subject not found"; no flash message is enqueued
- Any other failure → Errored with "An error occurred"
- Loading a different subject drops the previous subject's state
- invalidate() drops the current state (used after secret rotation so an
  old webhook URL is never shown while the new one loads)
- Server flash messages from a successful fetch are enqueued
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Optional

from tvbot_client.api.client import BotApiClient, NotFoundError, TransportError
from tvbot_client.api.models import DashboardState
from tvbot_client.config import (
    AUTH_POLL_BACKOFF_FACTOR,
    AUTH_POLL_INITIAL_INTERVAL_S,
    AUTH_POLL_MAX_INTERVAL_S,
    AUTH_POLL_TIMEOUT_S,
)
from tvbot_client.flash import FlashMessageQueue
from tvbot_client.flows.base import ValidationError

logger = logging.getLogger(__name__)

SUBJECT_NOT_FOUND_MESSAGE = "Subject not found"
DASHBOARD_ERROR_MESSAGE = "An error occurred"


class DashboardPhase(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    NOT_FOUND = "not_found"
    ERRORED = "errored"


class AuthenticationTimeoutError(TimeoutError):
    """Raised when the bot is still unauthenticated after the polling timeout."""


class DashboardFlow:
    """State machine owning the DashboardState of one subject at a time.

    RULES:
    - state is replaced wholesale, never patched
    - Only the response of the most recent fetch is applied
    - error_message is set for NotFound and Errored, None otherwise
    """

    def __init__(
        self,
        api: BotApiClient,
        flash: FlashMessageQueue,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._api = api
        self._flash = flash
        self._on_change = on_change
        self._generation = 0
        self.phase = DashboardPhase.IDLE
        self.subject_id: Optional[str] = None
        self.state: Optional[DashboardState] = None
        self.error_message: Optional[str] = None

    @property
    def generation(self) -> int:
        """Number of fetches started so far."""
        return self._generation

    async def load(self, subject_id: str) -> DashboardPhase:
        """Fetch the dashboard for subject_id and apply the result if current."""
        if subject_id != self.subject_id:
            self.state = None
        self.subject_id = subject_id
        self._generation += 1
        generation = self._generation
        self.phase = DashboardPhase.LOADING
        self.error_message = None
        self._changed()

        try:
            payload = await self._api.fetch_dashboard(subject_id)
        except NotFoundError:
            if self._is_stale(generation):
                return self.phase
            logger.info("Dashboard subject %s not found", subject_id)
            self.state = None
            self.phase = DashboardPhase.NOT_FOUND
            self.error_message = SUBJECT_NOT_FOUND_MESSAGE
        except TransportError as exc:
            if self._is_stale(generation):
                return self.phase
            logger.warning("Dashboard fetch for %s failed: %s", subject_id, exc)
            self.phase = DashboardPhase.ERRORED
            self.error_message = DASHBOARD_ERROR_MESSAGE
        else:
            if self._is_stale(generation):
                return self.phase
            self.state = payload.state
            self.phase = DashboardPhase.LOADED
            self._flash.extend(payload.flash_messages)

        self._changed()
        return self.phase

    async def reload(self) -> DashboardPhase:
        """Re-fetch the current subject."""
        if self.subject_id is None:
            raise ValidationError("No dashboard subject to reload")
        return await self.load(self.subject_id)

    def invalidate(self) -> None:
        """Drop the current state so it cannot be shown as authoritative."""
        self.state = None
        self._changed()

    async def poll_until_authenticated(
        self,
        timeout: float = AUTH_POLL_TIMEOUT_S,
        initial_interval: float = AUTH_POLL_INITIAL_INTERVAL_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> Optional[DashboardState]:
        """Re-fetch until the bot is authenticated in chat.

        WHY: Authentication happens out of band (the user sends the auth
        command to the bot). The dashboard only learns about it by
        fetching again.

        HOW: Exponential backoff — starts at initial_interval, grows by
        1.5x per poll, capped at 15s.

        RULES:
        - Requires a Loaded dashboard on entry; returns None otherwise
        - Returns the authenticated DashboardState
        - Returns None if a fetch leaves the Loaded phase
        - Raises AuthenticationTimeoutError once timeout seconds elapse

        Args:
            timeout: Maximum seconds to keep polling.
            initial_interval: First delay between fetches.
            sleep: Awaitable sleep function (injectable for tests).
            clock: Monotonic clock (injectable for tests).

        Returns:
            The authenticated DashboardState, or None.
        """
        interval = initial_interval
        start = clock()

        while True:
            if self.phase is not DashboardPhase.LOADED or self.state is None:
                return None
            if self.state.authenticated:
                return self.state

            elapsed = clock() - start
            if elapsed > timeout:
                raise AuthenticationTimeoutError(
                    "Bot @{} was not authenticated within {:.0f}s".format(
                        self.state.bot_username, timeout
                    )
                )

            await sleep(interval)
            interval = min(interval * AUTH_POLL_BACKOFF_FACTOR, AUTH_POLL_MAX_INTERVAL_S)
            await self.reload()

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug(
                "Discarding stale dashboard response (generation %d, current %d)",
                generation,
                self._generation,
            )
            return True
        return False

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

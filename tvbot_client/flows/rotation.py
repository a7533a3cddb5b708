"""Secret rotation: invalidate the webhook secret and load the new URL.

WHY: Rotating the secret makes every previously copied webhook URL stop
working, so it needs explicit confirmation, and the dashboard must then
show the new URL from a fresh fetch, never a locally patched one.

HOW: SecretRotation asks the confirm callback, calls the backend, and on
success drops the dashboard state and re-fetches it. On failure the
dashboard is left exactly as it was.

RULES:
- Requires a Loaded dashboard, else ValidationError
- Declined confirmation sends nothing and returns False
- Failure enqueues exactly one error flash message
- Success enqueues the server's notices (or a default) and reloads
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from tvbot_client.api.client import BotApiClient, TransportError
from tvbot_client.api.models import FlashKind
from tvbot_client.flash import FlashMessageQueue
from tvbot_client.flows.base import ValidationError, maybe_await, server_flashes, server_message
from tvbot_client.flows.dashboard import DashboardFlow, DashboardPhase

logger = logging.getLogger(__name__)

ROTATION_SUCCESS_MESSAGE = "Secret key regenerated successfully!"
ROTATION_FAILURE_MESSAGE = "Failed to regenerate secret key"
ROTATION_CONFIRM_PROMPT = (
    "Regenerating the secret invalidates your current webhook URL. "
    "TradingView alerts using it will stop being delivered. Continue?"
)


class SecretRotation:
    def __init__(
        self,
        api: BotApiClient,
        dashboard: DashboardFlow,
        flash: FlashMessageQueue,
    ) -> None:
        self._api = api
        self._dashboard = dashboard
        self._flash = flash
        self._in_progress = False

    async def rotate(self, confirm: Callable[[], Any]) -> bool:
        """Rotate the secret after confirmation. Returns True on success."""
        state = self._dashboard.state
        if self._dashboard.phase is not DashboardPhase.LOADED or state is None:
            raise ValidationError("Secret rotation requires a loaded dashboard")
        if self._in_progress:
            raise ValidationError("A secret rotation is already in progress")

        self._in_progress = True
        try:
            if not await maybe_await(confirm()):
                logger.info("Secret rotation for %s cancelled by user", state.subject_id)
                return False

            try:
                notices = await self._api.regenerate_secret(state.subject_id)
            except TransportError as exc:
                logger.warning("Secret rotation for %s failed: %s", state.subject_id, exc)
                self._flash.error(_failure_text(exc))
                return False

            if notices:
                self._flash.extend(notices)
            else:
                self._flash.success(ROTATION_SUCCESS_MESSAGE)

            self._dashboard.invalidate()
            await self._dashboard.reload()
            return True
        finally:
            self._in_progress = False


def _failure_text(exc: TransportError) -> str:
    message = server_message(exc)
    if message:
        return message
    for notice in server_flashes(exc):
        if notice.kind is FlashKind.ERROR:
            return notice.text
    return ROTATION_FAILURE_MESSAGE

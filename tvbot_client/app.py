"""Application controller: composes the flows behind a small router.

WHY: The client has three screens (setup, dashboard, page-not-found) and
one handoff between them: a successful setup opens the new subject's
dashboard. Keeping location handling in one place means the dashboard is
always reachable from a bookmarkable location, so restarting the client
never loses the association with a configured bot.

HOW: BotClientApp owns one FlashMessageQueue and the three flows, all
sharing one BotApiClient. open(location) routes "/" to setup and
"/dashboard/{subjectId}" to a dashboard load; anything else is the
page-not-found view. SetupFlow's success callback navigates through open().

RULES:
- The dashboard subject id is read from the location path only
- Query strings are ignored for routing
- render() delegates to views.render_app()
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Callable
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

from tvbot_client.api.client import BotApiClient
from tvbot_client.clipboard import ClipboardFeedback
from tvbot_client.flash import FlashMessageQueue
from tvbot_client.flows.dashboard import DashboardFlow, DashboardPhase
from tvbot_client.flows.rotation import SecretRotation
from tvbot_client.flows.setup import SetupFlow
from tvbot_client.views import render_app

logger = logging.getLogger(__name__)

_DASHBOARD_PATH = re.compile(r"^/dashboard/([^/]+)/?$")


class View(str, enum.Enum):
    SETUP = "setup"
    DASHBOARD = "dashboard"
    PAGE_NOT_FOUND = "page_not_found"


def dashboard_location(subject_id: str) -> str:
    """Bookmarkable location of a subject's dashboard."""
    return "/dashboard/{}".format(quote(subject_id, safe=""))


class BotClientApp:
    """Top-level client: router plus the setup, dashboard and rotation flows."""

    def __init__(
        self,
        api: BotApiClient,
        flash: Optional[FlashMessageQueue] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.api = api
        self.flash = flash if flash is not None else FlashMessageQueue(on_change=on_change)
        self.dashboard = DashboardFlow(api, self.flash, on_change=on_change)
        self.setup = SetupFlow(api, self.flash, on_success=self.open_dashboard)
        self.rotation = SecretRotation(api, self.dashboard, self.flash)
        self.location = "/"
        self.view = View.SETUP

    async def open(self, location: str) -> View:
        """Route to the screen for location, loading data as needed."""
        path = urlsplit(location).path or "/"
        self.location = location

        if path == "/":
            self.view = View.SETUP
            return self.view

        match = _DASHBOARD_PATH.match(path)
        if match is None:
            logger.info("No route for %s", location)
            self.view = View.PAGE_NOT_FOUND
            return self.view

        self.view = View.DASHBOARD
        await self.dashboard.load(unquote(match.group(1)))
        return self.view

    async def open_dashboard(self, subject_id: str) -> View:
        return await self.open(dashboard_location(subject_id))

    def copy_webhook(self, feedback: ClipboardFeedback) -> bool:
        """Copy the displayed webhook URL; False when there is none or copy failed."""
        state = self.dashboard.state
        if self.dashboard.phase is not DashboardPhase.LOADED or state is None:
            return False
        if not state.webhook_url:
            return False
        return feedback.copy(state.webhook_url)

    def render(self, copy_label: Optional[str] = None) -> str:
        return render_app(self, copy_label=copy_label)

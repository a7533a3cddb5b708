"""Plain-text views for the terminal front end.

WHY: The CLI needs to show the same screens the client is built around:
flash messages, the dashboard (bot, auth status, webhook URL, recent
alerts), loading and error views. Keeping the text builders here keeps
cli.py focused on argument handling.

HOW: Each function takes plain data and returns a string. render_app()
picks the screen from the app's current view and dashboard phase.

RULES:
- All functions return str and have no side effects
- Auth banner HTML from the backend is reduced to plain text
- Recent alerts are shown most-recent-first, limited to the configured N
- A loading dashboard with a previous state renders that state whole
"""

from __future__ import annotations

import html
import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, List, Optional

from tvbot_client.api.models import AlertRecord, DashboardState, FlashKind, FlashMessage
from tvbot_client.config import RECENT_ALERTS_LIMIT
from tvbot_client.flows.dashboard import DashboardPhase

if TYPE_CHECKING:
    from tvbot_client.app import BotClientApp

APP_TITLE = "TradingView Bot"

_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(text: str) -> str:
    """Drop tags and unescape entities from a server-supplied banner."""
    return html.unescape(_TAG_RE.sub("", text or "")).strip()


def render_flash(messages: Iterable[FlashMessage]) -> str:
    lines = []
    for index, message in enumerate(messages, start=1):
        tag = "error" if message.kind is FlashKind.ERROR else "ok"
        lines.append("{}. [{}] {}".format(index, tag, message.text))
    return "\n".join(lines)


def _format_timestamp(ts: Optional[datetime]) -> str:
    if ts is None:
        return "unknown time"
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def render_alerts(alerts: Iterable[AlertRecord], limit: int = RECENT_ALERTS_LIMIT) -> str:
    """Most recent alerts first, at most limit of them."""
    recent = list(alerts)[-limit:] if limit > 0 else []
    if not recent:
        return "  No alerts yet"
    lines = []
    for alert in reversed(recent):
        mark = "+" if alert.delivered else "x"
        lines.append(
            "  {} {} - {}".format(mark, _format_timestamp(alert.timestamp), alert.payload_summary)
        )
    return "\n".join(lines)


def render_auth_status(state: DashboardState) -> str:
    if state.auth_status_message:
        text = strip_html(state.auth_status_message)
    elif state.authenticated:
        text = "Bot is authenticated. Alerts will be delivered."
    elif state.auth_command:
        text = "Bot is not authenticated yet. Send {} to @{} in your chat.".format(
            state.auth_command, state.bot_username
        )
    else:
        text = "Bot is not authenticated yet."
    return "[{}] {}".format(state.auth_status_kind, text)


def render_dashboard(
    state: DashboardState,
    copy_label: Optional[str] = None,
    alerts_limit: int = RECENT_ALERTS_LIMIT,
) -> str:
    url_line = "  {}".format(state.webhook_url)
    if copy_label:
        url_line += "  [{}]".format(copy_label)

    lines: List[str] = [
        "Bot: @{}".format(state.bot_username),
    ]
    if state.delivery_target:
        lines.append("Delivery target: {}".format(state.delivery_target))
    lines.extend([
        render_auth_status(state),
        "",
        "Webhook URL for TradingView:",
        url_line,
        "Copy this URL and use it in your TradingView alert webhook settings.",
        "",
        "Recent Alerts",
        render_alerts(state.recent_alerts, alerts_limit),
    ])
    return "\n".join(lines)


def render_message_page(title: str) -> str:
    return "{}\n\nGo Home: /".format(title)


def render_setup_form() -> str:
    return "\n".join([
        "Connect Telegram Bot",
        "  Bot Token: get your bot token from @BotFather on Telegram",
        "  Alert Type: personal | group | channel",
    ])


def render_app(app: BotClientApp, copy_label: Optional[str] = None) -> str:
    """Render the whole screen for the app's current view."""
    from tvbot_client.app import View

    sections = [APP_TITLE]
    flashes = render_flash(app.flash.messages)
    if flashes:
        sections.append(flashes)

    if app.view is View.PAGE_NOT_FOUND:
        sections.append(render_message_page("Page Not Found"))
    elif app.view is View.SETUP:
        sections.append(render_setup_form())
    else:
        sections.append(_render_dashboard_view(app, copy_label))
    return "\n\n".join(sections)


def _render_dashboard_view(app: BotClientApp, copy_label: Optional[str]) -> str:
    flow = app.dashboard
    if flow.phase in (DashboardPhase.NOT_FOUND, DashboardPhase.ERRORED):
        return render_message_page(flow.error_message or "An error occurred")
    if flow.state is None:
        return "Loading..."
    return render_dashboard(flow.state, copy_label=copy_label)

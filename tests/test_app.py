"""Tests for the BotClientApp router and the plain-text views.

WHY: Locations are how a configured bot stays reachable across restarts.
Routing has to send each location to the right screen, and the rendered
screens have to show what the flows hold, nothing stale.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from conftest import FLAT_DASHBOARD, ScriptedBackend, network_failure, respond, run_api
from tvbot_client.api.models import AlertRecord, DashboardState, FlashMessage
from tvbot_client.app import BotClientApp, View, dashboard_location
from tvbot_client.clipboard import ClipboardFeedback, ClipboardUnavailableError, CopyControl
from tvbot_client.flash import FlashMessageQueue
from tvbot_client.views import (
    APP_TITLE,
    render_alerts,
    render_auth_status,
    render_dashboard,
    render_flash,
    strip_html,
)


def _open(session, scheduler, backend, location):
    async def _go(api):
        app = BotClientApp(api, flash=FlashMessageQueue(scheduler=scheduler))
        await app.open(location)
        return app

    return run_api(session, backend, _go)


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class TestRouting:
    def test_root_is_setup(self, session, scheduler):
        backend = ScriptedBackend()
        app = _open(session, scheduler, backend, "/")
        assert app.view is View.SETUP
        assert backend.requests == []

    def test_dashboard_location_loads_subject(self, session, scheduler):
        backend = ScriptedBackend({("GET", "/dashboard/u42"): respond(json=FLAT_DASHBOARD)})
        app = _open(session, scheduler, backend, "/dashboard/u42")
        assert app.view is View.DASHBOARD
        assert app.dashboard.subject_id == "u42"
        assert app.dashboard.state.bot_username == "demo_bot"

    def test_query_string_is_ignored(self, session, scheduler):
        backend = ScriptedBackend({("GET", "/dashboard/u42"): respond(json=FLAT_DASHBOARD)})
        app = _open(session, scheduler, backend, "/dashboard/u42?user_id=other")
        assert app.dashboard.subject_id == "u42"

    def test_trailing_slash(self, session, scheduler):
        backend = ScriptedBackend({("GET", "/dashboard/u42"): respond(json=FLAT_DASHBOARD)})
        assert _open(session, scheduler, backend, "/dashboard/u42/").view is View.DASHBOARD

    @pytest.mark.parametrize("location", ["/settings", "/dashboard", "/dashboard/", "/dashboard/u42/extra"])
    def test_unknown_locations(self, session, scheduler, location):
        backend = ScriptedBackend()
        app = _open(session, scheduler, backend, location)
        assert app.view is View.PAGE_NOT_FOUND
        assert backend.requests == []

    def test_dashboard_location_is_quoted(self):
        assert dashboard_location("a/b c") == "/dashboard/a%2Fb%20c"

    def test_setup_success_opens_dashboard(self, session, scheduler):
        backend = ScriptedBackend({
            ("POST", "/setup"): respond(json={
                "userId": "u42",
                "flashMessages": [{"message": "Bot @demo verified", "type": "success"}],
            }),
            ("GET", "/dashboard/u42"): respond(json=FLAT_DASHBOARD),
        })

        async def _go(api):
            app = BotClientApp(api, flash=FlashMessageQueue(scheduler=scheduler))
            await app.setup.submit("123:ABC", "group")
            return app

        app = run_api(session, backend, _go)
        assert app.location == "/dashboard/u42"
        assert app.view is View.DASHBOARD
        assert [m.text for m in app.flash.messages] == ["Bot @demo verified"]
        assert len(backend.calls("GET", "/dashboard/u42")) == 1


# ---------------------------------------------------------------------------
# Copy webhook
# ---------------------------------------------------------------------------


class TestCopyWebhook:
    def test_copies_displayed_url(self, session, scheduler):
        backend = ScriptedBackend({("GET", "/dashboard/u42"): respond(json=FLAT_DASHBOARD)})
        app = _open(session, scheduler, backend, "/dashboard/u42")
        writer = MagicMock()
        feedback = ClipboardFeedback(CopyControl(), writer, scheduler=scheduler)

        assert app.copy_webhook(feedback) is True
        writer.assert_called_once_with("https://backend.test/webhook/secret-one")
        assert "[copied]" in app.render(copy_label=feedback.control.display)

    def test_nothing_to_copy_without_dashboard(self, session, scheduler):
        app = _open(session, scheduler, ScriptedBackend(), "/")
        writer = MagicMock()
        assert app.copy_webhook(ClipboardFeedback(CopyControl(), writer, scheduler=scheduler)) is False
        writer.assert_not_called()

    def test_clipboard_failure_adds_no_flash(self, session, scheduler):
        backend = ScriptedBackend({("GET", "/dashboard/u42"): respond(json=FLAT_DASHBOARD)})
        app = _open(session, scheduler, backend, "/dashboard/u42")
        writer = MagicMock(side_effect=ClipboardUnavailableError("no display"))

        assert app.copy_webhook(ClipboardFeedback(CopyControl(), writer, scheduler=scheduler)) is False
        assert len(app.flash) == 0


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRenderApp:
    def test_setup_screen(self, session, scheduler):
        text = _open(session, scheduler, ScriptedBackend(), "/").render()
        assert text.startswith(APP_TITLE)
        assert "Connect Telegram Bot" in text

    def test_page_not_found(self, session, scheduler):
        text = _open(session, scheduler, ScriptedBackend(), "/nowhere").render()
        assert "Page Not Found" in text
        assert "Go Home: /" in text

    def test_subject_not_found(self, session, scheduler):
        backend = ScriptedBackend({("GET", "/dashboard/ghost"): respond(404, json={"error": "User not found"})})
        text = _open(session, scheduler, backend, "/dashboard/ghost").render()
        assert "Subject not found" in text
        assert "Go Home: /" in text

    def test_errored_shows_error_view_not_old_state(self, session, scheduler):
        backend = ScriptedBackend({("GET", "/dashboard/u42"): network_failure})
        text = _open(session, scheduler, backend, "/dashboard/u42").render()
        assert "An error occurred" in text
        assert "Webhook URL" not in text

    def test_loaded_dashboard(self, session, scheduler):
        backend = ScriptedBackend({("GET", "/dashboard/u42"): respond(json=FLAT_DASHBOARD)})
        text = _open(session, scheduler, backend, "/dashboard/u42").render()
        assert "Bot: @demo_bot" in text
        assert "Send /auth 1a2b3c4d to @demo_bot" in text
        assert "https://backend.test/webhook/secret-one" in text

    def test_flash_messages_rendered_first(self, session, scheduler):
        app = _open(session, scheduler, ScriptedBackend(), "/")
        app.flash.error("Invalid bot token")
        text = app.render()
        assert text.index("1. [error] Invalid bot token") < text.index("Connect Telegram Bot")


class TestViews:
    def test_strip_html(self):
        assert strip_html("Send <code>/auth x</code> &amp; wait") == "Send /auth x & wait"

    def test_render_flash_numbers_messages(self):
        text = render_flash([FlashMessage.success("a"), FlashMessage.error("b")])
        assert text == "1. [ok] a\n2. [error] b"

    def test_alerts_most_recent_first_and_limited(self):
        alerts = [
            AlertRecord(datetime(2026, 10, 18, h, tzinfo=timezone.utc), h % 2 == 0, "alert {}".format(h))
            for h in range(1, 6)
        ]
        lines = render_alerts(alerts, limit=3).splitlines()
        assert len(lines) == 3
        assert lines[0] == "  x 2026-10-18 05:00:00 UTC - alert 5"
        assert lines[1].startswith("  + ")
        assert lines[2].endswith("alert 3")

    def test_no_alerts(self):
        assert render_alerts([]) == "  No alerts yet"

    def test_alert_without_timestamp(self):
        assert "unknown time" in render_alerts([AlertRecord(None, True, "x")])

    def test_authenticated_status_without_banner(self):
        state = DashboardState("u42", "demo_bot", None, True, "", "https://x/webhook/s", auth_status_kind="success")
        assert render_auth_status(state) == "[success] Bot is authenticated. Alerts will be delivered."

    def test_dashboard_without_delivery_target(self):
        state = DashboardState("u42", "demo_bot", None, False, "/auth c", "https://x/webhook/s")
        text = render_dashboard(state)
        assert "Delivery target" not in text
        assert "No alerts yet" in text

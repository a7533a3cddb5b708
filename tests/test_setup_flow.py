"""Tests for SetupFlow.

WHY: Setup is the client's entry point. Invalid input must never reach
the backend, every server explanation of a failure must reach the user,
and a success must hand exactly one subject to the dashboard.

HOW: SetupFlow runs against a real BotApiClient on a ScriptedBackend.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from conftest import ScriptedBackend, network_failure, respond, run_api
from tvbot_client.api.models import DeliveryTarget, FlashKind, SetupResult
from tvbot_client.flash import FlashMessageQueue
from tvbot_client.flows.base import ValidationError
from tvbot_client.flows.setup import (
    SETUP_FAILURE_MESSAGE,
    SETUP_SUCCESS_MESSAGE,
    SetupFlow,
    SetupPhase,
    build_request,
)


def _flashes(queue: FlashMessageQueue) -> list[tuple[str, FlashKind]]:
    return [(m.text, m.kind) for m in queue.messages]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class TestBuildRequest:
    def test_strips_credential(self):
        req = build_request("  123:ABC \n", "group")
        assert req.credential == "123:ABC"
        assert req.delivery_target is DeliveryTarget.GROUP

    @pytest.mark.parametrize("credential", ["", "   ", None])
    def test_empty_credential_rejected(self, credential):
        with pytest.raises(ValidationError):
            build_request(credential, "personal")

    def test_unknown_target_rejected(self):
        with pytest.raises(ValidationError, match="personal, group, channel"):
            build_request("123:ABC", "everyone")


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmitSuccess:
    def test_example_scenario(self, session, scheduler):
        """123:ABC to a group: one success flash, then the dashboard for u42."""
        backend = ScriptedBackend({
            ("POST", "/setup"): respond(json={
                "userId": "u42",
                "flashMessages": [{"message": "Bot @demo verified", "type": "success"}],
            }),
        })
        flash = FlashMessageQueue(scheduler=scheduler)
        opened = []

        async def _go(api):
            flow = SetupFlow(api, flash, on_success=opened.append)
            subject = await flow.submit("123:ABC", "group")
            return flow, subject

        flow, subject = run_api(session, backend, _go)

        assert subject == "u42"
        assert flow.phase is SetupPhase.SUCCEEDED
        assert flow.subject_id == "u42"
        assert opened == ["u42"]
        assert _flashes(flash) == [("Bot @demo verified", FlashKind.SUCCESS)]
        assert json.loads(backend.requests[0].content) == {
            "bot_token": "123:ABC",
            "alert_type": "group",
        }

    def test_default_success_message(self, session, scheduler):
        backend = ScriptedBackend({("POST", "/setup"): respond(json={"userId": "u42"})})
        flash = FlashMessageQueue(scheduler=scheduler)

        async def _go(api):
            return await SetupFlow(api, flash).submit("123:ABC")

        assert run_api(session, backend, _go) == "u42"
        assert _flashes(flash) == [(SETUP_SUCCESS_MESSAGE, FlashKind.SUCCESS)]

    def test_async_on_success_is_awaited(self, session, scheduler):
        backend = ScriptedBackend({("POST", "/setup"): respond(json={"userId": "u7"})})
        opened = []

        async def _open(subject_id):
            opened.append(subject_id)

        async def _go(api):
            await SetupFlow(api, FlashMessageQueue(scheduler=scheduler), on_success=_open).submit("1:A")

        run_api(session, backend, _go)
        assert opened == ["u7"]

    def test_validation_sends_nothing(self, session, scheduler):
        backend = ScriptedBackend()

        async def _go(api):
            flow = SetupFlow(api, FlashMessageQueue(scheduler=scheduler))
            with pytest.raises(ValidationError):
                await flow.submit("   ", "personal")
            return flow

        flow = run_api(session, backend, _go)
        assert backend.requests == []
        assert flow.phase is SetupPhase.IDLE


class TestSubmitFailure:
    """Failure messages: server flashes, then error text or a general fallback."""

    def _submit(self, session, scheduler, handler):
        backend = ScriptedBackend({("POST", "/setup"): handler})
        flash = FlashMessageQueue(scheduler=scheduler)
        opened = []

        async def _go(api):
            flow = SetupFlow(api, flash, on_success=opened.append)
            return flow, await flow.submit("123:ABC", "personal")

        flow, subject = run_api(session, backend, _go)
        assert subject is None
        assert opened == []
        assert flow.phase is SetupPhase.IDLE
        return flow, flash

    def test_error_text_only_gives_one_error_flash(self, session, scheduler):
        _, flash = self._submit(session, scheduler, respond(400, json={"error": "Invalid bot token"}))
        assert _flashes(flash) == [("Invalid bot token", FlashKind.ERROR)]

    def test_server_flashes_then_error_text(self, session, scheduler):
        body = {
            "error": "Invalid bot token",
            "flashMessages": [
                {"message": "Telegram rejected the token", "type": "error"},
                {"message": "Check BotFather", "type": "info"},
            ],
        }
        _, flash = self._submit(session, scheduler, respond(400, json=body))
        assert _flashes(flash) == [
            ("Telegram rejected the token", FlashKind.ERROR),
            ("Check BotFather", FlashKind.SUCCESS),
            ("Invalid bot token", FlashKind.ERROR),
        ]

    def test_error_flash_without_text_still_gets_general_message(self, session, scheduler):
        body = {"flashMessages": [{"message": "Telegram rejected the token", "type": "error"}]}
        _, flash = self._submit(session, scheduler, respond(400, json=body))
        assert _flashes(flash) == [
            ("Telegram rejected the token", FlashKind.ERROR),
            (SETUP_FAILURE_MESSAGE, FlashKind.ERROR),
        ]

    def test_no_explanation_uses_general_message(self, session, scheduler):
        _, flash = self._submit(session, scheduler, respond(500, content=b"oops"))
        assert _flashes(flash) == [(SETUP_FAILURE_MESSAGE, FlashKind.ERROR)]

    def test_network_failure_uses_general_message(self, session, scheduler):
        flow, flash = self._submit(session, scheduler, network_failure)
        assert _flashes(flash) == [(SETUP_FAILURE_MESSAGE, FlashKind.ERROR)]
        assert flow.last_error is not None

    def test_success_without_subject_is_a_failure(self, session, scheduler):
        _, flash = self._submit(session, scheduler, respond(json={"flashMessages": []}))
        assert _flashes(flash) == [(SETUP_FAILURE_MESSAGE, FlashKind.ERROR)]

    def test_success_without_subject_keeps_server_flashes(self, session, scheduler):
        body = {"flashMessages": [{"message": "Token rejected by Telegram", "type": "error"}]}
        _, flash = self._submit(session, scheduler, respond(json=body))
        assert _flashes(flash) == [
            ("Token rejected by Telegram", FlashKind.ERROR),
            (SETUP_FAILURE_MESSAGE, FlashKind.ERROR),
        ]

    def test_can_resubmit_after_failure(self, session, scheduler):
        backend = ScriptedBackend({
            ("POST", "/setup"): [
                respond(400, json={"error": "Invalid bot token"}),
                respond(json={"userId": "u42"}),
            ],
        })
        flash = FlashMessageQueue(scheduler=scheduler)

        async def _go(api):
            flow = SetupFlow(api, flash)
            first = await flow.submit("bad")
            second = await flow.submit("123:ABC")
            return first, second

        assert run_api(session, backend, _go) == (None, "u42")


class TestConcurrentSubmit:
    def test_second_submit_while_submitting_is_rejected(self, session, scheduler):
        release = None

        async def _slow_setup(request):
            await release.wait()
            return SetupResult("u1")

        api = MagicMock()
        api.setup = _slow_setup

        async def _go():
            nonlocal release
            release = asyncio.Event()
            flow = SetupFlow(api, FlashMessageQueue(scheduler=scheduler))
            task = asyncio.create_task(flow.submit("1:A"))
            await asyncio.sleep(0)
            assert flow.phase is SetupPhase.SUBMITTING
            with pytest.raises(ValidationError):
                await flow.submit("1:A")
            release.set()
            return await task

        assert asyncio.run(_go()) == "u1"

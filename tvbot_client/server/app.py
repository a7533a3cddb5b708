"""FastAPI stub of the bot backend contract.

WHY: The client is developed and tested against a backend it does not
own. A small in-memory implementation of the same contract lets the CLI
run locally (``tvbot-client serve-stub``) and lets end-to-end tests drive
the real client over httpx.ASGITransport.

HOW: A single FastAPI app exposes the three contract endpoints (setup,
dashboard, regenerate) plus a webhook receiver, an auth endpoint standing
in for the chat "/auth <code>" command, and a health check. Subjects live
in a SubjectStore singleton.

RULES:
- Every response carries X-Session-ID; a request without one gets a
  freshly issued identity, and setup always issues a new one
- Error bodies use ErrorResponse ({"error", "flashMessages"?})
- Unknown subjects return 404 with "User not found"
- The stub does not talk to Telegram; the bot username is derived from
  the token's numeric bot id
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from tvbot_client import __version__
from tvbot_client.config import SESSION_HEADER
from tvbot_client.server.models import (
    AlertModel,
    AuthenticateRequest,
    AuthStatusModel,
    DashboardResponse,
    ErrorResponse,
    FlashMessageModel,
    HealthResponse,
    RegenerateResponse,
    SetupRequest,
    SetupResponse,
)
from tvbot_client.server.store import Subject, SubjectStore

logger = logging.getLogger(__name__)

_BOT_TOKEN_RE = re.compile(r"^(\d+):[A-Za-z0-9_-]+$")

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

subject_store = SubjectStore()

app = FastAPI(
    title="TradingView Bot Stub Backend",
    description=(
        "In-memory stand-in for the TradingView → Telegram bot backend. "
        "Configure a bot, read its dashboard, rotate its webhook secret, "
        "and post alerts to its webhook URL."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session_id(request: Request) -> str:
    """The caller's session identity, or a newly issued one."""
    return request.headers.get(SESSION_HEADER) or secrets.token_hex(16)


def _error(
    status_code: int,
    message: str,
    session_id: str,
    flash: Optional[list] = None,
) -> JSONResponse:
    body = ErrorResponse(error=message, flashMessages=flash)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers={SESSION_HEADER: session_id},
    )


def _webhook_url(request: Request, subject: Subject) -> str:
    return "{}webhook/{}".format(str(request.base_url), subject.secret)


def _auth_status(subject: Subject) -> AuthStatusModel:
    if subject.authenticated:
        return AuthStatusModel(
            type="success",
            message="Bot is authenticated. Alerts will be delivered.",
        )
    return AuthStatusModel(
        type="warning",
        message=(
            "Bot is not authenticated. Send <code>{}</code> to @{} in your chat."
        ).format(subject.auth_command, subject.bot_username),
    )


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Endpoints: Contract
# ---------------------------------------------------------------------------


@app.post(
    "/setup",
    response_model=SetupResponse,
    tags=["contract"],
    summary="Configure a bot",
    description="Register a bot token and delivery target; returns the subject id.",
    responses={400: {"model": ErrorResponse, "description": "Invalid bot token"}},
)
async def setup(payload: SetupRequest, request: Request, response: Response):
    # Setup always starts a fresh session
    session_id = secrets.token_hex(16)

    match = _BOT_TOKEN_RE.match(payload.bot_token.strip())
    if match is None:
        return _error(
            400,
            "Invalid bot token",
            session_id,
            flash=[FlashMessageModel(
                message="Bot tokens look like 1234567890:ABCdef...",
                type="error",
            )],
        )

    subject = subject_store.create_subject(
        session_id=session_id,
        bot_token=payload.bot_token.strip(),
        bot_username="bot{}".format(match.group(1)),
        alert_type=payload.alert_type.value,
    )
    response.headers[SESSION_HEADER] = session_id
    return SetupResponse(
        userId=subject.id,
        flashMessages=[FlashMessageModel(
            message="Bot @{} verified".format(subject.bot_username),
            type="success",
        )],
    )


@app.get(
    "/dashboard/{subject_id}",
    response_model=DashboardResponse,
    tags=["contract"],
    summary="Get dashboard",
    description="Bot username, auth status, webhook URL and recent alerts for a subject.",
    responses={404: {"model": ErrorResponse, "description": "Subject not found"}},
)
async def dashboard(subject_id: str, request: Request, response: Response):
    session_id = _session_id(request)
    subject = subject_store.get_subject(subject_id)
    if subject is None:
        return _error(404, "User not found", session_id)

    response.headers[SESSION_HEADER] = session_id
    return DashboardResponse(
        botUsername=subject.bot_username,
        alertType=subject.alert_type,
        authenticated=subject.authenticated,
        authCommand=subject.auth_command,
        authStatus=_auth_status(subject),
        webhookUrl=_webhook_url(request, subject),
        recentAlerts=[
            AlertModel(
                createdAt=_iso(a.created_at),
                sentSuccessfully=a.sent_successfully,
                webhookData=a.webhook_data,
            )
            for a in subject_store.alerts_for(subject)
        ],
    )


async def _regenerate(subject_id: str, request: Request, response: Response):
    session_id = _session_id(request)
    subject = subject_store.regenerate_secret(subject_id)
    if subject is None:
        return _error(404, "User not found", session_id)
    response.headers[SESSION_HEADER] = session_id
    return RegenerateResponse(flashMessages=[FlashMessageModel(
        message="Secret key regenerated successfully!",
        type="success",
    )])


app.add_api_route(
    "/regenerate/{subject_id}",
    _regenerate,
    methods=["GET", "POST"],
    response_model=RegenerateResponse,
    tags=["contract"],
    summary="Rotate webhook secret",
    description="Invalidate the current webhook secret and issue a new one.",
    responses={404: {"model": ErrorResponse, "description": "Subject not found"}},
)


# ---------------------------------------------------------------------------
# Endpoints: Stub-only
# ---------------------------------------------------------------------------


@app.post(
    "/webhook/{secret}",
    tags=["stub"],
    summary="Receive an alert",
    description="TradingView posts alerts here. The body is stored as-is.",
    responses={404: {"model": ErrorResponse, "description": "Unknown secret"}},
)
async def webhook(secret: str, request: Request):
    subject = subject_store.find_by_secret(secret)
    if subject is None:
        return _error(404, "Unknown webhook", _session_id(request))
    body = (await request.body()).decode("utf-8", errors="replace")
    entry = subject_store.record_alert(subject, body)
    return {"delivered": entry.sent_successfully}


@app.post(
    "/subjects/{subject_id}/authenticate",
    tags=["stub"],
    summary="Authenticate a bot",
    description="Stands in for the user sending the auth command in chat.",
    responses={400: {"model": ErrorResponse, "description": "Wrong code"}},
)
async def authenticate(subject_id: str, payload: AuthenticateRequest, request: Request):
    if not subject_store.authenticate(subject_id, payload.code):
        return _error(400, "Invalid auth code", _session_id(request))
    return {"authenticated": True}


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["system"],
    summary="Health check",
    description="Returns service status and version.",
)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)

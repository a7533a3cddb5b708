"""Pydantic request/response models for the stub backend.

WHY: The stub's endpoints need typed schemas for request validation,
response serialization, and OpenAPI docs. Field names follow the wire
contract the client consumes (camelCase, flat dashboard shape).

RULES:
- All models use Field(description=...) for OpenAPI documentation
- alert_type is restricted to personal | group | channel
- Error bodies always carry ``error`` and may carry ``flashMessages``
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class AlertType(str, Enum):
    personal = "personal"
    group = "group"
    channel = "channel"


class FlashMessageModel(BaseModel):
    message: str = Field(description="Human-readable notice text.")
    type: str = Field(description="Notice type: 'success', 'error', 'warning' or 'info'.")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SetupRequest(BaseModel):
    """Bot credential plus delivery target."""

    bot_token: str = Field(description="Telegram bot token from @BotFather.")
    alert_type: AlertType = Field(
        default=AlertType.personal,
        description="Where alerts are delivered.",
    )


class AuthenticateRequest(BaseModel):
    code: str = Field(description="The code the user sent to the bot in chat.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SetupResponse(BaseModel):
    userId: str = Field(description="Identifier of the configured subject.")
    flashMessages: List[FlashMessageModel] = Field(default_factory=list)

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "userId": "u42",
                "flashMessages": [{"message": "Bot @demo verified", "type": "success"}],
            }
        ]
    }}


class AuthStatusModel(BaseModel):
    type: str = Field(description="Banner type: 'success' or 'warning'.")
    message: str = Field(description="Banner HTML.")


class AlertModel(BaseModel):
    createdAt: str = Field(description="ISO-8601 UTC timestamp.")
    sentSuccessfully: bool = Field(description="Whether the alert reached the chat.")
    webhookData: str = Field(description="Raw alert payload.")


class DashboardResponse(BaseModel):
    """Flat dashboard shape."""

    botUsername: str = Field(description="Bot username without '@'.")
    alertType: str = Field(description="Configured delivery target.")
    authenticated: bool = Field(description="Whether the bot is authenticated in chat.")
    authCommand: str = Field(description="Command the user sends in chat to authenticate.")
    authStatus: AuthStatusModel = Field(description="Auth banner for display.")
    webhookUrl: str = Field(description="Webhook URL for TradingView.")
    recentAlerts: List[AlertModel] = Field(default_factory=list)
    flashMessages: List[FlashMessageModel] = Field(default_factory=list)


class RegenerateResponse(BaseModel):
    flashMessages: List[FlashMessageModel] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str = Field(description="Human-readable error description.")
    flashMessages: Optional[List[FlashMessageModel]] = Field(default=None)


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})

"""Backend request/response dataclasses and the wire-shape normalizer.

WHY: The backend has been observed returning dashboard data in two shapes:
a flat camelCase object (``botUsername``, ``authStatus``, ``recentAlerts``)
and a nested snake_case object (``user`` + ``alerts``). Flows should see one
typed DashboardState regardless of which shape arrived.

HOW: Each dataclass maps to one concept of the backend contract. Factory
methods (from_dict / from_payload) accept either wire shape and produce
the same immutable value. Parsing problems raise ValueError (or KeyError /
TypeError from missing or mistyped fields); the transport client turns
those into MalformedResponseError.

RULES:
- DashboardState, AlertRecord, BotConfigRequest and FlashMessage are frozen
- Flash message wire type "error" (or "danger") maps to FlashKind.ERROR;
  every other type maps to FlashKind.SUCCESS
- authenticated comes from an explicit boolean when present, else from the
  auth status banner type ("success" means authenticated)
- recent_alerts are sorted oldest-first by timestamp; alerts without a
  parseable timestamp sort first
"""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DeliveryTarget(str, enum.Enum):
    """Where alerts are delivered in the messaging platform."""

    PERSONAL = "personal"
    GROUP = "group"
    CHANNEL = "channel"


class FlashKind(str, enum.Enum):
    """Presentation tag of a flash message. Carries no other behavior."""

    SUCCESS = "success"
    ERROR = "error"


_ERROR_WIRE_TYPES = frozenset({"error", "danger"})


# ---------------------------------------------------------------------------
# Flash messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FlashMessage:
    """A user-facing notice.

    ``id`` is assigned by the FlashMessageQueue when the message is
    enqueued; messages parsed from the wire have id None.
    """

    text: str
    kind: FlashKind = FlashKind.SUCCESS
    id: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> FlashMessage:
        """Parse ``{"message": ..., "type": ...}``."""
        text = data["message"]
        if not isinstance(text, str):
            raise TypeError("flash message text must be a string")
        wire_type = str(data.get("type", "success")).lower()
        kind = FlashKind.ERROR if wire_type in _ERROR_WIRE_TYPES else FlashKind.SUCCESS
        return cls(text=text, kind=kind)

    @classmethod
    def success(cls, text: str) -> FlashMessage:
        return cls(text=text, kind=FlashKind.SUCCESS)

    @classmethod
    def error(cls, text: str) -> FlashMessage:
        return cls(text=text, kind=FlashKind.ERROR)


def parse_flash_messages(raw: Any) -> list[FlashMessage]:
    """Parse an optional ``flashMessages`` array.

    Missing or null arrays yield an empty list. Entries that are not
    message objects are skipped rather than failing the whole response.
    """
    if not raw:
        return []
    if not isinstance(raw, list):
        raise TypeError("flashMessages must be an array")
    messages = []
    for entry in raw:
        if isinstance(entry, dict) and isinstance(entry.get("message"), str):
            messages.append(FlashMessage.from_dict(entry))
    return messages


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BotConfigRequest:
    """Bot credential plus delivery target, as submitted by the setup flow."""

    credential: str
    delivery_target: DeliveryTarget = DeliveryTarget.PERSONAL

    def to_payload(self) -> dict:
        return {
            "bot_token": self.credential,
            "alert_type": self.delivery_target.value,
        }


@dataclass(frozen=True)
class SetupResult:
    """Successful POST /setup response."""

    subject_id: str
    flash_messages: list[FlashMessage] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> SetupResult:
        """Parse a 2xx setup response.

        RULES:
        - The subject id is read from ``userId`` (or ``user_id``)
        - A missing or empty subject id raises ValueError
        """
        subject_id = data.get("userId") or data.get("user_id")
        if subject_id is None or str(subject_id) == "":
            raise ValueError("setup response did not include a subject id")
        return cls(
            subject_id=str(subject_id),
            flash_messages=parse_flash_messages(data.get("flashMessages")),
        )


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AlertRecord:
    """One alert the backend received from the charting platform.

    WHY: The dashboard lists recent alerts with their delivery outcome so
    users can confirm their webhook is wired correctly.

    RULES:
    - timestamp is timezone-aware UTC, or None when unparseable
    - payload_summary is the raw payload text; non-string payloads are
      serialized to compact JSON
    """

    timestamp: datetime | None
    delivered: bool
    payload_summary: str

    @classmethod
    def from_dict(cls, data: dict) -> AlertRecord:
        raw_ts = _first_present(data, "createdAt", "created_at", "timestamp")
        delivered = _first_present(data, "sentSuccessfully", "sent_successfully", "delivered")
        payload = _first_present(data, "webhookData", "webhook_data", "payload")
        return cls(
            timestamp=parse_timestamp(raw_ts),
            delivered=bool(delivered),
            payload_summary=_summarize_payload(payload),
        )


@dataclass(frozen=True)
class DashboardState:
    """Authoritative view of one bot/session pairing (a subject).

    WHY: The dashboard must show auth state and webhook URL that agree
    with the backend's current secret. A frozen value replaced wholesale
    on every fetch makes partial, mixed old/new state impossible.

    RULES:
    - Never patched in place; flows replace the whole value
    - auth_status_kind is "success", "warning" or "info"
    """

    subject_id: str
    bot_username: str
    delivery_target: str | None
    authenticated: bool
    auth_command: str
    webhook_url: str
    recent_alerts: tuple[AlertRecord, ...] = ()
    auth_status_message: str = ""
    auth_status_kind: str = "info"

    @classmethod
    def from_payload(cls, subject_id: str, data: dict) -> DashboardState:
        """Normalize either dashboard wire shape into a DashboardState."""
        if isinstance(data.get("user"), dict):
            return cls._from_nested(subject_id, data)
        return cls._from_flat(subject_id, data)

    @classmethod
    def _from_flat(cls, subject_id: str, data: dict) -> DashboardState:
        auth_status = data.get("authStatus")
        banner_kind = ""
        banner_message = ""
        if isinstance(auth_status, dict):
            banner_kind = str(auth_status.get("type", "")).lower()
            banner_message = str(auth_status.get("message", ""))

        if isinstance(data.get("authenticated"), bool):
            authenticated = data["authenticated"]
        else:
            authenticated = banner_kind == "success"

        auth_command = data.get("authCommand") or _extract_code(banner_message)

        return cls(
            subject_id=subject_id,
            bot_username=_require_str(data, "botUsername"),
            delivery_target=data.get("alertType"),
            authenticated=authenticated,
            auth_command=auth_command or "",
            webhook_url=_require_str(data, "webhookUrl"),
            recent_alerts=_parse_alerts(data.get("recentAlerts")),
            auth_status_message=banner_message,
            auth_status_kind=banner_kind or ("success" if authenticated else "warning"),
        )

    @classmethod
    def _from_nested(cls, subject_id: str, data: dict) -> DashboardState:
        user = data["user"]
        authenticated = bool(user.get("is_authenticated", False))
        return cls(
            subject_id=subject_id,
            bot_username=_require_str(user, "bot_username"),
            delivery_target=user.get("alert_type"),
            authenticated=authenticated,
            auth_command=user.get("auth_command") or "",
            webhook_url=_require_str(user, "webhook_url"),
            recent_alerts=_parse_alerts(data.get("alerts")),
            auth_status_message="",
            auth_status_kind="success" if authenticated else "warning",
        )


@dataclass(frozen=True)
class DashboardPayload:
    """A normalized dashboard response: state plus any server notices."""

    state: DashboardState
    flash_messages: list[FlashMessage] = field(default_factory=list)

    @classmethod
    def from_dict(cls, subject_id: str, data: dict) -> DashboardPayload:
        return cls(
            state=DashboardState.from_payload(subject_id, data),
            flash_messages=parse_flash_messages(data.get("flashMessages")),
        )


# ---------------------------------------------------------------------------
# Parsing helpers (module-private)
# ---------------------------------------------------------------------------

_CODE_RE = re.compile(r"<code>(.*?)</code>", re.IGNORECASE | re.DOTALL)


def _first_present(data: dict, *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _require_str(data: dict, key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError("{} must be a string".format(key))
    return value


def _extract_code(html: str) -> str:
    """Pull the auth command out of the banner's first <code> element."""
    match = _CODE_RE.search(html or "")
    return match.group(1).strip() if match else ""


def _parse_alerts(raw: Any) -> tuple[AlertRecord, ...]:
    if not raw:
        return ()
    if not isinstance(raw, list):
        raise TypeError("alerts must be an array")
    alerts = [AlertRecord.from_dict(a) for a in raw if isinstance(a, dict)]
    _epoch = datetime.min.replace(tzinfo=timezone.utc)
    alerts.sort(key=lambda a: a.timestamp or _epoch)
    return tuple(alerts)


def _summarize_payload(payload: Any) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an ISO-8601 string or epoch number into an aware UTC datetime.

    Epoch values above 1e12 are treated as milliseconds. Values the
    platform cannot represent (out of range, NaN) give None.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        seconds = raw / 1000.0 if raw > 1e12 else float(raw)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None

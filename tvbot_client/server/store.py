"""In-memory subject store for the stub backend.

WHY: The stub backend needs somewhere to keep configured bots (subjects),
their webhook secrets, auth state and received alerts while it runs.
Nothing is persisted; restarting the stub forgets everything.

HOW: Subject is a dataclass holding one bot/session pairing. SubjectStore
is a dict-based store guarded by a threading.Lock, with create, lookup,
secret rotation, authentication and alert recording.

RULES:
- All store mutations are protected by threading.Lock
- Subject IDs are UUID4 hex strings generated at creation time
- Secrets are 32 hex chars; rotating replaces the secret and invalidates
  lookups by the old one
- Only the most recent max_alerts alerts are kept per subject
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_ALERTS = 50


def _new_secret() -> str:
    return secrets.token_hex(16)


def _new_auth_code() -> str:
    return secrets.token_hex(4)


@dataclass
class AlertEntry:
    """One alert received on a subject's webhook."""

    created_at: float
    sent_successfully: bool
    webhook_data: str


@dataclass
class Subject:
    """A configured bot bound to a session.

    RULES:
    - id: UUID4 hex, immutable after creation
    - session_id: the session the subject was created under
    - secret: current webhook secret
    - auth_code: one-time code the user sends as "/auth <code>" in chat
    - alerts: oldest first
    """

    id: str
    session_id: str
    bot_token: str
    bot_username: str
    alert_type: str
    secret: str
    auth_code: str
    created_at: float
    authenticated: bool = False
    alerts: List[AlertEntry] = field(default_factory=list)

    @property
    def auth_command(self) -> str:
        return "/auth {}".format(self.auth_code)


class SubjectStore:
    """Thread-safe in-memory store of subjects."""

    def __init__(self, max_alerts: int = DEFAULT_MAX_ALERTS) -> None:
        self._subjects: Dict[str, Subject] = {}
        self._lock = threading.Lock()
        self.max_alerts = max_alerts

    def create_subject(
        self,
        session_id: str,
        bot_token: str,
        bot_username: str,
        alert_type: str,
    ) -> Subject:
        with self._lock:
            subject = Subject(
                id=uuid.uuid4().hex,
                session_id=session_id,
                bot_token=bot_token,
                bot_username=bot_username,
                alert_type=alert_type,
                secret=_new_secret(),
                auth_code=_new_auth_code(),
                created_at=time.time(),
            )
            self._subjects[subject.id] = subject

        logger.info("Created subject %s for @%s", subject.id, bot_username)
        return subject

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        """Return the live Subject, or None for unknown IDs."""
        with self._lock:
            return self._subjects.get(subject_id)

    def find_by_secret(self, secret: str) -> Optional[Subject]:
        with self._lock:
            for subject in self._subjects.values():
                if secrets.compare_digest(subject.secret, secret):
                    return subject
        return None

    def regenerate_secret(self, subject_id: str) -> Optional[Subject]:
        """Replace the subject's webhook secret. Returns None if unknown."""
        with self._lock:
            subject = self._subjects.get(subject_id)
            if subject is None:
                return None
            subject.secret = _new_secret()
        logger.info("Regenerated secret for subject %s", subject_id)
        return subject

    def authenticate(self, subject_id: str, code: str) -> bool:
        """Mark the subject authenticated if code matches its auth code."""
        with self._lock:
            subject = self._subjects.get(subject_id)
            if subject is None or not secrets.compare_digest(subject.auth_code, code):
                return False
            subject.authenticated = True
        logger.info("Subject %s authenticated", subject_id)
        return True

    def record_alert(self, subject: Subject, webhook_data: str) -> AlertEntry:
        """Store an alert; it counts as delivered only once the bot is authenticated."""
        with self._lock:
            entry = AlertEntry(
                created_at=time.time(),
                sent_successfully=subject.authenticated,
                webhook_data=webhook_data,
            )
            subject.alerts.append(entry)
            excess = len(subject.alerts) - max(self.max_alerts, 0)
            if excess > 0:
                del subject.alerts[:excess]
        return entry

    def alerts_for(self, subject: Subject) -> List[AlertEntry]:
        """Snapshot of the subject's stored alerts, oldest first."""
        with self._lock:
            return list(subject.alerts)

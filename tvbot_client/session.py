"""Session identity: a stable, persisted, opaque per-client identifier.

WHY: The backend correlates requests to server-side state (configured
bots, webhook secrets) by an opaque session token. The token must survive
restarts of the client, and the backend may rotate it at any time.

HOW: SessionIdentityProvider keeps the current identity in memory and
mirrors it to a small JSON state file. On first use it generates 16 random
bytes (hex-encoded). If the state file cannot be read or written, it falls
back to an in-memory identity and flags the session as degraded.

RULES:
- Exactly one identity is active at a time
- replace() persists the new value before it becomes current, so the next
  request always carries it
- A degraded session is logged and exposed via the ``degraded`` flag; it is
  never reported as a server error
- No network access
"""

from __future__ import annotations

import json
import logging
import secrets
from pathlib import Path
from typing import Any, Dict, Optional

from tvbot_client.config import SESSION_STORAGE_KEY, STATE_FILE

logger = logging.getLogger(__name__)

_IDENTITY_BYTES = 16


def generate_identity() -> str:
    """Return 16 cryptographically random bytes as 32 lowercase hex chars."""
    return secrets.token_hex(_IDENTITY_BYTES)


class SessionIdentityProvider:
    """Produces and persists the client's session identity.

    WHY: Every request must carry the same identity until the server
    replaces it. Holding it in an explicit object (instead of mutating
    shared HTTP client defaults) makes replacement a single operation.

    HOW: get_or_create() lazily loads or generates the identity.
    replace() writes the new identity to the state file, then swaps the
    in-memory value. Storage failures switch the provider to degraded mode.

    RULES:
    - state_file defaults to config.STATE_FILE
    - Other keys in the state file are preserved on write
    - degraded stays True once set for the lifetime of the provider
    """

    def __init__(self, state_file: Optional[Path] = None) -> None:
        self._state_file = Path(state_file) if state_file else STATE_FILE
        self._current: Optional[str] = None
        self.degraded = False

    @property
    def state_file(self) -> Path:
        return self._state_file

    @property
    def current(self) -> Optional[str]:
        """The active identity, or None before the first get_or_create()."""
        return self._current

    def get_or_create(self) -> str:
        """Return the persisted identity, generating and storing one if absent."""
        if self._current is not None:
            return self._current

        stored = self._read_state().get(SESSION_STORAGE_KEY)
        if isinstance(stored, str) and stored:
            self._current = stored
            return stored

        identity = generate_identity()
        self._write_identity(identity)
        self._current = identity
        logger.info("Generated new session identity")
        return identity

    def replace(self, identity: str) -> None:
        """Adopt a server-issued identity for all subsequent requests."""
        if not identity or identity == self._current:
            return
        self._write_identity(identity)
        self._current = identity
        logger.info("Adopted rotated session identity from server")

    # ------------------------------------------------------------------
    # State file access
    # ------------------------------------------------------------------

    def _read_state(self) -> Dict[str, Any]:
        if self.degraded or not self._state_file.exists():
            return {}
        try:
            data = json.loads(self._state_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            self._mark_degraded("unreadable state file %s" % self._state_file)
            return {}
        if not isinstance(data, dict):
            self._mark_degraded("state file %s is not a JSON object" % self._state_file)
            return {}
        return data

    def _write_identity(self, identity: str) -> None:
        if self.degraded:
            return
        state = self._read_state()
        if self.degraded:
            return
        state[SESSION_STORAGE_KEY] = identity
        try:
            self._state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._state_file.with_suffix(".tmp")
            tmp.write_text(json.dumps(state, indent=2), encoding="utf-8")
            tmp.replace(self._state_file)
        except OSError:
            self._mark_degraded("cannot write state file %s" % self._state_file)

    def _mark_degraded(self, reason: str) -> None:
        self.degraded = True
        logger.warning(
            "Session storage unavailable (%s); identity will not survive a restart",
            reason,
        )

"""Flash message queue: ordered, auto-expiring user-facing notices.

WHY: Every flow reports its outcome (bot verified, secret rotated, request
failed) as a short-lived notice. Notices must be independent: expiring or
dismissing one must never move, drop or re-time another.

HOW: Messages live in an insertion-ordered dict keyed by a monotonically
increasing id. Each message owns its own cancellable timer handle obtained
from the injected Scheduler. Expiry and dismissal both remove by id.

RULES:
- push() is O(1) and never overwrites; duplicates are kept
- Removal is by id; dismiss_at(index) resolves the id first
- A dismissed message's timer is cancelled; other timers are untouched
- timeout=None disables auto-expiry
- on_change (optional) is called after every mutation
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Dict, Optional, Tuple

from tvbot_client.api.models import FlashKind, FlashMessage
from tvbot_client.config import FLASH_TIMEOUT_S
from tvbot_client.timers import Scheduler, TimerHandle, loop_scheduler

logger = logging.getLogger(__name__)


class FlashMessageQueue:
    """Append-only queue of FlashMessage with per-message expiry timers."""

    def __init__(
        self,
        timeout: Optional[float] = FLASH_TIMEOUT_S,
        scheduler: Optional[Scheduler] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._timeout = timeout
        self._scheduler = scheduler or loop_scheduler
        self._on_change = on_change
        self._ids = itertools.count(1)
        self._messages: Dict[int, FlashMessage] = {}
        self._timers: Dict[int, TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> Tuple[FlashMessage, ...]:
        """Snapshot of the current messages in insertion order."""
        return tuple(self._messages.values())

    def push(self, text: str, kind: FlashKind = FlashKind.SUCCESS) -> FlashMessage:
        """Append a new message and schedule its expiry."""
        return self._append(FlashMessage(text=text, kind=kind))

    def success(self, text: str) -> FlashMessage:
        return self.push(text, FlashKind.SUCCESS)

    def error(self, text: str) -> FlashMessage:
        return self.push(text, FlashKind.ERROR)

    def extend(self, messages: Iterable[FlashMessage]) -> list[FlashMessage]:
        """Append server-supplied messages verbatim, in order."""
        return [self._append(m) for m in messages]

    def dismiss(self, message_id: int) -> bool:
        """Remove one message by id. Returns False if it is already gone."""
        message = self._messages.pop(message_id, None)
        if message is None:
            return False
        timer = self._timers.pop(message_id, None)
        if timer is not None:
            timer.cancel()
        self._changed()
        return True

    def dismiss_at(self, index: int) -> bool:
        """Remove the message currently displayed at position index."""
        ids = list(self._messages)
        if not 0 <= index < len(ids):
            return False
        return self.dismiss(ids[index])

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._messages.clear()
        self._changed()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append(self, message: FlashMessage) -> FlashMessage:
        message_id = next(self._ids)
        stored = replace(message, id=message_id)
        self._messages[message_id] = stored
        if self._timeout is not None:
            self._timers[message_id] = self._scheduler(
                self._timeout, lambda: self._expire(message_id)
            )
        logger.debug("Flash %d (%s): %s", message_id, stored.kind.value, stored.text)
        self._changed()
        return stored

    def _expire(self, message_id: int) -> None:
        self._timers.pop(message_id, None)
        if self._messages.pop(message_id, None) is not None:
            self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

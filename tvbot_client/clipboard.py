"""Copy-to-clipboard with a scoped, self-reverting acknowledgment.

WHY: Copying the webhook URL should show a brief "copied" mark on the
control that triggered it, then return to normal on its own. Clipboard
failures (no display, permission denied) are local problems and must
not be reported like backend errors.

HOW: ClipboardFeedback is bound to one CopyControl and owns at most one
pending revert timer. Each successful copy sets the acknowledgment and
replaces the pending timer, so the mark clears exactly once, a fixed
duration after the last copy.

RULES:
- The control handle is passed in explicitly; there is no global lookup
- A failed write leaves the control untouched and returns False
- Only ClipboardUnavailableError is absorbed; it is logged, never flashed
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from tvbot_client.config import COPY_ACK_S
from tvbot_client.timers import Scheduler, TimerHandle, loop_scheduler

logger = logging.getLogger(__name__)


class ClipboardUnavailableError(Exception):
    """Raised by clipboard writers when the system clipboard cannot be used."""


ClipboardWriter = Callable[[str], None]


@dataclass
class CopyControl:
    """The control a copy was triggered from.

    ``label`` is what the control shows at rest; ``ack_label`` is shown
    while acknowledged.
    """

    label: str = "copy"
    ack_label: str = "copied"
    acknowledged: bool = False

    @property
    def display(self) -> str:
        return self.ack_label if self.acknowledged else self.label


class ClipboardFeedback:
    """Writes text to the clipboard and acknowledges on one control."""

    def __init__(
        self,
        control: CopyControl,
        writer: ClipboardWriter,
        scheduler: Optional[Scheduler] = None,
        duration: float = COPY_ACK_S,
    ) -> None:
        self.control = control
        self._writer = writer
        self._scheduler = scheduler or loop_scheduler
        self._duration = duration
        self._revert: Optional[TimerHandle] = None

    def copy(self, text: str) -> bool:
        """Copy text; returns True when the clipboard write succeeded."""
        try:
            self._writer(text)
        except ClipboardUnavailableError as exc:
            logger.warning("Clipboard unavailable: %s", exc)
            return False

        if self._revert is not None:
            self._revert.cancel()
        self.control.acknowledged = True
        self._revert = self._scheduler(self._duration, self._reset)
        return True

    def _reset(self) -> None:
        self._revert = None
        self.control.acknowledged = False


class TkClipboardWriter:
    """Clipboard writer backed by tkinter's clipboard.

    The Tk root is created lazily and kept hidden; some platforms drop
    clipboard contents when the owning root is destroyed, so it stays
    alive until close().
    """

    def __init__(self) -> None:
        self._root = None

    def __call__(self, text: str) -> None:
        try:
            import tkinter as tk
        except ImportError as exc:
            raise ClipboardUnavailableError("tkinter is not installed") from exc

        try:
            if self._root is None:
                self._root = tk.Tk()
                self._root.withdraw()
            self._root.clipboard_clear()
            self._root.clipboard_append(text)
            self._root.update()
        except tk.TclError as exc:
            raise ClipboardUnavailableError(str(exc)) from exc

    def close(self) -> None:
        if self._root is not None:
            self._root.destroy()
            self._root = None

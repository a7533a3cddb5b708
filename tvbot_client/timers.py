"""Timer scheduling seam shared by the flash queue and clipboard feedback.

WHY: Both components schedule their own cancellable timers. Routing them
through one small callable type lets tests drive time explicitly instead
of sleeping.

HOW: A Scheduler is any callable ``(delay_s, callback) -> handle`` where
the handle has a ``cancel()`` method. The default uses the running
asyncio loop's ``call_later``, whose TimerHandle satisfies that protocol.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def loop_scheduler(delay_s: float, callback: Callable[[], None]) -> TimerHandle:
    """Schedule callback on the running event loop after delay_s seconds."""
    return asyncio.get_running_loop().call_later(delay_s, callback)

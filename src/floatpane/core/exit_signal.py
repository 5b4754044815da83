"""One-shot exit notification for panel content.

The content subsystem owns an ExitSignal and fires it exactly once when its
backing process terminates. Subscribers get a Subscription they cancel when
they stop caring (e.g. on destroy), so no callback reaches freed state.

// [LAW:single-enforcer] fire() is the sole delivery point; later fires are no-ops.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

ExitCallback = Callable[[], None]
Scheduler = Callable[[Callable[[], None]], object]


class Subscription:
    """Handle returned by ExitSignal.subscribe(); cancel() is idempotent."""

    __slots__ = ("_signal", "_callback")

    def __init__(self, signal: "ExitSignal", callback: ExitCallback):
        self._signal = signal
        self._callback = callback

    @property
    def active(self) -> bool:
        return self._signal is not None

    def cancel(self) -> None:
        if self._signal is None:
            return
        self._signal._discard(self)
        self._signal = None

    def _deliver(self) -> None:
        if self._signal is None:
            return
        self._signal = None
        self._callback()


class ExitSignal:
    """One-shot "content exited" event.

    Args:
        scheduler: Optional callable used to marshal delivery onto the host
            command loop (e.g. App.call_from_thread). Default delivers inline.
    """

    def __init__(self, scheduler: Scheduler | None = None):
        self._scheduler = scheduler
        self._subscriptions: list[Subscription] = []
        self._fired = False
        self.exit_status: int | None = None

    @property
    def fired(self) -> bool:
        return self._fired

    def subscribe(self, callback: ExitCallback) -> Subscription:
        sub = Subscription(self, callback)
        if self._fired:
            # Late subscriber still hears about the exit exactly once.
            self._dispatch([sub])
            return sub
        self._subscriptions.append(sub)
        return sub

    def fire(self, exit_status: int | None = None) -> None:
        if self._fired:
            return
        self._fired = True
        self.exit_status = exit_status
        pending, self._subscriptions = self._subscriptions, []
        self._dispatch(pending)

    def _discard(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def _dispatch(self, subs: list[Subscription]) -> None:
        for sub in subs:
            if self._scheduler is not None:
                self._scheduler(sub._deliver)
                continue
            try:
                sub._deliver()
            except Exception:
                # One broken subscriber must not starve the rest.
                logger.exception("exit subscriber failed")

from __future__ import annotations

from collections.abc import Callable

from .clock import Clock


class ScheduledCallback:
    """A single slot holding at most one pending callback.

    Scheduling replaces whatever was pending. Nothing runs on its own: the
    owner calls :meth:`poll` from its update loop and the callback fires
    once the clock has reached the deadline.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._deadline_s: float | None = None
        self._callback: Callable[[], None] | None = None

    @property
    def pending(self) -> bool:
        return self._callback is not None

    def time_remaining_s(self) -> float | None:
        if self._deadline_s is None:
            return None
        return max(0.0, self._deadline_s - self._clock.now())

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        self._deadline_s = self._clock.now() + float(delay_s)
        self._callback = callback

    def cancel(self) -> None:
        self._deadline_s = None
        self._callback = None

    def poll(self) -> bool:
        """Fire the pending callback if it is due. Returns True if it fired."""

        if self._callback is None or self._deadline_s is None:
            return False
        if self._clock.now() < self._deadline_s:
            return False
        callback = self._callback
        # Clear the slot first: the callback may schedule its successor.
        self._deadline_s = None
        self._callback = None
        callback()
        return True

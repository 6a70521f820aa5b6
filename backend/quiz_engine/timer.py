"""Countdown for timed attempts.

`AttemptTimer` counts whole seconds down from the quiz time limit. Each
`tick()` removes a second while the timer is running and not paused.
Warning callbacks fire once per threshold (in minutes remaining) as the
countdown crosses it, largest threshold first; a threshold that was
already behind the countdown when the timer started never fires. When
the countdown reaches zero the expiry callback runs exactly once.

The tick count is not the source of truth on its own: `sync_remaining`
lets the owner pull the countdown down to the value recomputed from the
server clock, which may cross thresholds or expire the timer.
"""

import asyncio
import json
import logging
from typing import Callable, Iterable, Optional

from .clock import SystemClock

logger = logging.getLogger("quiz_engine.timer")

DEFAULT_WARNING_MINUTES = (10, 5, 2, 1)


class AttemptTimer:
    def __init__(
        self,
        limit_seconds: int,
        on_expire: Callable[[], None],
        on_warning: Optional[Callable[[int], None]] = None,
        warning_minutes: Iterable[int] = DEFAULT_WARNING_MINUTES,
        clock=None,
    ):
        if limit_seconds <= 0:
            raise ValueError("limit_seconds must be positive")
        self.limit_seconds = int(limit_seconds)
        self.remaining_seconds = int(limit_seconds)
        self.on_expire = on_expire
        self.on_warning = on_warning
        self.warning_minutes = tuple(sorted(set(warning_minutes), reverse=True))
        self.fired_warnings = []
        self.expired = False
        self.paused = False
        self.paused_seconds = 0
        self._clock = clock or SystemClock()
        self._paused_at = None
        self.stopped = False

    def tick(self, seconds: int = 1) -> None:
        """Advance the countdown by `seconds` unless paused, stopped or expired."""
        if self.paused or self.expired or self.stopped:
            return
        self._advance_to(self.remaining_seconds - seconds)

    def sync_remaining(self, authoritative_seconds: float) -> None:
        """Pull the countdown down to a server-computed remaining time.

        The countdown never moves up: a client that ticks slowly cannot
        gain time this way. Ignored while paused.
        """
        if self.expired or self.paused or self.stopped:
            return
        target = int(authoritative_seconds)
        if target < self.remaining_seconds:
            logger.info(
                "timer_resync %s",
                json.dumps({"from": self.remaining_seconds, "to": max(0, target)}),
            )
            self._advance_to(target)

    def pause(self) -> None:
        if self.paused or self.expired:
            return
        self.paused = True
        self._paused_at = self._clock.now()

    def resume(self) -> None:
        if not self.paused:
            return
        self.paused = False
        if self._paused_at is not None:
            self.paused_seconds += int((self._clock.now() - self._paused_at).total_seconds())
        self._paused_at = None

    @property
    def paused_at(self):
        """When the current pause started, or None while running."""
        return self._paused_at

    def stop(self) -> None:
        """Stop counting without firing the expiry callback."""
        self.stopped = True

    async def run(self, interval: float = 1.0) -> None:
        """Tick once per `interval` seconds until the timer expires or stops."""
        while not (self.expired or self.stopped):
            await asyncio.sleep(interval)
            self.tick()

    def _advance_to(self, new_remaining: int) -> None:
        previous = self.remaining_seconds
        self.remaining_seconds = max(0, new_remaining)
        for minutes in self.warning_minutes:
            threshold = minutes * 60
            if self.remaining_seconds <= threshold < previous and minutes not in self.fired_warnings:
                self.fired_warnings.append(minutes)
                if self.on_warning is not None:
                    self.on_warning(minutes)
        if self.remaining_seconds == 0 and not self.expired:
            self.expired = True
            self.on_expire()

"""Rolling hourly/daily iteration budget."""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

HOUR_SECONDS = 60 * 60
DAY_SECONDS = 24 * HOUR_SECONDS


@dataclass(frozen=True, slots=True)
class BudgetConfig:
    """Iteration caps; ``None`` disables a cap."""

    hourly_limit: int | None = None
    daily_limit: int | None = None


@dataclass(slots=True)
class BudgetState:
    """Mutable usage counters and the start of each window."""

    hourly_count: int
    daily_count: int
    hour_window_start: float
    day_window_start: float


@dataclass(frozen=True, slots=True)
class BudgetDecision:
    """Result of a budget check."""

    allowed: bool
    reason: str | None = None


class BudgetLimiter:
    """Decides whether another iteration fits into the hourly and daily windows.

    Windows are anchored when the state is created and re-anchored lazily: once the
    elapsed time since a window start reaches the window length, the matching counter
    is reset. ``clock`` returns seconds and exists so tests can move time.
    """

    def __init__(self, config: BudgetConfig, *, clock: Callable[[], float] = time.time) -> None:
        self.config = config
        self._clock = clock

    def create_state(self) -> BudgetState:
        now = self._clock()
        return BudgetState(
            hourly_count=0,
            daily_count=0,
            hour_window_start=now,
            day_window_start=now,
        )

    def tick(self, state: BudgetState, now: float | None = None) -> None:
        """Reset any window whose length has fully elapsed."""

        if now is None:
            now = self._clock()
        if now - state.hour_window_start >= HOUR_SECONDS:
            state.hourly_count = 0
            state.hour_window_start = now
        if now - state.day_window_start >= DAY_SECONDS:
            state.daily_count = 0
            state.day_window_start = now

    def check(self, state: BudgetState) -> BudgetDecision:
        """Roll expired windows over, then test the caps (hourly first).

        Never counts usage; only :meth:`increment` does.
        """

        now = self._clock()
        self.tick(state, now)

        hourly_limit = self.config.hourly_limit
        if hourly_limit is not None and state.hourly_count >= hourly_limit:
            remaining = HOUR_SECONDS - (now - state.hour_window_start)
            minutes = math.ceil(remaining / 60)
            return BudgetDecision(
                allowed=False,
                reason=f"Hourly budget exhausted ({hourly_limit}). Resets in {minutes} minutes.",
            )

        daily_limit = self.config.daily_limit
        if daily_limit is not None and state.daily_count >= daily_limit:
            remaining = DAY_SECONDS - (now - state.day_window_start)
            hours = math.ceil(remaining / HOUR_SECONDS)
            return BudgetDecision(
                allowed=False,
                reason=f"Daily budget exhausted ({daily_limit}). Resets in {hours} hours.",
            )

        return BudgetDecision(allowed=True)

    @staticmethod
    def increment(state: BudgetState) -> None:
        """Count one finished iteration against both windows."""

        state.hourly_count += 1
        state.daily_count += 1

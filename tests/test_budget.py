from __future__ import annotations

import allure

from ralph_loop.budget import DAY_SECONDS, HOUR_SECONDS, BudgetConfig, BudgetLimiter

pytestmark = [
    allure.epic("Ralph Loop"),
    allure.feature("Iteration Budget"),
]


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_unlimited_budget_always_allows() -> None:
    limiter = BudgetLimiter(BudgetConfig())
    state = limiter.create_state()
    for _ in range(50):
        limiter.increment(state)

    decision = limiter.check(state)

    assert decision.allowed is True
    assert decision.reason is None


def test_hourly_budget_blocks_after_limit_and_resets_after_window() -> None:
    clock = FakeClock()
    limiter = BudgetLimiter(BudgetConfig(hourly_limit=3), clock=clock)
    state = limiter.create_state()

    for _ in range(3):
        assert limiter.check(state).allowed is True
        limiter.increment(state)

    clock.advance(10 * 60)
    blocked = limiter.check(state)
    assert blocked.allowed is False
    assert blocked.reason == "Hourly budget exhausted (3). Resets in 50 minutes."

    clock.advance(HOUR_SECONDS)
    allowed = limiter.check(state)
    assert allowed.allowed is True
    assert state.hourly_count == 0
    assert state.hour_window_start == clock.now
    assert state.daily_count == 3


def test_window_resets_exactly_at_its_length() -> None:
    clock = FakeClock()
    limiter = BudgetLimiter(BudgetConfig(hourly_limit=1), clock=clock)
    state = limiter.create_state()
    limiter.increment(state)

    clock.advance(HOUR_SECONDS - 1)
    assert limiter.check(state).allowed is False

    clock.advance(1)
    assert limiter.check(state).allowed is True


def test_remaining_minutes_round_up() -> None:
    clock = FakeClock()
    limiter = BudgetLimiter(BudgetConfig(hourly_limit=1), clock=clock)
    state = limiter.create_state()
    limiter.increment(state)
    clock.advance(30)

    decision = limiter.check(state)

    assert decision.reason is not None
    assert "Resets in 60 minutes." in decision.reason


def test_hourly_exhaustion_reported_before_daily_limit_is_reached() -> None:
    limiter = BudgetLimiter(BudgetConfig(hourly_limit=2, daily_limit=10), clock=FakeClock())
    state = limiter.create_state()
    limiter.increment(state)
    limiter.increment(state)

    decision = limiter.check(state)

    assert decision.allowed is False
    assert decision.reason is not None
    assert decision.reason.startswith("Hourly budget exhausted (2)")


def test_hourly_takes_precedence_when_both_are_exhausted() -> None:
    limiter = BudgetLimiter(BudgetConfig(hourly_limit=1, daily_limit=1), clock=FakeClock())
    state = limiter.create_state()
    limiter.increment(state)

    decision = limiter.check(state)

    assert decision.reason is not None
    assert decision.reason.startswith("Hourly")


def test_daily_budget_reports_hours_until_reset() -> None:
    clock = FakeClock()
    limiter = BudgetLimiter(BudgetConfig(daily_limit=2), clock=clock)
    state = limiter.create_state()
    limiter.increment(state)
    limiter.increment(state)
    clock.advance(2 * HOUR_SECONDS + 1)

    decision = limiter.check(state)

    assert decision.allowed is False
    assert decision.reason == "Daily budget exhausted (2). Resets in 22 hours."

    clock.advance(DAY_SECONDS)
    assert limiter.check(state).allowed is True
    assert state.daily_count == 0


def test_check_never_counts_usage() -> None:
    limiter = BudgetLimiter(BudgetConfig(hourly_limit=1), clock=FakeClock())
    state = limiter.create_state()

    for _ in range(5):
        assert limiter.check(state).allowed is True

    assert state.hourly_count == 0
    assert state.daily_count == 0

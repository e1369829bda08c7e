from __future__ import annotations

import unittest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

from core.exceptions import BudgetExceeded
from risk.budget import DailyBudget


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class DailyBudgetTests(unittest.TestCase):
    def test_concurrent_reservations_never_overspend(self) -> None:
        budget = DailyBudget(limit=10)

        def try_reserve(_):
            try:
                budget.reserve(1)
                return True
            except BudgetExceeded:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(try_reserve, range(50)))

        self.assertEqual(sum(outcomes), 10)
        self.assertEqual(budget.spent, 10)
        self.assertEqual(budget.remaining, 0)

    def test_rollback_restores_and_commit_keeps(self) -> None:
        budget = DailyBudget(limit=100)
        kept = budget.reserve(60)
        released = budget.reserve(40)
        with self.assertRaises(BudgetExceeded) as ctx:
            budget.reserve(1)
        self.assertEqual(ctx.exception.remaining, 0)

        budget.commit(kept)
        budget.rollback(released)
        self.assertEqual(budget.remaining, 40)

        budget.rollback(released)
        budget.rollback(kept)
        self.assertEqual(budget.remaining, 40)

    def test_resets_at_midnight(self) -> None:
        clock = Clock(datetime(2024, 5, 1, 23, 59))
        budget = DailyBudget(limit=100, clock=clock)
        yesterday = budget.reserve(70)

        clock.now += timedelta(minutes=2)
        self.assertEqual(budget.remaining, 100)

        budget.rollback(yesterday)
        self.assertEqual(budget.remaining, 100)
        budget.reserve(100)
        self.assertEqual(budget.remaining, 0)

    def test_non_positive_reservation_is_invalid(self) -> None:
        with self.assertRaises(ValueError):
            DailyBudget(limit=100).reserve(0)


if __name__ == "__main__":
    unittest.main()

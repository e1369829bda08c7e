from __future__ import annotations

import math
import unittest
from datetime import datetime

from core.types import Signal, TokenCandidate
from strategies.filter_pipeline import FilterCriteria, RangeCriterion, describe, evaluate, sell_confidence
from fakes import WorkspaceMixin


def candidate(**overrides) -> TokenCandidate:
    values = dict(
        mint="MintA",
        market_cap=11.5,
        volume=8.0,
        buy_count=80,
        sell_count=20,
        launcher_sol_balance=0.5,
        dev_buy=10.0,
        timestamp=datetime(2024, 1, 1, 12, 0),
        sol_invested=2.0,
    )
    values.update(overrides)
    return TokenCandidate(**values)


class FilterPipelineTests(unittest.TestCase):
    def test_market_cap_out_of_range_rejects(self) -> None:
        criteria = FilterCriteria(market_cap=RangeCriterion(True, 8, 15))
        decision = evaluate(candidate(market_cap=20), criteria)
        self.assertFalse(decision.accept)
        self.assertEqual(decision.rejected_signals, [Signal.MARKET_CAP])
        self.assertIn("market_cap=20 not in [8, 15]", describe(decision))

    def test_disabled_signal_never_rejects(self) -> None:
        criteria = FilterCriteria(market_cap=RangeCriterion(False, 8, 15))
        decision = evaluate(candidate(market_cap=1000), criteria)
        self.assertTrue(decision.accept)
        self.assertEqual(decision.checks, [])
        self.assertEqual(decision.confidence, 1.0)

    def test_confidence_peaks_at_range_centre(self) -> None:
        criteria = FilterCriteria(market_cap=RangeCriterion(True, 8, 15))
        centre = evaluate(candidate(market_cap=11.5), criteria)
        edge = evaluate(candidate(market_cap=8), criteria)
        self.assertAlmostEqual(centre.confidence, 1.0)
        self.assertAlmostEqual(edge.confidence, 0.5)
        self.assertAlmostEqual(sell_confidence(edge), 0.5)

    def test_unknown_launcher_balance_fails(self) -> None:
        criteria = FilterCriteria(launcher_balance=RangeCriterion(True, 0, 1))
        decision = evaluate(candidate(launcher_sol_balance=None), criteria)
        self.assertFalse(decision.accept)
        self.assertIn("launcher_sol_balance=unknown", describe(decision))

    def test_bundle_check(self) -> None:
        criteria = FilterCriteria(bundle_check=True)
        self.assertTrue(evaluate(candidate(is_bundled=False), criteria).accept)
        self.assertEqual(evaluate(candidate(is_bundled=True), criteria).rejected_signals, [Signal.BUNDLE])

    def test_inverted_range_is_invalid(self) -> None:
        with self.assertRaises(ValueError):
            RangeCriterion(True, 10, 5)


class FilterCriteriaConfigTests(WorkspaceMixin, unittest.TestCase):
    def test_from_config_maps_every_range(self) -> None:
        config = self.make_config(MIN_VOLUME="1", MAX_VOLUME="2", DEV_BUY_ENABLED="false")
        criteria = FilterCriteria.from_config(config)
        self.assertEqual(criteria.volume, RangeCriterion(True, 1.0, 2.0))
        self.assertFalse(criteria.dev_buy.enabled)
        self.assertEqual(criteria.sol_invested.maximum, math.inf)
        self.assertTrue(criteria.bundle_check)


if __name__ == "__main__":
    unittest.main()

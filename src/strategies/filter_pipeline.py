from dataclasses import dataclass, field
from typing import Dict, List, Optional
import math

from core.types import Decision, Signal, SignalCheck, TokenCandidate


@dataclass(frozen=True)
class RangeCriterion:
    enabled: bool
    minimum: float = -math.inf
    maximum: float = math.inf

    def __post_init__(self):
        if self.minimum > self.maximum:
            raise ValueError(f"Invalid range: min {self.minimum} > max {self.maximum}")

    def score(self, value: float) -> float:
        """0 outside the range; inside, 1 at the centre falling to 0.5 at a bound"""
        if value < self.minimum or value > self.maximum:
            return 0.0
        if math.isinf(self.minimum) or math.isinf(self.maximum):
            return 1.0
        half_width = (self.maximum - self.minimum) / 2
        if half_width == 0:
            return 1.0
        distance = min(value - self.minimum, self.maximum - value)
        return 0.5 + 0.5 * (distance / half_width)


@dataclass(frozen=True)
class FilterCriteria:
    market_cap: RangeCriterion = field(default_factory=lambda: RangeCriterion(False))
    volume: RangeCriterion = field(default_factory=lambda: RangeCriterion(False))
    buy_sell_count: RangeCriterion = field(default_factory=lambda: RangeCriterion(False))
    sol_invested: RangeCriterion = field(default_factory=lambda: RangeCriterion(False))
    launcher_balance: RangeCriterion = field(default_factory=lambda: RangeCriterion(False))
    dev_buy: RangeCriterion = field(default_factory=lambda: RangeCriterion(False))
    bundle_check: bool = False

    @classmethod
    def from_config(cls, config) -> "FilterCriteria":
        f, legacy = config.filters, config.legacy
        return cls(
            market_cap=RangeCriterion(f.market_cap_enabled, f.min_market_cap, f.max_market_cap),
            volume=RangeCriterion(f.volume_enabled, f.min_volume, f.max_volume),
            buy_sell_count=RangeCriterion(
                f.buy_sell_count_enabled, f.min_number_of_buy_sell, f.max_number_of_buy_sell),
            sol_invested=RangeCriterion(f.sol_invested_enabled, f.sol_invested, f.sol_invested_max),
            launcher_balance=RangeCriterion(
                f.launcher_sol_enabled, f.min_launcher_sol_balance, f.max_launcher_sol_balance),
            dev_buy=RangeCriterion(f.dev_buy_enabled, legacy.min_dev_buy, legacy.max_dev_buy),
            bundle_check=legacy.bundle_check,
        )

    def ranges(self) -> Dict[Signal, RangeCriterion]:
        return {
            Signal.MARKET_CAP: self.market_cap,
            Signal.VOLUME: self.volume,
            Signal.BUY_SELL_COUNT: self.buy_sell_count,
            Signal.SOL_INVESTED: self.sol_invested,
            Signal.LAUNCHER_BALANCE: self.launcher_balance,
            Signal.DEV_BUY: self.dev_buy,
        }


def _signal_value(candidate: TokenCandidate, signal: Signal) -> Optional[float]:
    if signal is Signal.MARKET_CAP:
        return candidate.market_cap
    if signal is Signal.VOLUME:
        return candidate.volume
    if signal is Signal.BUY_SELL_COUNT:
        return float(candidate.trade_count)
    if signal is Signal.SOL_INVESTED:
        return candidate.sol_invested
    if signal is Signal.LAUNCHER_BALANCE:
        return candidate.launcher_sol_balance
    if signal is Signal.DEV_BUY:
        return candidate.dev_buy
    return None


def evaluate(candidate: TokenCandidate, criteria: FilterCriteria) -> Decision:
    """Check a candidate against every enabled signal.

    Accepted only if all enabled signals pass; disabled signals are skipped
    entirely. An unknown value (e.g. launcher balance not yet fetched) fails
    its signal rather than passing it.
    """
    checks: List[SignalCheck] = []

    for signal, criterion in criteria.ranges().items():
        if not criterion.enabled:
            continue
        value = _signal_value(candidate, signal)
        if value is None:
            checks.append(SignalCheck(signal, False, None, criterion.minimum, criterion.maximum, 0.0))
            continue
        score = criterion.score(value)
        checks.append(SignalCheck(
            signal=signal,
            passed=score > 0,
            value=value,
            lower=criterion.minimum,
            upper=criterion.maximum,
            score=score,
        ))

    if criteria.bundle_check:
        passed = not candidate.is_bundled
        checks.append(SignalCheck(Signal.BUNDLE, passed, float(candidate.is_bundled), score=1.0 if passed else 0.0))

    reasons = [c for c in checks if not c.passed]
    confidence = sum(c.score for c in checks) / len(checks) if checks else 1.0

    return Decision(
        accept=not reasons,
        confidence=confidence,
        reasons=reasons,
        checks=checks,
    )


def sell_confidence(decision: Decision) -> float:
    """Confidence that a held token should be sold: the complement of its filter confidence"""
    return 1.0 - decision.confidence


def describe(decision: Decision) -> str:
    if decision.accept:
        return f"accepted (confidence {decision.confidence:.2f})"
    parts = []
    for r in decision.reasons:
        if r.value is None:
            parts.append(f"{r.signal.value}=unknown")
        elif r.signal is Signal.BUNDLE:
            parts.append("bundled launch")
        else:
            parts.append(f"{r.signal.value}={r.value:g} not in [{r.lower:g}, {r.upper:g}]")
    return f"rejected (confidence {decision.confidence:.2f}): " + "; ".join(parts)

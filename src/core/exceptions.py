from typing import List


class ConfigError(Exception):
    """Raised at startup when one or more settings are malformed or inconsistent"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid configuration:\n" + "\n".join(f"  - {e}" for e in self.errors))


class VenueFailure(Exception):
    """Raised by a venue adapter when a submission is rejected or cannot be sent"""

    def __init__(self, venue: str, reason: str):
        self.venue = venue
        self.reason = reason
        super().__init__(f"{venue}: {reason}")


class AllVenuesFailed(Exception):
    """Raised by the router when no venue succeeded before the intent deadline"""

    def __init__(self, intent, results):
        self.intent = intent
        self.results = list(results)
        summary = ", ".join(f"{r.venue}={r.outcome.value}" for r in self.results) or "no attempts"
        super().__init__(f"All venues failed for {intent.side.value} {intent.mint}: {summary}")


class BudgetExceeded(Exception):
    """Raised when a buy would take daily spend past DAILY_BUY_BUDGET"""

    def __init__(self, requested: int, remaining: int):
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Daily budget exceeded: requested {requested / 1e9:.4f} SOL, "
            f"remaining {remaining / 1e9:.4f} SOL"
        )


class StageSellFailure(Exception):
    """Raised when a stage sell keeps failing past its retry window"""

    def __init__(self, mint: str, stage_index: int, elapsed: float, last_error: str = ""):
        self.mint = mint
        self.stage_index = stage_index
        self.elapsed = elapsed
        self.last_error = last_error
        super().__init__(
            f"Stage {stage_index + 1} sell for {mint} still failing after {elapsed:.1f}s: {last_error}"
        )

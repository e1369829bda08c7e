from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
import uuid

LAMPORTS_PER_SOL = 1_000_000_000
TOKEN_DECIMALS = 6
TOKEN_UNIT = 10 ** TOKEN_DECIMALS


def sol_to_lamports(amount_sol: float) -> int:
    return int(round(amount_sol * LAMPORTS_PER_SOL))


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


class Side(Enum):
    BUY = "buy"
    SELL = "sell"


class Signal(Enum):
    """Filter signals a candidate can be checked against"""
    MARKET_CAP = "market_cap"
    VOLUME = "volume"
    BUY_SELL_COUNT = "buy_sell_count"
    SOL_INVESTED = "sol_invested"
    LAUNCHER_BALANCE = "launcher_sol_balance"
    DEV_BUY = "dev_buy"
    BUNDLE = "bundle"


class VenueOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class TokenCandidate:
    """Point-in-time snapshot of a token, built from observed trades.

    Market cap and volume are in thousands of USD, balances and amounts in SOL.
    """
    mint: str
    market_cap: float
    volume: float
    buy_count: int
    sell_count: int
    launcher_sol_balance: Optional[float]
    dev_buy: float
    timestamp: datetime
    sol_invested: float = 0.0
    price: float = 0.0
    launcher: str = ""
    is_bundled: bool = False
    first_seen: Optional[datetime] = None
    buy_flow_lamports: int = 0
    price_change_pct: float = 0.0

    @property
    def trade_count(self) -> int:
        return self.buy_count + self.sell_count

    @property
    def market_cap_usd(self) -> float:
        return self.market_cap * 1000.0


@dataclass(frozen=True)
class SignalCheck:
    signal: Signal
    passed: bool
    value: Optional[float]
    lower: Optional[float] = None
    upper: Optional[float] = None
    score: float = 0.0


@dataclass(frozen=True)
class Decision:
    accept: bool
    confidence: float
    reasons: List[SignalCheck] = field(default_factory=list)
    checks: List[SignalCheck] = field(default_factory=list)

    @property
    def rejected_signals(self) -> List[Signal]:
        return [r.signal for r in self.reasons]


@dataclass(frozen=True)
class TransactionIntent:
    """A decided trade awaiting submission.

    `amount` is lamports for buys and raw token units for sells. `price` is the
    last observed SOL-per-token price, used for min-out and synthetic fills.
    """
    side: Side
    mint: str
    amount: int
    deadline_ms: int
    unit_price: int
    unit_limit: int
    slippage_bps: int
    simulation: bool = False
    limit_mode: bool = False
    price: float = 0.0
    reason: str = ""
    intent_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def deadline_seconds(self) -> float:
        return self.deadline_ms / 1000.0

    @property
    def expected_tokens(self) -> int:
        """Token units a buy is expected to receive at the observed price"""
        if self.side is not Side.BUY or self.price <= 0:
            return 0
        return int(lamports_to_sol(self.amount) / self.price * TOKEN_UNIT)

    @property
    def expected_lamports(self) -> int:
        """Lamports a sell is expected to return at the observed price"""
        if self.side is not Side.SELL or self.price <= 0:
            return 0
        return sol_to_lamports(self.amount / TOKEN_UNIT * self.price)


@dataclass(frozen=True)
class VenueResult:
    venue: str
    outcome: VenueOutcome
    latency: float
    intent_id: str = ""
    signature: Optional[str] = None
    error: Optional[str] = None
    filled_amount: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.outcome is VenueOutcome.SUCCESS

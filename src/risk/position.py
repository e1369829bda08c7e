from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from core.types import TOKEN_UNIT


class PositionState(Enum):
    OPEN = "open"
    PARTIALLY_EXITED = "partially_exited"
    FULLY_EXITED = "fully_exited"
    FORCE_LIQUIDATED = "force_liquidated"


@dataclass
class ExitStage:
    """One scheduled partial exit.

    `percent` applies to the amount remaining when the stage fires; a `flush`
    stage sells everything left. `delay` is seconds after entry, None for
    stages with no time trigger.
    """
    index: int
    percent: float
    delay: Optional[float]
    flush: bool = False
    consumed: bool = False
    sold_amount: int = 0
    attempts: int = 0
    first_failure_at: Optional[float] = None
    last_error: str = ""
    escalated: bool = False

    def reset_failures(self):
        self.attempts = 0
        self.first_failure_at = None
        self.last_error = ""
        self.escalated = False


def staged_exits(stages: Sequence[Tuple[float, int]]) -> List[ExitStage]:
    """Stages from (percent, delay ms) pairs, ordered by delay.

    Every stage sells its own percent of what remains, so a remainder can
    outlive the last stage; with no stage configured the position is sold
    whole right away.
    """
    ordered = sorted((s for s in stages if s[0] > 0), key=lambda s: s[1])
    if not ordered:
        return [ExitStage(0, 100.0, 0.0, flush=True)]
    return [ExitStage(i, percent, delay_ms / 1000.0) for i, (percent, delay_ms) in enumerate(ordered)]


def take_profit_stop_loss_exit() -> List[ExitStage]:
    """A single full exit with no timer; fired by price triggers only"""
    return [ExitStage(0, 100.0, None, flush=True)]


@dataclass
class Position:
    """An open holding; amounts are raw token units"""
    mint: str
    entry_amount: int
    entry_time: float
    entry_price: float
    stages: List[ExitStage]
    source: str = "filter"
    entry_sol: int = 0
    tx_sig: str = ""
    wallet_copy_trading: str = ""
    remaining: int = field(default=-1)
    state: PositionState = PositionState.OPEN
    peak_price: float = 0.0
    last_price: float = 0.0
    sold_percent: float = 0.0
    sell_flow_lamports: int = 0
    proceeds_lamports: int = 0
    liquidation_pending: str = ""
    liquidation_failed_at: Optional[float] = None
    liquidation_escalated: bool = False

    def __post_init__(self):
        if self.remaining < 0:
            self.remaining = self.entry_amount
        if self.peak_price <= 0:
            self.peak_price = self.entry_price
        if self.last_price <= 0:
            self.last_price = self.entry_price

    @property
    def is_active(self) -> bool:
        return self.state in (PositionState.OPEN, PositionState.PARTIALLY_EXITED)

    @property
    def exited_stages(self) -> int:
        return sum(1 for s in self.stages if s.consumed)

    def next_stage(self) -> Optional[ExitStage]:
        for stage in self.stages:
            if not stage.consumed:
                return stage
        return None

    def next_due(self) -> Optional[float]:
        """Clock time at which the next stage becomes eligible"""
        stage = self.next_stage()
        if stage is None or stage.delay is None:
            return None
        return self.entry_time + stage.delay

    def stage_amount(self, stage: ExitStage, sell_all: bool = False) -> int:
        if sell_all or stage.flush:
            return self.remaining
        return min(int(self.remaining * stage.percent / 100), self.remaining)

    def record_sell(self, amount: int, lamports: int = 0):
        amount = min(amount, self.remaining)
        if self.entry_amount > 0:
            self.sold_percent = min(self.sold_percent + amount / self.entry_amount * 100, 100.0)
        self.remaining -= amount
        self.proceeds_lamports += lamports
        if self.remaining <= 0:
            self.remaining = 0
            self.state = PositionState.FULLY_EXITED
        elif self.state is PositionState.OPEN:
            self.state = PositionState.PARTIALLY_EXITED

    def consume(self, stage: ExitStage, sold_amount: int):
        stage.consumed = True
        stage.sold_amount = sold_amount
        stage.reset_failures()

    def close_remaining_stages(self):
        for stage in self.stages:
            if not stage.consumed:
                stage.consumed = True

    def add_tokens(self, amount: int):
        """Tokens from an earlier buy attempt that landed late"""
        self.entry_amount += amount
        self.remaining += amount
        if self.entry_amount > 0:
            sold = self.entry_amount - self.remaining
            self.sold_percent = sold / self.entry_amount * 100

    def update_price(self, price: float):
        self.last_price = price
        if price > self.peak_price:
            self.peak_price = price

    def drawdown_percent(self) -> float:
        if self.peak_price <= 0:
            return 0.0
        return (self.peak_price - self.last_price) / self.peak_price * 100

    def change_percent(self) -> float:
        if self.entry_price <= 0:
            return 0.0
        return (self.last_price - self.entry_price) / self.entry_price * 100

    def calculate_pnl(self, current_price: float) -> float:
        """Unrealized PnL of the remaining amount, in SOL"""
        return (current_price - self.entry_price) * self.remaining / TOKEN_UNIT

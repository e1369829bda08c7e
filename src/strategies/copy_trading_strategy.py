from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional
from core.types import Side
from data.pump_data_feed import TradeEvent
from utils.config import CopyTradingConfig
from utils.logger import TradingLogger


@dataclass
class Signal:
    is_valid: bool
    side: Optional[Side] = None
    wallet_address: Optional[str] = None
    transaction_hash: Optional[str] = None
    amount_sol: float = 0.0
    fraction: float = 0.0
    reason: str = ""


@dataclass
class TargetWalletState:
    wallet: str
    last_sequence: int = 0
    last_action: Optional[Side] = None
    last_mint: str = ""
    recent_signatures: Deque[str] = field(default_factory=lambda: deque(maxlen=256))
    holdings: Dict[str, int] = field(default_factory=dict)  # mint -> raw tokens seen bought

    def seen(self, event: TradeEvent) -> bool:
        if event.signature and event.signature in self.recent_signatures:
            return True
        return event.sequence > 0 and event.sequence <= self.last_sequence

    def record(self, event: TradeEvent):
        if event.sequence > self.last_sequence:
            self.last_sequence = event.sequence
        if event.signature:
            self.recent_signatures.append(event.signature)
        self.last_action = Side.BUY if event.is_buy else Side.SELL
        self.last_mint = event.mint


class CopyTradingMirror:
    """Turns trades by followed wallets into mirrored buy and sell signals.

    Without multi-target mode only the first configured wallet is followed.
    Buys are mirrored at BUY_SELL_PERCENT of the target's SOL amount while the
    token's market cap is at or under both thresholds; sells mirror the share
    of its holding the target sold.
    """

    def __init__(self, config: CopyTradingConfig, logger: TradingLogger):
        self.config = config
        self.logger = logger
        wallets: List[str] = list(config.target_wallets)
        followed = wallets if config.multi_target_mode else wallets[:1]
        self.targets: Dict[str, TargetWalletState] = {w: TargetWalletState(w) for w in followed}

    @property
    def enabled(self) -> bool:
        return self.config.enabled and bool(self.targets)

    def is_target(self, wallet: str) -> bool:
        return self.enabled and wallet in self.targets

    def generate_signal(self, trade_event: TradeEvent, market_cap_usd: float, holding: bool) -> Signal:
        if not self.is_target(trade_event.user):
            return Signal(is_valid=False)

        state = self.targets[trade_event.user]
        if state.seen(trade_event):
            return Signal(is_valid=False, wallet_address=state.wallet, reason="already processed")
        state.record(trade_event)

        if trade_event.is_buy:
            state.holdings[trade_event.mint] = state.holdings.get(trade_event.mint, 0) + trade_event.token_amount
            limit = min(self.config.mc_threshold_to_follow, self.config.mc_threshold_to_buy)
            if market_cap_usd > limit:
                self.logger.info(
                    f"Copy: skip {trade_event.mint} bought by {state.wallet}, "
                    f"market cap ${market_cap_usd:,.0f} above ${limit:,.0f}"
                )
                return Signal(is_valid=False, side=Side.BUY, wallet_address=state.wallet,
                              transaction_hash=trade_event.signature, reason="market cap above threshold")
            amount_sol = trade_event.sol * self.config.buy_sell_percent / 100
            return Signal(
                is_valid=amount_sol > 0,
                side=Side.BUY,
                wallet_address=state.wallet,
                transaction_hash=trade_event.signature,
                amount_sol=amount_sol,
                reason=f"copy buy of {state.wallet}",
            )

        prior = state.holdings.get(trade_event.mint, 0)
        fraction = min(trade_event.token_amount / prior, 1.0) if prior > 0 else 1.0
        remaining = prior - trade_event.token_amount
        if remaining > 0:
            state.holdings[trade_event.mint] = remaining
        else:
            state.holdings.pop(trade_event.mint, None)

        if not holding:
            return Signal(is_valid=False, side=Side.SELL, wallet_address=state.wallet,
                          transaction_hash=trade_event.signature, reason="no mirrored position")
        return Signal(
            is_valid=True,
            side=Side.SELL,
            wallet_address=state.wallet,
            transaction_hash=trade_event.signature,
            fraction=fraction,
            reason=f"copy sell of {state.wallet} ({fraction:.0%})",
        )

from dataclasses import dataclass, field
from datetime import datetime
from typing import List
import uuid
from core.types import Side, TransactionIntent, VenueOutcome, VenueResult, TOKEN_UNIT, lamports_to_sol, sol_to_lamports
from utils.logger import TradingLogger

NETWORK_FEE_LAMPORTS = 5_000


@dataclass
class SimulatedTransaction:
    timestamp: datetime
    intent_id: str
    side: Side
    mint: str
    amount: int
    execution_price: float
    filled_amount: int
    signature: str
    network_fee: int = NETWORK_FEE_LAMPORTS


class DryRunExecutor:
    """Fills intents at the observed price without touching the network.

    Every call returns a fresh signature, so the same intent run twice is two
    independent fills.
    """

    def __init__(self, logger: TradingLogger):
        self.logger = logger
        self.history: List[SimulatedTransaction] = []

    def execute(self, intent: TransactionIntent) -> VenueResult:
        signature = f"sim-{uuid.uuid4().hex}"
        slippage = intent.slippage_bps / 10000

        if intent.side is Side.BUY:
            execution_price = intent.price * (1 + slippage)
            filled = (
                int(lamports_to_sol(intent.amount) / execution_price * TOKEN_UNIT)
                if execution_price > 0 else 0
            )
        else:
            execution_price = intent.price * (1 - slippage)
            filled = max(sol_to_lamports(intent.amount / TOKEN_UNIT * execution_price) - NETWORK_FEE_LAMPORTS, 0)

        self.history.append(SimulatedTransaction(
            timestamp=datetime.now(),
            intent_id=intent.intent_id,
            side=intent.side,
            mint=intent.mint,
            amount=intent.amount,
            execution_price=execution_price,
            filled_amount=filled,
            signature=signature,
        ))
        self.logger.info(
            f"[SIM] {intent.side.value} {intent.mint} amount={intent.amount} "
            f"price={execution_price:.10f} filled={filled}"
        )
        return VenueResult(
            venue="simulation",
            outcome=VenueOutcome.SUCCESS,
            latency=0.0,
            intent_id=intent.intent_id,
            signature=signature,
            filled_amount=filled,
        )

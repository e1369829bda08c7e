from core.types import Side, TransactionIntent, sol_to_lamports


class IntentFactory:
    """Builds buy and sell intents carrying the configured fee, slippage and deadline settings"""

    def __init__(self, config):
        self.config = config

    def buy(self, mint: str, amount_sol: float, price: float, limit_mode: bool = False,
            reason: str = "") -> TransactionIntent:
        basic, advanced = self.config.basic, self.config.advanced
        return TransactionIntent(
            side=Side.BUY,
            mint=mint,
            amount=sol_to_lamports(amount_sol),
            deadline_ms=advanced.limit_wait_time if limit_mode else basic.max_wait_time,
            unit_price=basic.compute_unit_price,
            unit_limit=basic.unit_limit,
            slippage_bps=self.config.legacy.slippage,
            simulation=self.config.simulated,
            limit_mode=limit_mode,
            price=price,
            reason=reason,
        )

    def sell(self, mint: str, token_amount: int, price: float, reason: str = "") -> TransactionIntent:
        basic = self.config.basic
        return TransactionIntent(
            side=Side.SELL,
            mint=mint,
            amount=token_amount,
            deadline_ms=basic.max_wait_time,
            unit_price=basic.compute_unit_price,
            unit_limit=basic.unit_limit,
            slippage_bps=self.config.legacy.slippage,
            simulation=self.config.simulated,
            price=price,
            reason=reason,
        )

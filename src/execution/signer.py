from dataclasses import dataclass
from time import monotonic
from typing import Optional, Protocol, Sequence, Tuple
import asyncio
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from solana.rpc.async_api import AsyncClient
from core.types import Side, TransactionIntent
from .bonding_curve import (
    BondingCurveReader,
    get_bonding_curve_pda,
    get_associated_bonding_curve,
    calculate_buy_amount,
    calculate_sell_amount,
)
from .instructions import PumpInstructions
from utils.logger import TradingLogger


# (relay tip accounts, lamports)
Tip = Tuple[Sequence[str], int]


@dataclass(frozen=True)
class SignedTransaction:
    raw: bytes
    signature: str


class TransactionSigner(Protocol):
    """Turns an intent into one signed transaction.

    The same bytes go to every racing venue, so at most one copy can land.
    `tips` holds one transfer per venue that wants paying.
    """

    async def sign(self, intent: TransactionIntent, tips: Sequence[Tip],
                   slippage_bps: Optional[int] = None) -> SignedTransaction:
        ...


class PumpTransactionSigner:
    """Signs pump.fun buys and sells with the configured keypair"""

    def __init__(self, keypair: Keypair, client: AsyncClient, logger: TradingLogger,
                 blockhash_ttl: float = 20.0):
        self.keypair = keypair
        self.client = client
        self.logger = logger
        self.instructions = PumpInstructions(keypair.pubkey())
        self.curves = BondingCurveReader(client, logger)
        self.blockhash_ttl = blockhash_ttl
        self._blockhash: Optional[Hash] = None
        self._blockhash_at = 0.0
        self._blockhash_lock = asyncio.Lock()

    @classmethod
    def from_private_key(cls, private_key: str, client: AsyncClient, logger: TradingLogger) -> "PumpTransactionSigner":
        return cls(Keypair.from_base58_string(private_key), client, logger)

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    async def recent_blockhash(self) -> Hash:
        async with self._blockhash_lock:
            if self._blockhash is None or monotonic() - self._blockhash_at > self.blockhash_ttl:
                resp = await self.client.get_latest_blockhash()
                self._blockhash = resp.value.blockhash
                self._blockhash_at = monotonic()
            return self._blockhash

    async def sign(self, intent: TransactionIntent, tips: Sequence[Tip],
                   slippage_bps: Optional[int] = None) -> SignedTransaction:
        slippage = intent.slippage_bps if slippage_bps is None else slippage_bps
        mint = Pubkey.from_string(intent.mint)
        bonding_curve = get_bonding_curve_pda(mint)
        associated_bonding_curve = get_associated_bonding_curve(mint, bonding_curve)
        curve = await self.curves.fetch(mint)

        instructions = self.instructions.compute_budget(intent.unit_limit, intent.unit_price)
        user_ata, create_ata = self.instructions.user_ata(mint)

        if intent.side is Side.BUY:
            if curve is not None:
                _, min_tokens = calculate_buy_amount(intent.amount, curve, slippage)
            else:
                expected = intent.expected_tokens
                min_tokens = expected - expected * slippage // 10000
            if min_tokens <= 0:
                raise ValueError(f"Cannot size buy for {intent.mint}: no curve and no observed price")
            instructions.append(create_ata)
            instructions.append(self.instructions.buy(
                mint=mint,
                bonding_curve=bonding_curve,
                associated_bonding_curve=associated_bonding_curve,
                user_ata=user_ata,
                token_amount=min_tokens,
                max_sol_amount=intent.amount
            ))
        else:
            if curve is not None:
                _, min_sol = calculate_sell_amount(intent.amount, curve, slippage)
            else:
                expected = intent.expected_lamports
                min_sol = expected - expected * slippage // 10000
            instructions.append(self.instructions.sell(
                mint=mint,
                bonding_curve=bonding_curve,
                associated_bonding_curve=associated_bonding_curve,
                user_ata=user_ata,
                token_amount=intent.amount,
                min_sol_output=max(min_sol, 0)
            ))

        for tip_accounts, tip_lamports in tips:
            instructions += self.instructions.tip(tip_accounts, tip_lamports)
        tip_total = sum(lamports for accounts, lamports in tips if accounts and lamports > 0)

        blockhash = await self.recent_blockhash()
        message = Message.new_with_blockhash(instructions, self.keypair.pubkey(), blockhash)
        tx = Transaction([self.keypair], message, blockhash)
        signature = str(tx.signatures[0])
        self.logger.debug(
            f"Signed {intent.side.value} {intent.mint} amount={intent.amount} "
            f"slippage={slippage}bps tips={tip_total} sig={signature[:16]}..."
        )
        return SignedTransaction(raw=bytes(tx), signature=signature)

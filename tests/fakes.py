import asyncio
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional
import base58
from core.exceptions import AllVenuesFailed, VenueFailure
from core.types import Side, TransactionIntent, VenueOutcome, VenueResult, LAMPORTS_PER_SOL, TOKEN_UNIT
from data.pump_data_feed import TradeEvent
from execution.router import SubmissionLedger
from execution.signer import SignedTransaction
from execution.venues import VenueAdapter
from utils.config import BotConfig
from utils.logger import TradingLogger


class WorkspaceMixin:
    """Temp directory, a logger writing into it, and a simulated config builder"""

    def setUp(self) -> None:
        super().setUp()
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)
        self.logger = TradingLogger(name=f"test-{uuid.uuid4().hex[:8]}", log_dir=str(self.tmp_path / "logs"))

    def tearDown(self) -> None:
        for handler in list(self.logger.logger.handlers):
            handler.close()
            self.logger.logger.removeHandler(handler)
        self._tmp.cleanup()
        super().tearDown()

    def make_config(self, **settings) -> BotConfig:
        values = {
            "SIMULATION_MODE": "true",
            "LOG_CONSOLE": "false",
            "LOG_DIR": str(self.tmp_path / "logs"),
            "TRADE_JOURNAL_PATH": str(self.tmp_path / "trades.csv"),
        }
        values.update({k: str(v) for k, v in settings.items()})
        return BotConfig.from_mapping(values)


def wallet(seed: int) -> str:
    return base58.b58encode(bytes([seed]) * 32).decode()


def make_event(mint: str = "MintA", user: str = "", sol: float = 1.0, tokens: float = 35_000_000,
               is_buy: bool = True, signature: str = "", sequence: int = 0,
               blocktime: Optional[int] = 1_700_000_000, v_sol: float = 30.0,
               v_tokens: float = 1_073_000_000, real_sol: float = 0.0) -> TradeEvent:
    return TradeEvent(
        mint=mint,
        sol_amount=int(sol * LAMPORTS_PER_SOL),
        token_amount=int(tokens * TOKEN_UNIT),
        is_buy=is_buy,
        user=user or wallet(1),
        timestamp=datetime.fromtimestamp(blocktime or 1_700_000_000),
        virtual_sol_reserves=int(v_sol * LAMPORTS_PER_SOL),
        virtual_token_reserves=int(v_tokens * TOKEN_UNIT),
        real_sol_reserves=int(real_sol * LAMPORTS_PER_SOL),
        real_token_reserves=0,
        signature=signature,
        blocktime=blocktime,
        sequence=sequence,
    )


class FakeRouter:
    """Records intents; fills at the observed price or fails every submission"""

    def __init__(self):
        self.intents: List[TransactionIntent] = []
        self.fail = False
        self.ledger = SubmissionLedger()

    def sells(self) -> List[TransactionIntent]:
        return [i for i in self.intents if i.side is Side.SELL]

    def buys(self) -> List[TransactionIntent]:
        return [i for i in self.intents if i.side is Side.BUY]

    async def submit(self, intent: TransactionIntent) -> VenueResult:
        self.intents.append(intent)
        if self.fail:
            raise AllVenuesFailed(intent, [
                VenueResult("fake", VenueOutcome.FAILURE, 0.0, intent.intent_id, error="rejected")
            ])
        filled = intent.expected_tokens if intent.side is Side.BUY else intent.expected_lamports
        return VenueResult(
            venue="fake",
            outcome=VenueOutcome.SUCCESS,
            latency=0.001,
            intent_id=intent.intent_id,
            signature=f"sig-{len(self.intents)}",
            filled_amount=filled or None,
        )


class FakeVenue(VenueAdapter):
    def __init__(self, name: str, logger, delay: float = 0.0, fail_times: int = 0, **kwargs):
        super().__init__(logger, **kwargs)
        self.name = name
        self.delay = delay
        self.fail_times = fail_times
        self.sent: List[SignedTransaction] = []
        self.cancelled = False

    async def _send(self, signed: SignedTransaction) -> str:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        self.sent.append(signed)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise VenueFailure(self.name, "rejected")
        return signed.signature


class FakeSigner:
    def __init__(self):
        self.calls = []
        self.tips = []

    async def sign(self, intent, tips, slippage_bps=None) -> SignedTransaction:
        self.calls.append((intent, slippage_bps))
        self.tips.append(list(tips))
        return SignedTransaction(b"\x01" * 64, f"sig-{len(self.calls)}")


class FakeNotifier:
    def __init__(self):
        self.messages: List[str] = []

    async def send(self, message: str) -> bool:
        self.messages.append(message)
        return True


class FakeHealth:
    def __init__(self, healthy: bool = True):
        self.healthy = healthy

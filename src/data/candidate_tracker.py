from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from time import time
from typing import Callable, Deque, Dict, Optional, Set, Tuple
import asyncio
import aiohttp
from solders.pubkey import Pubkey
from solana.rpc.async_api import AsyncClient
from core.types import TokenCandidate, lamports_to_sol
from execution.constants import PUMP_TOTAL_SUPPLY
from .pump_data_feed import TradeEvent
from utils.logger import TradingLogger

COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price?ids=solana&vs_currencies=usd"


class SolPriceProvider:
    """SOL/USD from CoinGecko, cached; keeps the last good value on failure"""

    def __init__(self, logger: TradingLogger, default_price: float = 150.0, ttl: float = 60.0):
        self.logger = logger
        self.price = default_price
        self.ttl = ttl
        self.updated_at = 0.0

    async def refresh(self) -> float:
        if time() - self.updated_at < self.ttl:
            return self.price
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=5)) as session:
                async with session.get(COINGECKO_URL) as response:
                    data = await response.json()
            self.price = float(data["solana"]["usd"])
            self.updated_at = time()
            self.logger.debug(f"SOL price updated: ${self.price:.2f}")
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError, ValueError) as e:
            self.logger.warning(f"Failed to refresh SOL price, keeping ${self.price:.2f}: {str(e)}")
        return self.price

    async def run(self):
        while True:
            await self.refresh()
            await asyncio.sleep(self.ttl)


class LauncherBalanceLookup:
    """Wallet SOL balances fetched in the background and cached"""

    def __init__(self, client: Optional[AsyncClient], logger: TradingLogger, max_entries: int = 10_000):
        self.client = client
        self.logger = logger
        self.max_entries = max_entries
        self.balances: "OrderedDict[str, float]" = OrderedDict()
        self._inflight: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()

    def get(self, wallet: str) -> Optional[float]:
        return self.balances.get(wallet)

    def set(self, wallet: str, balance_sol: float):
        self.balances[wallet] = balance_sol
        self.balances.move_to_end(wallet)
        while len(self.balances) > self.max_entries:
            self.balances.popitem(last=False)

    def request(self, wallet: str):
        if self.client is None or wallet in self.balances or wallet in self._inflight:
            return
        self._inflight.add(wallet)
        task = asyncio.create_task(self._fetch(wallet))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch(self, wallet: str):
        try:
            resp = await self.client.get_balance(Pubkey.from_string(wallet))
            self.set(wallet, lamports_to_sol(resp.value))
        except Exception as e:
            self.logger.warning(f"Failed to fetch balance for launcher {wallet}: {str(e)}")
        finally:
            self._inflight.discard(wallet)


@dataclass
class TokenStats:
    mint: str
    first_seen: datetime
    first_blocktime: Optional[int] = None
    launcher: str = ""
    dev_buy_lamports: int = 0
    early_buyers: Set[str] = field(default_factory=set)
    buy_count: int = 0
    sell_count: int = 0
    volume_lamports: int = 0
    buy_flow_lamports: int = 0
    real_sol_reserves: int = 0
    last_price: float = 0.0
    prices: Deque[Tuple[datetime, float]] = field(default_factory=lambda: deque(maxlen=512))

    @property
    def is_bundled(self) -> bool:
        return len(self.early_buyers) > 1


class CandidateTracker:
    """Folds trade events into per-mint statistics and candidate snapshots"""

    def __init__(self, prices: SolPriceProvider, balances: LauncherBalanceLookup,
                 price_window_seconds: int = 300, max_tokens: int = 20_000,
                 clock: Callable[[], datetime] = datetime.now):
        self.prices = prices
        self.balances = balances
        self.price_window = timedelta(seconds=price_window_seconds)
        self.max_tokens = max_tokens
        self.clock = clock
        self.tokens: "OrderedDict[str, TokenStats]" = OrderedDict()

    def update(self, event: TradeEvent) -> TokenCandidate:
        stats = self.tokens.get(event.mint)
        now = self.clock()
        if stats is None:
            stats = TokenStats(mint=event.mint, first_seen=now, first_blocktime=event.blocktime)
            self.tokens[event.mint] = stats
            while len(self.tokens) > self.max_tokens:
                self.tokens.popitem(last=False)
        else:
            self.tokens.move_to_end(event.mint)

        if event.is_buy:
            stats.buy_count += 1
            stats.buy_flow_lamports += event.sol_amount
            if not stats.launcher:
                stats.launcher = event.user
                stats.dev_buy_lamports = event.sol_amount
                self.balances.request(event.user)
            if event.blocktime is not None and event.blocktime == stats.first_blocktime:
                stats.early_buyers.add(event.user)
        else:
            stats.sell_count += 1

        stats.volume_lamports += event.sol_amount
        stats.real_sol_reserves = event.real_sol_reserves
        price = event.virtual_price or event.price
        stats.last_price = price
        stats.prices.append((now, price))
        return self._snapshot(stats, now)

    def snapshot(self, mint: str) -> Optional[TokenCandidate]:
        stats = self.tokens.get(mint)
        if stats is None:
            return None
        return self._snapshot(stats, self.clock())

    def _price_change(self, stats: TokenStats, now: datetime) -> float:
        cutoff = now - self.price_window
        while len(stats.prices) > 1 and stats.prices[0][0] < cutoff:
            stats.prices.popleft()
        oldest = stats.prices[0][1] if stats.prices else 0.0
        if oldest <= 0:
            return 0.0
        return (stats.last_price - oldest) / oldest * 100

    def _snapshot(self, stats: TokenStats, now: datetime) -> TokenCandidate:
        sol_usd = self.prices.price
        market_cap_usd = stats.last_price * PUMP_TOTAL_SUPPLY * sol_usd
        return TokenCandidate(
            mint=stats.mint,
            market_cap=market_cap_usd / 1000,
            volume=lamports_to_sol(stats.volume_lamports) * sol_usd / 1000,
            buy_count=stats.buy_count,
            sell_count=stats.sell_count,
            launcher_sol_balance=self.balances.get(stats.launcher) if stats.launcher else None,
            dev_buy=lamports_to_sol(stats.dev_buy_lamports),
            timestamp=now,
            sol_invested=lamports_to_sol(stats.real_sol_reserves),
            price=stats.last_price,
            launcher=stats.launcher,
            is_bundled=stats.is_bundled,
            first_seen=stats.first_seen,
            buy_flow_lamports=stats.buy_flow_lamports,
            price_change_pct=self._price_change(stats, now),
        )

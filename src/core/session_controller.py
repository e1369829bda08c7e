from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple
import asyncio
from core.exceptions import AllVenuesFailed, BudgetExceeded
from core.types import Side, TokenCandidate, VenueResult, lamports_to_sol, sol_to_lamports
from data.pump_data_feed import TradeEvent
from execution.intents import IntentFactory
from strategies.copy_trading_strategy import CopyTradingMirror
from strategies.filter_pipeline import FilterCriteria, describe, evaluate
from utils.config import TimerConfig
from utils.logger import TradingLogger


class MintStatus(Enum):
    CHECKING = "checking"
    BUYING = "buying"
    BOUGHT = "bought"
    SELLING = "selling"
    SOLD = "sold"
    FAILURE = "failure"


class TimeWindow:
    """Time-of-day window for new buys; a start after the stop wraps past midnight"""

    def __init__(self, config: TimerConfig):
        self.enabled = config.enabled
        self.start = config.start_time
        self.stop = config.stop_time

    def is_open(self, now: datetime) -> bool:
        if not self.enabled:
            return True
        t = now.time().replace(second=0, microsecond=0)
        if self.start <= self.stop:
            return self.start <= t <= self.stop
        return t >= self.start or t <= self.stop


class SessionController:
    """Gates and dispatches every trade decision.

    Feed callbacks only enqueue; a pool of workers drains the queue so a slow
    submission never stalls intake. Trades by our own wallet and by followed
    wallets go to a separate queue, drained in order by one worker. Each event updates open positions, the
    copy mirror and the candidate tracker, then may produce a buy. Buys need
    an open time window, a healthy feed and daily budget; sells are always
    allowed.
    """

    def __init__(self, config, router, exit_manager, budget, tracker, logger: TradingLogger,
                 health=None, mirror: Optional[CopyTradingMirror] = None, notifier=None,
                 wallet: Optional[str] = None, clock: Callable[[], datetime] = datetime.now):
        self.config = config
        self.router = router
        self.exit_manager = exit_manager
        self.budget = budget
        self.tracker = tracker
        self.logger = logger
        self.health = health
        self.mirror = mirror
        self.notifier = notifier
        self.wallet = wallet
        self.clock = clock

        self.intents = IntentFactory(config)
        self.criteria = FilterCriteria.from_config(config)
        self.window = TimeWindow(config.timer)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=config.runtime.event_queue_size)
        # own and followed-wallet trades, drained in order by a single worker
        self.priority_queue: asyncio.Queue = asyncio.Queue(maxsize=config.runtime.event_queue_size)
        self.status: Dict[str, MintStatus] = {}
        self.inverse_bought: Set[str] = set()
        self._rejection_logged: Set[str] = set()
        self._window_open: Optional[bool] = None
        self._tasks: List[asyncio.Task] = []
        self.is_running = False

        self.stats = {
            'events': 0,
            'dropped': 0,
            'buys': 0,
            'failed_buys': 0,
            'rejections': 0,
            'inverse_buys': 0,
            'copy_buys': 0,
            'copy_sells': 0,
        }

    # Ingestion

    def is_priority(self, event: TradeEvent) -> bool:
        if self.wallet and event.user == self.wallet:
            return True
        return self.mirror is not None and self.mirror.is_target(event.user)

    async def enqueue(self, event: TradeEvent):
        """Feed callback; never blocks"""
        queue = self.priority_queue if self.is_priority(event) else self.queue
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            self.stats['dropped'] += 1
            if self.stats['dropped'] % 1000 == 1:
                self.logger.warning(f"Event queue full, dropped {self.stats['dropped']} events so far")

    async def _worker(self, worker_id: int, queue: asyncio.Queue):
        while True:
            event = await queue.get()
            try:
                await self.process_event(event)
            except Exception as e:
                self.logger.error(f"Worker {worker_id} failed on {event.mint} ({event.signature}): {str(e)}")
            finally:
                queue.task_done()

    async def process_event(self, event: TradeEvent):
        self.stats['events'] += 1

        if self.wallet and event.user == self.wallet:
            self._reconcile_own_trade(event)
            self.tracker.update(event)
            return

        if self.exit_manager.has_position(event.mint):
            await self.exit_manager.on_price(
                event.mint,
                event.virtual_price or event.price,
                sell_lamports=0 if event.is_buy else event.sol_amount,
            )

        candidate = self.tracker.update(event)

        if self.mirror is not None and self.mirror.is_target(event.user):
            await self._mirror(event, candidate)
            return

        await self.evaluate(candidate)

    def _reconcile_own_trade(self, event: TradeEvent):
        late = self.router.ledger.confirm(event.signature)
        if late is None:
            return
        self.logger.warning(f"Earlier {late.intent.side.value} attempt via {late.venue} landed late: {late.signature}")
        self.exit_manager.record_late_fill(late.intent)

    # Decisions

    def can_buy(self) -> Tuple[bool, str]:
        if not self.window.is_open(self.clock()):
            return False, "outside trading window"
        if self.health is not None and not self.health.healthy:
            return False, "event feed unhealthy"
        return True, ""

    def is_stale(self, candidate: TokenCandidate) -> bool:
        if candidate.first_seen is None:
            return False
        age = self.clock() - candidate.first_seen
        return age > timedelta(milliseconds=self.config.legacy.min_last_time)

    async def evaluate(self, candidate: TokenCandidate) -> Optional[VenueResult]:
        mint = candidate.mint
        if self.status.setdefault(mint, MintStatus.CHECKING) is not MintStatus.CHECKING:
            return None
        if candidate.buy_flow_lamports < self.config.basic.threshold_buy:
            return None
        if self.is_stale(candidate):
            return None

        decision = evaluate(candidate, self.criteria)
        min_confidence = self.config.advanced.min_buy_confidence

        if decision.accept and decision.confidence >= min_confidence:
            advanced = self.config.advanced
            limit_mode = abs(candidate.price_change_pct) >= advanced.price_delta_threshold
            amount = advanced.limit_buy_amount_in_limit_wait_time if limit_mode else self.config.basic.token_amount
            self.logger.info(f"Candidate {mint} {describe(decision)}{' [limit mode]' if limit_mode else ''}")
            return await self.buy(mint, amount, candidate.price, source="filter",
                                  reason=describe(decision), limit_mode=limit_mode)

        self.stats['rejections'] += 1
        if mint not in self._rejection_logged:
            self._rejection_logged.add(mint)
            if decision.accept:
                self.logger.info(
                    f"Candidate {mint} passed filters but confidence {decision.confidence:.2f} < {min_confidence:.2f}"
                )
            else:
                self.logger.info(f"Candidate {mint} {describe(decision)}")

        if (self.config.inverse_buy.enabled and not decision.accept
                and mint not in self.inverse_bought and self.can_buy()[0]):
            self.inverse_bought.add(mint)
            result = await self.buy(mint, self.config.inverse_buy.buy_amount, candidate.price,
                                    source="inverse", reason="inverse buy on rejection")
            if result is not None:
                self.stats['inverse_buys'] += 1
            return result
        return None

    async def _mirror(self, event: TradeEvent, candidate: TokenCandidate):
        position = self.exit_manager.positions.get(event.mint)
        mirrored = (position is not None and position.is_active and position.source == "copy"
                    and position.wallet_copy_trading == event.user)
        signal = self.mirror.generate_signal(event, candidate.market_cap_usd, holding=mirrored)
        if not signal.is_valid:
            return
        if signal.side is Side.BUY:
            result = await self.buy(event.mint, signal.amount_sol, candidate.price, source="copy",
                                    reason=signal.reason, wallet=signal.wallet_address)
            if result is not None:
                self.stats['copy_buys'] += 1
        else:
            self.status[event.mint] = MintStatus.SELLING
            sold = await self.exit_manager.sell_fraction(event.mint, signal.fraction, signal.reason)
            if sold:
                self.stats['copy_sells'] += 1
            self.status[event.mint] = MintStatus.BOUGHT if self.exit_manager.has_position(event.mint) else MintStatus.SOLD

    async def buy(self, mint: str, amount_sol: float, price: float, source: str, reason: str = "",
                  limit_mode: bool = False, wallet: str = "") -> Optional[VenueResult]:
        """Reserve budget, submit through the router and open the position"""
        allowed, why = self.can_buy()
        if not allowed:
            self.logger.debug(f"Buy of {mint} skipped: {why}")
            return None
        if price <= 0:
            self.logger.warning(f"Buy of {mint} skipped: no observed price")
            return None
        if sol_to_lamports(amount_sol) <= 0:
            self.logger.warning(f"Buy of {mint} ({source}) skipped: amount {amount_sol} SOL is under one lamport")
            return None

        previous = self.status.get(mint, MintStatus.CHECKING)
        if previous is MintStatus.BUYING:
            return None
        self.status[mint] = MintStatus.BUYING

        intent = self.intents.buy(mint, amount_sol, price, limit_mode=limit_mode, reason=reason)
        try:
            reservation = self.budget.reserve(intent.amount)
        except BudgetExceeded as e:
            self.logger.warning(f"Buy of {mint} rejected: {str(e)}")
            self.status[mint] = previous
            return None

        try:
            result = await self.router.submit(intent)
        except AllVenuesFailed as e:
            self.budget.rollback(reservation)
            self.status[mint] = MintStatus.FAILURE
            self.stats['failed_buys'] += 1
            self.logger.error(f"Buy of {mint} failed, budget restored: {str(e)}")
            return None
        except BaseException:
            self.budget.rollback(reservation)
            self.status[mint] = previous
            raise
        self.budget.commit(reservation)

        tokens = result.filled_amount or intent.expected_tokens
        self.exit_manager.open_position(
            mint, tokens, price, entry_sol=intent.amount, source=source,
            tx_sig=result.signature or "", wallet=wallet,
        )
        self.status[mint] = MintStatus.BOUGHT
        self.stats['buys'] += 1
        self.logger.info(
            f"Bought {mint} ({source}) for {amount_sol:.4f} SOL via {result.venue} "
            f"in {result.latency * 1000:.0f}ms; {lamports_to_sol(self.budget.remaining):.4f} SOL left today"
        )
        await self._notify(f"Bought {mint} ({source}) for {amount_sol:.4f} SOL via {result.venue}")
        return result

    def status_of(self, mint: str) -> Optional[MintStatus]:
        position = self.exit_manager.positions.get(mint)
        if position is not None and not position.is_active:
            return MintStatus.SOLD
        return self.status.get(mint)

    # Periodic work

    async def check_window(self) -> bool:
        """Handle window transitions; liquidates on close when auto-sell is on"""
        is_open = self.window.is_open(self.clock())
        was_open = self._window_open
        self._window_open = is_open
        if was_open is None or was_open == is_open:
            return is_open
        if is_open:
            self.logger.info("Trading window opened, new buys allowed")
        else:
            self.logger.warning("Trading window closed, new buys paused")
            if self.config.timer.auto_sell_on_stop:
                count = await self.exit_manager.liquidate_all("trading window closed")
                await self._notify(f"Trading window closed, liquidated {count} position(s)")
        return is_open

    async def _timer_loop(self, interval: float = 1.0):
        while self.is_running:
            try:
                await self.check_window()
            except Exception as e:
                self.logger.error(f"Timer check failed: {str(e)}")
            await asyncio.sleep(interval)

    async def _review_loop(self):
        period = self.config.advanced.review_cycle_duration / 1000.0
        while self.is_running:
            await asyncio.sleep(period)
            try:
                triggered = await self.exit_manager.review(self.tracker.snapshot, self.criteria)
                if triggered:
                    self.logger.info(f"Review triggered exits for {', '.join(triggered)}")
            except Exception as e:
                self.logger.error(f"Position review failed: {str(e)}")

    async def start(self):
        self.is_running = True
        if self.config.mode.live_mode and self.config.simulated:
            self.logger.warning("Simulation mode is on; LIVE_MODE is ignored and nothing is sent")
        workers = self.config.runtime.event_workers
        self._tasks = [asyncio.create_task(self._worker(i, self.queue)) for i in range(workers)]
        self._tasks.append(asyncio.create_task(self._worker(workers, self.priority_queue)))
        self._tasks.append(asyncio.create_task(self.exit_manager.run()))
        self._tasks.append(asyncio.create_task(self._timer_loop()))
        self._tasks.append(asyncio.create_task(self._review_loop()))
        self.logger.info(f"Session controller started with {workers} workers")

    async def stop(self, timeout: float = 10.0):
        self.logger.critical("Session controller stopping")
        self.is_running = False
        try:
            await asyncio.wait_for(asyncio.gather(self.queue.join(), self.priority_queue.join()), timeout=timeout)
        except asyncio.TimeoutError:
            pending = self.queue.qsize() + self.priority_queue.qsize()
            self.logger.warning(f"Shutdown with {pending} events unprocessed")
        if self.config.timer.auto_sell_on_stop:
            await self.exit_manager.liquidate_all("shutdown")
        await self.exit_manager.stop()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self.logger.info(f"Session stats: {self.stats}")

    async def _notify(self, text: str):
        if self.notifier is None:
            return
        try:
            await self.notifier.send(text)
        except Exception as e:
            self.logger.error(f"Notification failed: {str(e)}")

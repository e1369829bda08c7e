from heapq import heappush, heappop
from typing import Callable, Dict, List, Optional, Set, Tuple
import asyncio
import itertools
import time
from core.exceptions import AllVenuesFailed, StageSellFailure
from core.types import Side, TokenCandidate, TransactionIntent
from execution.intents import IntentFactory
from strategies.filter_pipeline import FilterCriteria, evaluate, sell_confidence
from .position import (
    ExitStage,
    Position,
    PositionState,
    staged_exits,
    take_profit_stop_loss_exit,
)
from utils.logger import TradingLogger

LIQUIDATION = -1


class ExitManager:
    """Owns open positions and drives their exits.

    Timed stages sit in a min-heap keyed by due time; the scheduler sleeps until
    the nearest one. Price triggers (drawdown, take-profit/stop-loss, sell
    pressure) and the periodic review fire the next stage early. Every sell for
    a position runs under that position's lock, so stages fire one at a time and
    in order. A failed sell leaves its stage pending and is retried.
    """

    def __init__(self, config, router, logger: TradingLogger,
                 clock: Callable[[], float] = time.monotonic,
                 notifier=None, journal=None, retry_interval: float = 1.0):
        self.config = config
        self.router = router
        self.logger = logger
        self.clock = clock
        self.notifier = notifier
        self.journal = journal
        self.retry_interval = retry_interval
        self.intents = IntentFactory(config)

        self.positions: Dict[str, Position] = {}
        self.position_locks: Dict[str, asyncio.Lock] = {}
        self._heap: List[Tuple[float, int, str, int]] = []
        self._live_entry: Dict[str, int] = {}
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()
        self.is_running = False

    def lock(self, mint: str) -> asyncio.Lock:
        if mint not in self.position_locks:
            self.position_locks[mint] = asyncio.Lock()
        return self.position_locks[mint]

    def build_stages(self) -> List[ExitStage]:
        if self.config.exit_strategy == "staged":
            return staged_exits(self.config.private_logic.stages)
        return take_profit_stop_loss_exit()

    def active_positions(self) -> List[Position]:
        return [p for p in self.positions.values() if p.is_active]

    def has_position(self, mint: str) -> bool:
        position = self.positions.get(mint)
        return position is not None and position.is_active

    def open_position(self, mint: str, amount: int, price: float, entry_sol: int = 0,
                      source: str = "filter", tx_sig: str = "", wallet: str = "") -> Position:
        existing = self.positions.get(mint)
        if existing is not None and existing.is_active:
            existing.add_tokens(amount)
            existing.entry_sol += entry_sol
            self.logger.info(f"Added {amount} tokens to open position {mint}")
            return existing

        position = Position(
            mint=mint,
            entry_amount=amount,
            entry_time=self.clock(),
            entry_price=price,
            stages=self.build_stages(),
            source=source,
            entry_sol=entry_sol,
            tx_sig=tx_sig,
            wallet_copy_trading=wallet,
        )
        self.positions[mint] = position
        self._schedule(position)
        if self.journal:
            self.journal.record_entry(position)
        self.logger.info(
            f"Opened {source} position {mint}: {amount} tokens at {price:.10f}, "
            f"{len(position.stages)} exit stage(s) [{self.config.exit_strategy}]"
        )
        return position

    def _schedule(self, position: Position, at: Optional[float] = None, stage_index: Optional[int] = None):
        """Replace the position's heap entry; at most one is live per position"""
        if stage_index is None:
            stage = position.next_stage()
            if stage is None:
                return
            stage_index = stage.index
        due = at if at is not None else position.next_due()
        if due is None:
            self._live_entry.pop(position.mint, None)
            return
        seq = next(self._seq)
        self._live_entry[position.mint] = seq
        heappush(self._heap, (due, seq, position.mint, stage_index))
        self._wakeup.set()

    def _pop_due(self, now: float) -> List[Tuple[str, int]]:
        due = []
        while self._heap and self._heap[0][0] <= now:
            _, seq, mint, stage_index = heappop(self._heap)
            if self._live_entry.get(mint) != seq:
                continue
            del self._live_entry[mint]
            due.append((mint, stage_index))
        return due

    async def tick(self, now: Optional[float] = None) -> int:
        """Fire every entry due at `now`; returns how many were due"""
        now = self.clock() if now is None else now
        due = self._pop_due(now)
        if due:
            await asyncio.gather(*(self._fire_due(mint, index, now) for mint, index in due))
        return len(due)

    async def run(self):
        self.is_running = True
        self.logger.info("Exit scheduler started")
        while self.is_running:
            self._wakeup.clear()
            timeout = None
            if self._heap:
                timeout = max(self._heap[0][0] - self.clock(), 0)
            if timeout is None or timeout > 0:
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass
            if not self.is_running:
                break
            now = self.clock()
            for mint, index in self._pop_due(now):
                task = asyncio.create_task(self._fire_due(mint, index, now))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def stop(self):
        self.is_running = False
        self._wakeup.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _fire_due(self, mint: str, stage_index: int, now: float):
        try:
            if stage_index == LIQUIDATION:
                position = self.positions.get(mint)
                if position is not None and position.liquidation_pending:
                    await self.force_liquidate(mint, position.liquidation_pending, now)
                return
            async with self.lock(mint):
                position = self.positions.get(mint)
                if position is None or not position.is_active:
                    return
                stage = position.next_stage()
                if stage is None or stage.index != stage_index:
                    return
                reason = "retry" if stage.attempts else "timer"
                await self._run_stage(position, stage, reason, now)
        except Exception as e:
            self.logger.error(f"Error firing exit for {mint}: {str(e)}")

    async def _run_stage(self, position: Position, stage: ExitStage, reason: str, now: float) -> bool:
        """Sell one stage; caller holds the position lock"""
        sell_all = self.config.basic.sell_all_tokens
        amount = position.stage_amount(stage, sell_all)
        if amount <= 0:
            position.consume(stage, 0)
            self._schedule(position)
            return True

        label = f"stage {stage.index + 1}/{len(position.stages)}"
        intent = self.intents.sell(position.mint, amount, position.last_price, reason=f"{label} ({reason})")
        try:
            result = await self.router.submit(intent)
        except AllVenuesFailed as e:
            self._stage_failed(position, stage, str(e), now)
            return False

        position.record_sell(amount, result.filled_amount or 0)
        position.consume(stage, amount)
        if position.remaining == 0:
            position.close_remaining_stages()

        self.logger.info(
            f"Exit {label} for {position.mint} ({reason}): sold {amount} via {result.venue}, "
            f"{position.sold_percent:.1f}% of entry sold, {position.remaining} left"
        )
        if self.journal:
            self.journal.record_exit(position, amount, result.filled_amount or 0, f"{label} {reason}", result.signature)
        if not position.is_active:
            await self._notify(f"Exited {position.mint} ({reason}), proceeds {position.proceeds_lamports / 1e9:.4f} SOL")
        elif position.next_stage() is None:
            self.logger.info(f"Exit stages done for {position.mint}, holding {position.remaining} until liquidation")
        else:
            self._schedule(position)
        return True

    def _check_retry_window(self, position: Position, stage: ExitStage, now: float):
        elapsed = now - stage.first_failure_at
        if elapsed >= self.config.basic.time_exceed and not stage.escalated:
            raise StageSellFailure(position.mint, stage.index, elapsed, stage.last_error)

    def _stage_failed(self, position: Position, stage: ExitStage, error: str, now: float):
        stage.attempts += 1
        stage.last_error = error
        if stage.first_failure_at is None:
            stage.first_failure_at = now
        self.logger.warning(
            f"Stage {stage.index + 1} sell for {position.mint} failed (attempt {stage.attempts}), retrying"
        )
        try:
            self._check_retry_window(position, stage, now)
        except StageSellFailure as e:
            stage.escalated = True
            self.logger.critical(str(e))
            self._notify_later(f"ALERT: {e}")
        self._schedule(position, at=now + self.retry_interval, stage_index=stage.index)

    async def trigger_next(self, mint: str, reason: str, now: Optional[float] = None) -> bool:
        """Fire the next pending stage ahead of its timer"""
        now = self.clock() if now is None else now
        async with self.lock(mint):
            position = self.positions.get(mint)
            if position is None or not position.is_active or position.liquidation_pending:
                return False
            stage = position.next_stage()
            if stage is None or stage.attempts:
                return False
            return await self._run_stage(position, stage, reason, now)

    async def on_price(self, mint: str, price: float, sell_lamports: int = 0, now: Optional[float] = None):
        """Feed an observed trade on a held mint into the price triggers"""
        position = self.positions.get(mint)
        if position is None or not position.is_active or price <= 0:
            return
        position.update_price(price)
        position.sell_flow_lamports += sell_lamports
        if position.liquidation_pending:
            return

        if self.config.exit_strategy == "tp_sl":
            legacy = self.config.legacy
            change = position.change_percent()
            if legacy.take_profit and change >= legacy.take_profit_percent:
                await self.force_liquidate(mint, "take_profit", now)
                return
            if legacy.stop_loss and change <= -legacy.stop_loss_percent:
                await self.force_liquidate(mint, "stop_loss", now)
                return

        reason = None
        downing = self.config.basic.downing_percent
        if downing > 0 and position.drawdown_percent() >= downing:
            reason = "downing"
            position.peak_price = price
        elif position.sell_flow_lamports >= self.config.basic.threshold_sell:
            reason = "sell_pressure"
            position.sell_flow_lamports = 0
        if reason:
            await self.trigger_next(mint, reason, now)

    async def sell_fraction(self, mint: str, fraction: float, reason: str) -> bool:
        """Sell a fraction of what remains, outside the stage schedule"""
        async with self.lock(mint):
            position = self.positions.get(mint)
            if position is None or not position.is_active:
                return False
            amount = position.remaining if fraction >= 1 else int(position.remaining * fraction)
            if amount <= 0:
                return False
            intent = self.intents.sell(mint, amount, position.last_price, reason=reason)
            try:
                result = await self.router.submit(intent)
            except AllVenuesFailed as e:
                self.logger.error(f"Sell of {fraction:.0%} of {mint} failed: {str(e)}")
                return False
            position.record_sell(amount, result.filled_amount or 0)
            if position.remaining == 0:
                position.close_remaining_stages()
                self._live_entry.pop(mint, None)
            self.logger.info(f"Sold {amount} of {mint} ({reason}), {position.remaining} left")
            if self.journal:
                self.journal.record_exit(position, amount, result.filled_amount or 0, reason, result.signature)
            return True

    async def force_liquidate(self, mint: str, reason: str, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        async with self.lock(mint):
            position = self.positions.get(mint)
            if position is None or not position.is_active:
                return False
            amount = position.remaining
            intent = self.intents.sell(mint, amount, position.last_price, reason=f"liquidate ({reason})")
            try:
                result = await self.router.submit(intent)
            except AllVenuesFailed as e:
                position.liquidation_pending = reason
                if position.liquidation_failed_at is None:
                    position.liquidation_failed_at = now
                elapsed = now - position.liquidation_failed_at
                self.logger.error(f"Liquidation of {mint} ({reason}) failed, retrying: {str(e)}")
                if elapsed >= self.config.basic.time_exceed and not position.liquidation_escalated:
                    position.liquidation_escalated = True
                    self.logger.critical(f"Liquidation of {mint} still failing after {elapsed:.1f}s")
                    self._notify_later(f"ALERT: liquidation of {mint} still failing after {elapsed:.1f}s")
                self._schedule(position, at=now + self.retry_interval, stage_index=LIQUIDATION)
                return False

            position.record_sell(amount, result.filled_amount or 0)
            position.close_remaining_stages()
            position.state = PositionState.FORCE_LIQUIDATED
            position.liquidation_pending = ""
            self._live_entry.pop(mint, None)
            self.logger.info(f"Force liquidated {mint} ({reason}): sold {amount} via {result.venue}")
            if self.journal:
                self.journal.record_exit(position, amount, result.filled_amount or 0, f"liquidate {reason}",
                                         result.signature)
        await self._notify(f"Liquidated {mint} ({reason})")
        return True

    async def liquidate_all(self, reason: str) -> int:
        mints = [p.mint for p in self.active_positions()]
        if not mints:
            return 0
        self.logger.warning(f"Liquidating {len(mints)} open position(s): {reason}")
        results = await asyncio.gather(*(self.force_liquidate(m, reason) for m in mints), return_exceptions=True)
        for mint, outcome in zip(mints, results):
            if isinstance(outcome, Exception):
                self.logger.error(f"Error liquidating {mint}: {str(outcome)}")
        return sum(1 for r in results if r is True)

    async def review(self, lookup: Callable[[str], Optional[TokenCandidate]], criteria: FilterCriteria) -> List[str]:
        """Fire the next stage early for positions the filters have turned against"""
        threshold = self.config.advanced.min_sell_confidence
        triggered = []
        for position in self.active_positions():
            candidate = lookup(position.mint)
            if candidate is None:
                continue
            confidence = sell_confidence(evaluate(candidate, criteria))
            if confidence >= threshold:
                self.logger.info(f"Review: sell confidence {confidence:.2f} for {position.mint}")
                if await self.trigger_next(position.mint, "review"):
                    triggered.append(position.mint)
        return triggered

    def record_late_fill(self, intent: TransactionIntent):
        """Account for an earlier attempt that landed after the intent was settled"""
        position = self.positions.get(intent.mint)
        if intent.side is Side.BUY:
            tokens = intent.expected_tokens
            if position is not None and position.is_active:
                position.add_tokens(tokens)
            else:
                self.open_position(intent.mint, tokens, intent.price, entry_sol=intent.amount, source="late_fill")
            self.logger.warning(f"Late buy landing on {intent.mint} added {tokens} tokens")
        elif position is not None and position.is_active:
            position.record_sell(intent.amount)
            if position.remaining == 0:
                position.close_remaining_stages()
                self._live_entry.pop(intent.mint, None)
            self.logger.warning(f"Late sell landing on {intent.mint} removed {intent.amount} tokens")

    def _notify_later(self, text: str):
        if self.notifier is None:
            return
        task = asyncio.create_task(self._notify(text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _notify(self, text: str):
        if self.notifier is None:
            return
        try:
            await self.notifier.send(text)
        except Exception as e:
            self.logger.error(f"Notification failed: {str(e)}")

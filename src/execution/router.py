from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Set
import asyncio
import time
from core.exceptions import AllVenuesFailed, VenueFailure
from core.types import TransactionIntent, VenueOutcome, VenueResult
from .dry_run_executor import DryRunExecutor
from .signer import SignedTransaction, TransactionSigner
from .venues import VenueAdapter
from utils.logger import TradingLogger


@dataclass
class SubmissionRecord:
    intent: TransactionIntent
    signatures: Dict[str, str] = field(default_factory=dict)  # signature -> venue
    winner: Optional[str] = None


@dataclass(frozen=True)
class LateFill:
    """An earlier attempt at an intent that landed after a later one won"""
    intent: TransactionIntent
    venue: str
    signature: str


class SubmissionLedger:
    """Every signature sent per intent, for deduplicating on-chain confirmations"""

    def __init__(self, max_intents: int = 5000):
        self.max_intents = max_intents
        self.records: "OrderedDict[str, SubmissionRecord]" = OrderedDict()
        self.by_signature: Dict[str, str] = {}
        self.confirmed: Set[str] = set()

    def record(self, intent: TransactionIntent, venue: str, signature: str):
        rec = self.records.get(intent.intent_id)
        if rec is None:
            rec = SubmissionRecord(intent)
            self.records[intent.intent_id] = rec
            self._prune()
        rec.signatures[signature] = venue
        self.by_signature[signature] = intent.intent_id

    def mark_winner(self, intent_id: str, signature: Optional[str]):
        rec = self.records.get(intent_id)
        if rec is not None:
            rec.winner = signature

    def signatures_for(self, intent_id: str) -> Dict[str, str]:
        rec = self.records.get(intent_id)
        return dict(rec.signatures) if rec else {}

    def confirm(self, signature: str) -> Optional[LateFill]:
        """Register an on-chain confirmation.

        Returns a LateFill the first time a superseded attempt's signature is seen;
        None for the winner, repeats and unknown signatures.
        """
        if signature in self.confirmed:
            return None
        intent_id = self.by_signature.get(signature)
        if intent_id is None:
            return None
        self.confirmed.add(signature)
        rec = self.records.get(intent_id)
        if rec is None or rec.winner == signature:
            return None
        return LateFill(rec.intent, rec.signatures.get(signature, "unknown"), signature)

    def _prune(self):
        while len(self.records) > self.max_intents:
            _, old = self.records.popitem(last=False)
            for sig in old.signatures:
                self.by_signature.pop(sig, None)
                self.confirmed.discard(sig)


class ExecutionRouter:
    """Submits intents across venues under a per-intent deadline.

    With racing venues configured, one signed transaction goes to all of them and
    the first acceptance wins; the rest are cancelled. Every copy has the same
    signature, so the trade lands at most once. Without any, the direct RPC
    venue is retried up to `counter` times with slippage widening towards the
    intent's limit. Simulated intents never reach the network.
    """

    def __init__(
        self,
        venues: Sequence[VenueAdapter],
        signer: Optional[TransactionSigner],
        logger: TradingLogger,
        rpc_venue: Optional[VenueAdapter] = None,
        counter: int = 10,
        simulated: bool = False,
        ledger: Optional[SubmissionLedger] = None,
        dry_run: Optional[DryRunExecutor] = None
    ):
        self.venues = list(venues)
        self.signer = signer
        self.logger = logger
        self.rpc_venue = rpc_venue
        self.counter = max(counter, 1)
        self.simulated = simulated
        self.ledger = ledger or SubmissionLedger()
        self.dry_run = dry_run or DryRunExecutor(logger)

    async def submit(self, intent: TransactionIntent, venues: Optional[Sequence[VenueAdapter]] = None,
                     deadline: Optional[float] = None) -> VenueResult:
        """Returns the winning result or raises AllVenuesFailed.

        `deadline` is in seconds and defaults to the intent's own deadline.
        """
        if intent.simulation or self.simulated:
            return self.dry_run.execute(intent)

        timeout = intent.deadline_seconds if deadline is None else deadline
        racing = self.venues if venues is None else list(venues)
        if racing:
            return await self._race(intent, racing, timeout)
        if self.rpc_venue is not None:
            return await self._submit_with_retries(intent, self.rpc_venue, timeout)
        raise AllVenuesFailed(intent, [])

    async def _sign(self, intent: TransactionIntent, venues: Sequence[VenueAdapter],
                    slippage_bps: Optional[int] = None) -> SignedTransaction:
        """One transaction for all `venues`, carrying each venue's tip"""
        fees = [v.priority_fee for v in venues if v.priority_fee is not None]
        if fees:
            intent = replace(intent, unit_price=max(fees))
        tips = [(v.tip_accounts, v.tip_lamports) for v in venues]
        return await self.signer.sign(intent, tips, slippage_bps)

    async def _attempt(self, intent: TransactionIntent, venue: VenueAdapter,
                       signed: SignedTransaction) -> VenueResult:
        start = time.perf_counter()
        try:
            signature = await venue.submit(signed)
            latency = time.perf_counter() - start
            self.logger.info(
                f"{venue.name} accepted {intent.side.value} {intent.mint} in {latency * 1000:.0f}ms: {signature}"
            )
            return VenueResult(
                venue=venue.name,
                outcome=VenueOutcome.SUCCESS,
                latency=latency,
                intent_id=intent.intent_id,
                signature=signed.signature,
                filled_amount=intent.expected_tokens or intent.expected_lamports or None,
            )
        except VenueFailure as e:
            latency = time.perf_counter() - start
            self.logger.warning(f"{venue.name} failed {intent.side.value} {intent.mint} after {latency * 1000:.0f}ms: {e.reason}")
            return VenueResult(venue.name, VenueOutcome.FAILURE, latency, intent.intent_id, error=e.reason)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            latency = time.perf_counter() - start
            self.logger.error(f"Error submitting {intent.side.value} {intent.mint} via {venue.name}: {str(e)}")
            return VenueResult(venue.name, VenueOutcome.FAILURE, latency, intent.intent_id, error=str(e))

    async def _race(self, intent: TransactionIntent, venues: List[VenueAdapter], timeout: float) -> VenueResult:
        loop = asyncio.get_running_loop()
        end = loop.time() + timeout
        try:
            signed = await asyncio.wait_for(self._sign(intent, venues), timeout=timeout)
        except asyncio.TimeoutError:
            raise AllVenuesFailed(intent, [VenueResult(v.name, VenueOutcome.TIMEOUT, timeout, intent.intent_id,
                                                       error="deadline exceeded while signing") for v in venues])
        except Exception as e:
            self.logger.error(f"Error signing {intent.side.value} {intent.mint}: {str(e)}")
            raise AllVenuesFailed(intent, [VenueResult(v.name, VenueOutcome.FAILURE, 0.0, intent.intent_id,
                                                       error=str(e)) for v in venues])
        for venue in venues:
            self.ledger.record(intent, venue.name, signed.signature)

        tasks = {asyncio.create_task(self._attempt(intent, v, signed)): v for v in venues}
        pending = set(tasks)
        results: List[VenueResult] = []

        try:
            while pending:
                remaining = end - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                finished = [t.result() for t in done]
                successes = [r for r in finished if r.success]
                results.extend(r for r in finished if not r.success)
                if successes:
                    winner = min(successes, key=lambda r: r.latency)
                    self.ledger.mark_winner(intent.intent_id, winner.signature)
                    if pending:
                        self.logger.debug(
                            f"{winner.venue} won {intent.intent_id[:8]}, cancelling "
                            f"{', '.join(tasks[t].name for t in pending)}"
                        )
                    return winner
        finally:
            for t in pending:
                t.cancel()

        for t in pending:
            results.append(VenueResult(tasks[t].name, VenueOutcome.TIMEOUT, timeout, intent.intent_id,
                                       error="deadline exceeded"))
        self.logger.error(
            f"No venue succeeded for {intent.side.value} {intent.mint} within {timeout * 1000:.0f}ms"
        )
        raise AllVenuesFailed(intent, results)

    async def _retry_attempt(self, intent: TransactionIntent, venue: VenueAdapter, slippage_bps: int) -> VenueResult:
        try:
            signed = await self._sign(intent, [venue], slippage_bps)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Error signing {intent.side.value} {intent.mint}: {str(e)}")
            return VenueResult(venue.name, VenueOutcome.FAILURE, 0.0, intent.intent_id, error=str(e))
        self.ledger.record(intent, venue.name, signed.signature)
        return await self._attempt(intent, venue, signed)

    async def _submit_with_retries(self, intent: TransactionIntent, venue: VenueAdapter,
                                   timeout: float) -> VenueResult:
        loop = asyncio.get_running_loop()
        end = loop.time() + timeout
        results: List[VenueResult] = []

        for attempt in range(1, self.counter + 1):
            remaining = end - loop.time()
            if remaining <= 0:
                break
            slippage = max(intent.slippage_bps * attempt // self.counter, 1)
            try:
                result = await asyncio.wait_for(self._retry_attempt(intent, venue, slippage), timeout=remaining)
            except asyncio.TimeoutError:
                results.append(VenueResult(venue.name, VenueOutcome.TIMEOUT, remaining, intent.intent_id,
                                           error="deadline exceeded"))
                break
            if result.success:
                self.ledger.mark_winner(intent.intent_id, result.signature)
                return result
            results.append(result)
            self.logger.debug(f"RPC attempt {attempt}/{self.counter} failed for {intent.mint}")

        raise AllVenuesFailed(intent, results)

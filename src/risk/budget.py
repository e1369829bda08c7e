from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional
import threading
import uuid
from core.exceptions import BudgetExceeded
from core.types import lamports_to_sol
from utils.logger import TradingLogger


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    amount: int
    day: date


class DailyBudget:
    """Daily cap on buy spend, in lamports.

    A buy reserves its amount before dispatch, then commits on success or rolls
    back on failure. Each operation is one critical section, so concurrent
    buys can never overspend. Spend resets at local midnight; a rollback of a
    reservation from a previous day does not free capacity in the new one.
    """

    def __init__(self, limit: int, logger: Optional[TradingLogger] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.limit = limit
        self.logger = logger
        self.clock = clock
        self._lock = threading.Lock()
        self._day = clock().date()
        self._spent = 0
        self._outstanding = {}

    def _roll(self):
        today = self.clock().date()
        if today != self._day:
            if self.logger:
                self.logger.info(
                    f"Daily budget reset for {today} (spent {lamports_to_sol(self._spent):.4f} SOL on {self._day})"
                )
            self._day = today
            self._spent = 0

    @property
    def spent(self) -> int:
        with self._lock:
            self._roll()
            return self._spent

    @property
    def remaining(self) -> int:
        with self._lock:
            self._roll()
            return max(self.limit - self._spent, 0)

    def reserve(self, amount: int) -> Reservation:
        if amount <= 0:
            raise ValueError(f"Reservation amount must be positive, got {amount}")
        with self._lock:
            self._roll()
            remaining = self.limit - self._spent
            if amount > remaining:
                raise BudgetExceeded(amount, max(remaining, 0))
            self._spent += amount
            reservation = Reservation(uuid.uuid4().hex, amount, self._day)
            self._outstanding[reservation.reservation_id] = reservation
        if self.logger:
            self.logger.debug(
                f"Reserved {lamports_to_sol(amount):.4f} SOL, "
                f"{lamports_to_sol(self.limit - self._spent):.4f} SOL left today"
            )
        return reservation

    def commit(self, reservation: Reservation):
        with self._lock:
            self._outstanding.pop(reservation.reservation_id, None)

    def rollback(self, reservation: Reservation):
        with self._lock:
            if self._outstanding.pop(reservation.reservation_id, None) is None:
                return
            self._roll()
            if reservation.day == self._day:
                self._spent = max(self._spent - reservation.amount, 0)
        if self.logger:
            self.logger.debug(f"Released {lamports_to_sol(reservation.amount):.4f} SOL reservation")


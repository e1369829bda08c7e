from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Optional
import os
import pandas as pd
from core.types import lamports_to_sol
from .position import Position
from utils.logger import TradingLogger

COLUMNS = [
    'time', 'event', 'token', 'source', 'reason', 'token_amount', 'sol_amount',
    'price', 'sold_percent', 'remaining', 'state', 'tx_sig', 'wallet_address',
]


@dataclass
class JournalRow:
    time: datetime
    event: str  # 'entry' or 'exit'
    token: str
    source: str
    reason: str
    token_amount: int  # Raw token amount
    sol_amount: float  # SOL spent (entry) or received (exit)
    price: float
    sold_percent: float
    remaining: int
    state: str
    tx_sig: str = ""
    wallet_address: str = ""


class TradeJournal:
    """Appends every entry and exit to a CSV file"""

    def __init__(self, csv_path: str, logger: Optional[TradingLogger] = None):
        self.csv_path = csv_path
        self.logger = logger
        self.initialize_csv()

    def initialize_csv(self):
        """Create CSV with headers if it doesn't exist"""
        directory = os.path.dirname(self.csv_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(self.csv_path):
            pd.DataFrame(columns=COLUMNS).to_csv(self.csv_path, index=False)

    def _append(self, row: JournalRow):
        try:
            pd.DataFrame([asdict(row)], columns=COLUMNS).to_csv(
                self.csv_path, mode='a', header=False, index=False
            )
        except OSError as e:
            if self.logger:
                self.logger.error(f"Error writing trade journal: {str(e)}")

    def record_entry(self, position: Position):
        self._append(JournalRow(
            time=datetime.now(),
            event='entry',
            token=position.mint,
            source=position.source,
            reason='',
            token_amount=position.entry_amount,
            sol_amount=lamports_to_sol(position.entry_sol),
            price=position.entry_price,
            sold_percent=0.0,
            remaining=position.remaining,
            state=position.state.value,
            tx_sig=position.tx_sig,
            wallet_address=position.wallet_copy_trading,
        ))

    def record_exit(self, position: Position, token_amount: int, lamports: int, reason: str,
                    tx_sig: Optional[str] = None):
        self._append(JournalRow(
            time=datetime.now(),
            event='exit',
            token=position.mint,
            source=position.source,
            reason=reason,
            token_amount=token_amount,
            sol_amount=lamports_to_sol(lamports),
            price=position.last_price,
            sold_percent=round(position.sold_percent, 4),
            remaining=position.remaining,
            state=position.state.value,
            tx_sig=tx_sig or "",
            wallet_address=position.wallet_copy_trading,
        ))

    def summary(self) -> Dict:
        """Realized totals per token and overall"""
        df = pd.read_csv(self.csv_path)
        if len(df) == 0:
            return {"trades": 0, "spent_sol": 0.0, "received_sol": 0.0, "realized_pnl_sol": 0.0}

        spent = df.loc[df['event'] == 'entry', 'sol_amount'].sum()
        received = df.loc[df['event'] == 'exit', 'sol_amount'].sum()
        per_token = (
            df.pivot_table(index='token', columns='event', values='sol_amount', aggfunc='sum', fill_value=0.0)
            .reindex(columns=['entry', 'exit'], fill_value=0.0)
        )
        per_token['pnl'] = per_token['exit'] - per_token['entry']
        return {
            "trades": int((df['event'] == 'entry').sum()),
            "spent_sol": float(spent),
            "received_sol": float(received),
            "realized_pnl_sol": float(received - spent),
            "per_token": per_token['pnl'].to_dict(),
        }

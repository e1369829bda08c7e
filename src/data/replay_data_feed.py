import asyncio
from typing import Callable, List
import pandas as pd
from core.types import LAMPORTS_PER_SOL, TOKEN_UNIT
from .pump_data_feed import TradeEvent
from utils.logger import TradingLogger

REQUIRED_COLUMNS = ['timestamp', 'mint', 'sol_amount', 'token_amount', 'is_buy', 'user',
                    'virtual_sol_reserves', 'virtual_token_reserves']


class ReplayDataFeed:
    """Replays recorded trades from a CSV.

    SOL columns are in SOL and token columns in whole tokens. With `speed` > 0
    the recorded spacing between trades is kept, divided by `speed`.
    """

    def __init__(self, csv_path: str, logger: TradingLogger, health=None, speed: float = 0.0):
        self.logger = logger
        self.health = health
        self.speed = speed
        self.trades_df = pd.read_csv(csv_path)
        missing = [c for c in REQUIRED_COLUMNS if c not in self.trades_df.columns]
        if missing:
            raise ValueError(f"Replay file {csv_path} is missing columns: {', '.join(missing)}")
        self.trades_df['timestamp'] = pd.to_datetime(self.trades_df['timestamp'])
        self.trades_df = self.trades_df.sort_values('timestamp', kind='stable').reset_index(drop=True)
        self.callbacks: List[Callable] = []
        self.is_running = False

    def add_callback(self, callback: Callable):
        self.callbacks.append(callback)

    @staticmethod
    def row_to_event(row, sequence: int) -> TradeEvent:
        v_sol = int(round(float(row['virtual_sol_reserves']) * LAMPORTS_PER_SOL))
        v_token = int(round(float(row['virtual_token_reserves']) * TOKEN_UNIT))
        r_sol = row.get('real_sol_reserves')
        r_token = row.get('real_token_reserves')
        timestamp = row['timestamp'].to_pydatetime()
        blocktime = row.get('blocktime')
        signature = row.get('signature')
        return TradeEvent(
            mint=str(row['mint']),
            sol_amount=int(round(float(row['sol_amount']) * LAMPORTS_PER_SOL)),
            token_amount=int(round(float(row['token_amount']) * TOKEN_UNIT)),
            is_buy=str(row['is_buy']).strip().lower() in ('true', '1', 'yes'),
            user=str(row['user']),
            timestamp=timestamp,
            virtual_sol_reserves=v_sol,
            virtual_token_reserves=v_token,
            real_sol_reserves=v_sol if pd.isna(r_sol) else int(round(float(r_sol) * LAMPORTS_PER_SOL)),
            real_token_reserves=v_token if pd.isna(r_token) else int(round(float(r_token) * TOKEN_UNIT)),
            signature=f'replay_{sequence}' if pd.isna(signature) else str(signature),
            blocktime=int(timestamp.timestamp()) if pd.isna(blocktime) else int(blocktime),
            sequence=sequence,
        )

    async def start(self):
        self.is_running = True
        if self.health:
            self.health.on_connected()
        self.logger.info(f"Replaying {len(self.trades_df)} trades")
        previous = None

        for sequence, (_, row) in enumerate(self.trades_df.iterrows(), start=1):
            if not self.is_running:
                break
            try:
                trade = self.row_to_event(row, sequence)
            except (ValueError, TypeError, KeyError) as e:
                self.logger.error(f"Error processing replay row {sequence}: {str(e)}")
                continue

            if self.speed > 0 and previous is not None:
                gap = (trade.timestamp - previous).total_seconds() / self.speed
                if gap > 0:
                    await asyncio.sleep(gap)
            previous = trade.timestamp

            if self.health:
                self.health.on_event()
            for callback in self.callbacks:
                await callback(trade)
            await asyncio.sleep(0)

        self.is_running = False
        self.logger.info("Replay finished")

    async def stop(self):
        self.is_running = False

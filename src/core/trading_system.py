from typing import List, Optional
import asyncio
from solana.rpc.async_api import AsyncClient
from core.session_controller import SessionController
from core.types import sol_to_lamports
from data.candidate_tracker import CandidateTracker, LauncherBalanceLookup, SolPriceProvider
from data.pump_data_feed import PumpDataFeed
from data.replay_data_feed import ReplayDataFeed
from execution.router import ExecutionRouter
from execution.signer import PumpTransactionSigner
from execution.venues import VenueAdapter, build_venues
from notify.telegram import TelegramNotifier
from risk.budget import DailyBudget
from risk.exit_manager import ExitManager
from risk.monitoring import FeedHealthMonitor
from risk.trade_journal import TradeJournal
from strategies.copy_trading_strategy import CopyTradingMirror
from utils.config import BotConfig
from utils.logger import TradingLogger


class TradingSystem:
    """Builds every component from the config and runs them together"""

    def __init__(self, config: BotConfig, logger: TradingLogger):
        self.config = config
        self.logger = logger
        self.is_running = False

        self.client = AsyncClient(config.basic.rpc_http)
        ping = config.yellowstone.ping_interval
        self.health = FeedHealthMonitor(logger.child("health"), stale_after=3 * ping, heartbeat_interval=ping)
        self.notifier = TelegramNotifier(config.telegram, logger.child("telegram"))
        self.journal = TradeJournal(config.runtime.trade_journal_path, logger)

        # Load wallet for transactions
        signer = None
        self.wallet: Optional[str] = None
        if not config.simulated:
            signer = PumpTransactionSigner.from_private_key(config.basic.private_key, self.client,
                                                            logger.child("signer"))
            self.wallet = str(signer.pubkey)

        racing, rpc = build_venues(config, self.client, logger)
        self.venues: List[VenueAdapter] = racing + [rpc]
        self.router = ExecutionRouter(
            racing, signer, logger.child("router"),
            rpc_venue=rpc,
            counter=config.legacy.counter,
            simulated=config.simulated,
        )
        self.budget = DailyBudget(sol_to_lamports(config.advanced.daily_buy_budget), logger.child("budget"))
        self.exit_manager = ExitManager(
            config, self.router, logger.child("exits"),
            notifier=self.notifier, journal=self.journal,
        )

        self.prices = SolPriceProvider(logger.child("prices"))
        self.tracker = CandidateTracker(
            self.prices,
            LauncherBalanceLookup(self.client, logger.child("balances")),
            price_window_seconds=config.advanced.time_delta_threshold,
        )
        self.mirror = (
            CopyTradingMirror(config.copy_trading, logger.child("copy"))
            if config.copy_trading.enabled else None
        )

        # Initialize data feed based on mode
        if config.runtime.replay_data_path:
            if not config.simulated:
                logger.warning("Replaying recorded trades while live: orders will really be sent")
            self.data_feed = ReplayDataFeed(config.runtime.replay_data_path, logger.child("feed"), health=self.health)
        else:
            self.data_feed = PumpDataFeed(
                config.basic.rpc_wss, logger.child("feed"), health=self.health,
                reconnect_delay=config.yellowstone.reconnect_delay,
                max_retries=config.yellowstone.max_retries,
                ping_interval=ping,
            )

        self.controller = SessionController(
            config, self.router, self.exit_manager, self.budget, self.tracker,
            logger.child("session"),
            health=self.health, mirror=self.mirror, notifier=self.notifier, wallet=self.wallet,
        )
        self.data_feed.add_callback(self.controller.enqueue)
        self._price_task: Optional[asyncio.Task] = None

        self.logger.info(
            f"Trading System Initializing: Mode={'Simulation' if config.simulated else 'Live'}, "
            f"Feed={'Replay' if config.runtime.replay_data_path else 'Websocket'}, "
            f"Venues={', '.join(v.name for v in self.venues)}"
        )

    async def start(self):
        """Runs until the feed ends or stop() is called"""
        try:
            self.is_running = True
            self.logger.critical("Trading System Starting")
            self.health.start_monitoring()
            await self.prices.refresh()
            self._price_task = asyncio.create_task(self.prices.run())
            await self.controller.start()
            await self.data_feed.start()
        except Exception as e:
            self.logger.critical(f"Failed to start trading system: {str(e)}")
            self.is_running = False
            raise

    async def stop(self):
        if not self.is_running:
            return
        self.logger.critical("Initiating trading system shutdown")
        self.is_running = False
        await self.data_feed.stop()
        await self.controller.stop()
        if self._price_task:
            self._price_task.cancel()
        self.health.stop_monitoring()
        for venue in self.venues:
            await venue.close()
        await self.client.close()
        try:
            self.logger.info(f"Journal summary: {self.journal.summary()}")
        except Exception as e:
            self.logger.error(f"Could not summarize trade journal: {str(e)}")
        self.logger.info("Trading system stopped successfully")

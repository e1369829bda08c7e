import argparse
import asyncio
import signal
import sys
from typing import List, Optional
from core.exceptions import ConfigError
from core.trading_system import TradingSystem
from utils.config import BotConfig
from utils.logger import TradingLogger


class InitTradingSystem:
    def __init__(self, logger: TradingLogger, shutdown_timeout: float = 30.0):
        self.trading_bot: Optional[TradingSystem] = None
        self.logger = logger
        self.shutdown_timeout = shutdown_timeout
        self._shutdown_event = asyncio.Event()

    def handle_shutdown(self, signum: int):
        """Handle shutdown signals"""
        self.logger.info(f"Received signal {signum}. Starting graceful shutdown...")
        self._shutdown_event.set()

    async def run_trading_system(self, config: BotConfig) -> None:
        """Run trading system until the feed ends or a shutdown signal arrives"""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.handle_shutdown, sig)

        self.trading_bot = TradingSystem(config, self.logger)
        bot_task = asyncio.create_task(self.trading_bot.start())
        stop_task = asyncio.create_task(self._shutdown_event.wait())
        try:
            done, _ = await asyncio.wait({bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            if bot_task in done and bot_task.exception():
                raise bot_task.exception()
        finally:
            stop_task.cancel()
            await self.shutdown()
            if not bot_task.done():
                bot_task.cancel()
                await asyncio.gather(bot_task, return_exceptions=True)

    async def shutdown(self):
        """Gracefully shutdown the trading system"""
        if self.trading_bot is None:
            return
        self.logger.info("Shutting down trading system...")
        try:
            await asyncio.wait_for(self.trading_bot.stop(), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            self.logger.error(f"Shutdown timed out after {self.shutdown_timeout} seconds")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pump.fun trading bot")
    parser.add_argument("--env-file", default=None, help="dotenv file to load (default: .env)")
    parser.add_argument("--config", default=None, help="optional YAML settings file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = BotConfig.load(env_file=args.env_file, yaml_path=args.config)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return 2

    logger = TradingLogger("memebot", log_dir=config.runtime.log_dir, console_output=config.runtime.log_console,
                           level=config.runtime.log_level)
    for line in config.summary():
        logger.info(line)

    init_system = InitTradingSystem(logger)
    try:
        logger.info("Starting trading system...")
        asyncio.run(init_system.run_trading_system(config))
    except Exception as e:
        logger.error(f"Fatal error: {str(e)}", exc_info=True)
        return 1
    finally:
        logger.info("Trading system shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())

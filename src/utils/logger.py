import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime
import os

# Transport libraries log every frame and request at DEBUG
NOISY_LOGGERS = ("websockets", "aiohttp.access", "httpx", "httpcore")


class TradingLogger:
    """Thin wrapper around a named stdlib logger.

    Every component gets a child of the bot logger, so one file per run
    collects the whole session with the component name in each line.
    """

    def __init__(self, name: str = "memebot", log_dir: str = "data/logs", console_output: bool = False,
                 level: str = "INFO", max_bytes: int = 5_000_000, backup_count: int = 5):
        self.log_dir = log_dir
        os.makedirs(log_dir, exist_ok=True)

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        # Named loggers are process-wide; don't stack handlers on re-creation
        if not self.logger.handlers:
            self._setup_handlers(console_output, level, max_bytes, backup_count)
            for noisy in NOISY_LOGGERS:
                logging.getLogger(noisy).setLevel(logging.WARNING)

    def _setup_handlers(self, console_output: bool, level: str, max_bytes: int, backup_count: int):
        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

        if console_output:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        # The file always gets DEBUG, one file per run
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        file_handler = RotatingFileHandler(
            os.path.join(self.log_dir, f'memebot_{timestamp}.log'),
            maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        self.logger.addHandler(file_handler)

    def child(self, suffix: str) -> "TradingLogger":
        """Logger for a component, sharing this logger's handlers"""
        child = TradingLogger.__new__(TradingLogger)
        child.log_dir = self.log_dir
        child.logger = self.logger.getChild(suffix)
        return child

    def critical(self, message: str) -> None:
        self.logger.critical(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str, exc_info: bool = False) -> None:
        """Log an error; pass exc_info inside an except block to keep the traceback"""
        self.logger.error(message, exc_info=exc_info)

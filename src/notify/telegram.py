import asyncio
import aiohttp
from utils.config import TelegramConfig
from utils.logger import TradingLogger


class TelegramNotifier:
    """Posts alerts to a Telegram chat; does nothing when no bot token or chat is configured"""

    def __init__(self, config: TelegramConfig, logger: TradingLogger, timeout: float = 10.0):
        self.config = config
        self.logger = logger
        self.timeout = timeout
        self.sent = 0

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def send(self, message: str) -> bool:
        if not self.enabled:
            return False
        url = f"https://api.telegram.org/bot{self.config.bot_token}/sendMessage"
        payload = {
            "chat_id": self.config.chat_id,
            "text": message,
            "disable_web_page_preview": True,
        }
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(url, json=payload) as response:
                    if response.status != 200:
                        body = await response.text()
                        self.logger.warning(f"Telegram error {response.status}: {body[:100]}")
                        return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Telegram send failed: {str(e)}")
            return False
        self.sent += 1
        return True

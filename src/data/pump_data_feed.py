import json
import websockets
import asyncio
import base64
import base58
import itertools
from datetime import datetime
from typing import List, Callable, Optional
from dataclasses import dataclass
import struct
import websockets.exceptions
from core.types import LAMPORTS_PER_SOL, TOKEN_UNIT
from execution.constants import PUMP_PROGRAM
from utils.logger import TradingLogger

TRADE_EVENT_LENGTH = 8 + 32 + 16 + 1 + 32 + 40


@dataclass(frozen=True)
class TradeEvent:
    """A pump.fun trade; amounts are lamports and raw token units"""
    mint: str
    sol_amount: int
    token_amount: int
    is_buy: bool
    user: str
    timestamp: datetime
    virtual_sol_reserves: int
    virtual_token_reserves: int
    real_sol_reserves: int
    real_token_reserves: int
    signature: str
    blocktime: Optional[int] = None
    slot: int = 0
    sequence: int = 0

    @property
    def price(self) -> float:
        """SOL per whole token paid in this trade"""
        if self.token_amount == 0:
            return 0.0
        return (self.sol_amount / LAMPORTS_PER_SOL) / (self.token_amount / TOKEN_UNIT)

    @property
    def virtual_price(self) -> float:
        """SOL per whole token from the virtual reserves after the trade"""
        if self.virtual_token_reserves == 0:
            return 0.0
        return (self.virtual_sol_reserves / LAMPORTS_PER_SOL) / (self.virtual_token_reserves / TOKEN_UNIT)

    @property
    def sol(self) -> float:
        return self.sol_amount / LAMPORTS_PER_SOL


def decode_trade_event(decoded_data: bytes, signature: str = "", slot: int = 0,
                       sequence: int = 0) -> Optional[TradeEvent]:
    """Parse a pump trade event from 'Program data:' bytes; None when it isn't one"""
    if len(decoded_data) != TRADE_EVENT_LENGTH:
        return None

    # Skip 8 byte discriminator
    offset = 8
    mint = base58.b58encode(decoded_data[offset:offset + 32]).decode('utf-8')
    offset += 32

    sol_amount, token_amount = struct.unpack("<QQ", decoded_data[offset:offset + 16])
    if sol_amount == 0 or token_amount == 0:
        return None
    offset += 16

    is_buy = bool(decoded_data[offset])
    offset += 1

    user = base58.b58encode(decoded_data[offset:offset + 32]).decode('utf-8')
    offset += 32

    timestamp, v_sol, v_token, r_sol, r_token = struct.unpack("<QQQQQ", decoded_data[offset:offset + 40])
    if timestamp > 2**32:
        return None

    return TradeEvent(
        mint=mint,
        sol_amount=sol_amount,
        token_amount=token_amount,
        is_buy=is_buy,
        user=user,
        timestamp=datetime.fromtimestamp(timestamp),
        virtual_sol_reserves=v_sol,
        virtual_token_reserves=v_token,
        real_sol_reserves=r_sol,
        real_token_reserves=r_token,
        signature=signature,
        blocktime=timestamp,
        slot=slot,
        sequence=sequence,
    )


class PumpDataFeed:
    """Websocket logsSubscribe on the pump program, decoded into TradeEvents.

    Reconnects after `reconnect_delay` seconds and gives up after
    `max_retries` consecutive failed connections. Connection changes and
    events are reported to the health monitor when one is attached.
    """

    def __init__(self, ws_url: str, logger: TradingLogger, health=None,
                 reconnect_delay: float = 5, max_retries: int = 10, ping_interval: int = 30):
        self.ws_url = ws_url
        self.program_id = str(PUMP_PROGRAM)
        self.callbacks: List[Callable] = []
        self.ws = None
        self.logger = logger
        self.health = health
        self.reconnect_delay = reconnect_delay
        self.max_retries = max_retries
        self.ping_interval = ping_interval
        self.is_running = False
        self._sequence = itertools.count(1)

        self.message_health = {
            'last_message_time': None,
            'messages_received': 0,
            'processing_errors': 0
        }

    def add_callback(self, callback: Callable):
        """Add a callback to receive trade events"""
        self.callbacks.append(callback)

    async def start(self):
        """Run until stopped or out of retries"""
        self.is_running = True
        failures = 0
        while self.is_running:
            try:
                self.logger.info(f"Attempting to connect to WebSocket at {self.ws_url}")
                async with websockets.connect(self.ws_url, ping_interval=self.ping_interval) as ws:
                    self.ws = ws
                    await self._subscribe(ws)
                    failures = 0
                    if self.health:
                        self.health.on_connected()
                    async for msg in ws:
                        self.message_health['last_message_time'] = datetime.now()
                        self.message_health['messages_received'] += 1
                        await self.process_message(msg)
                if self.health:
                    self.health.on_disconnected("closed")
            except websockets.exceptions.ConnectionClosed as e:
                self.logger.error(
                    f"WebSocket disconnected. Code: {e.code}, "
                    f"Last message: {self.message_health['last_message_time']}"
                )
                if self.health:
                    self.health.on_disconnected(f"code {e.code}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                failures += 1
                self.logger.error(f"Connection error ({failures}/{self.max_retries}): {str(e)}")
                if self.health:
                    self.health.on_disconnected(str(e))
                if failures >= self.max_retries:
                    self.logger.critical(f"Giving up on event feed after {failures} failed connections")
                    self.is_running = False
                    break
            finally:
                self.ws = None

            if self.is_running:
                await asyncio.sleep(self.reconnect_delay)

    async def _subscribe(self, ws):
        subscribe_message = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [
                {"mentions": [self.program_id]},
                {"commitment": "processed"}
            ]
        }
        await ws.send(json.dumps(subscribe_message))
        self.logger.info("Subscription message sent successfully")

    async def stop(self):
        self.is_running = False
        if self.ws:
            await self.ws.close()

    def parse_logs(self, logs: List[str], signature: str, slot: int = 0) -> List[TradeEvent]:
        if not any("Program log: Instruction: Sell" in log or "Program log: Instruction: Buy" in log for log in logs):
            return []
        events = []
        for log in logs:
            if "Program data:" not in log:
                continue
            try:
                decoded = base64.b64decode(log.split("Program data: ")[1])
                event = decode_trade_event(decoded, signature, slot, next(self._sequence))
            except (ValueError, struct.error):
                continue
            if event is not None:
                events.append(event)
        return events

    async def process_message(self, msg: str):
        try:
            data = json.loads(msg)
            if "params" not in data:
                return
            result = data["params"].get("result", {})
            value = result.get("value", {})
            if not value or "logs" not in value or value.get("err"):
                return
            slot = result.get("context", {}).get("slot", 0)
            events = self.parse_logs(value["logs"], value.get("signature", ""), slot)
        except Exception as e:
            self.message_health['processing_errors'] += 1
            self.logger.error(f"Error processing message: {str(e)}")
            return

        for trade_event in events:
            if self.health:
                self.health.on_event()
            for callback in self.callbacks:
                await callback(trade_event)

from typing import Any, Dict, List, Optional, Tuple
import asyncio
import base64
import aiohttp
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Processed
from solana.rpc.types import TxOpts
from core.exceptions import VenueFailure
from .constants import (
    JITO_TIP_ACCOUNTS, ZERO_SLOT_TIP_ACCOUNTS, NOZOMI_TIP_ACCOUNTS,
    BLOXROUTE_TIP_ACCOUNTS, DEFAULT_JITO_BLOCK_ENGINE_URL, BLOXROUTE_REGION_HOSTS,
)
from .signer import SignedTransaction
from utils.logger import TradingLogger


class VenueAdapter:
    """A submission backend.

    `submit` sends one signed transaction and returns its signature, raising
    VenueFailure when the backend rejects it or cannot be reached. Concurrent
    submissions are capped per venue.
    """

    name = "venue"
    tip_accounts: List[str] = []

    def __init__(self, logger: TradingLogger, tip_lamports: int = 0, max_in_flight: int = 16,
                 priority_fee: Optional[int] = None, request_timeout: float = 5.0):
        self.logger = logger
        self.tip_lamports = tip_lamports
        self.priority_fee = priority_fee
        self.request_timeout = request_timeout
        self.semaphore = asyncio.Semaphore(max_in_flight)

    async def submit(self, signed: SignedTransaction) -> str:
        async with self.semaphore:
            try:
                return await self._send(signed)
            except VenueFailure:
                raise
            except asyncio.CancelledError:
                raise
            except Exception as e:
                raise VenueFailure(self.name, str(e) or type(e).__name__) from e

    async def _send(self, signed: SignedTransaction) -> str:
        raise NotImplementedError

    async def close(self):
        pass


class RpcVenue(VenueAdapter):
    """Direct sendTransaction to the configured RPC node"""

    name = "rpc"

    def __init__(self, client: AsyncClient, logger: TradingLogger, **kwargs):
        super().__init__(logger, **kwargs)
        self.client = client

    async def _send(self, signed: SignedTransaction) -> str:
        resp = await self.client.send_raw_transaction(
            signed.raw,
            opts=TxOpts(skip_preflight=True, preflight_commitment=Processed, max_retries=0)
        )
        return str(resp.value)


class HttpRelayVenue(VenueAdapter):
    """JSON-over-HTTP relay sharing one aiohttp session"""

    def __init__(self, url: str, logger: TradingLogger, headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(logger, **kwargs)
        self.url = url
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._session: Optional[aiohttp.ClientSession] = None

    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
        return self._session

    async def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self.session().post(url, json=payload, headers=self.headers) as response:
            text = await response.text()
            if response.status != 200:
                raise VenueFailure(self.name, f"HTTP {response.status}: {text[:200]}")
            try:
                data = await response.json(content_type=None)
            except ValueError:
                raise VenueFailure(self.name, f"invalid response: {text[:200]}")
        if isinstance(data, dict) and data.get("error"):
            raise VenueFailure(self.name, f"{data['error']}")
        return data

    @staticmethod
    def encode(signed: SignedTransaction) -> str:
        return base64.b64encode(signed.raw).decode("ascii")

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()


class JitoVenue(HttpRelayVenue):
    """Single-transaction bundle to the Jito block engine"""

    name = "jito"
    tip_accounts = JITO_TIP_ACCOUNTS

    def __init__(self, block_engine_url: str, logger: TradingLogger, **kwargs):
        base = (block_engine_url or DEFAULT_JITO_BLOCK_ENGINE_URL).rstrip("/")
        if not base.endswith("/api/v1/bundles"):
            base = f"{base}/api/v1/bundles"
        super().__init__(base, logger, **kwargs)

    async def _send(self, signed: SignedTransaction) -> str:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "sendBundle",
            "params": [[self.encode(signed)], {"encoding": "base64"}]
        }
        data = await self._post(self.url, payload)
        self.logger.debug(f"Jito bundle accepted: {data.get('result')}")
        return signed.signature


class ZeroSlotVenue(HttpRelayVenue):
    name = "zeroslot"
    tip_accounts = ZERO_SLOT_TIP_ACCOUNTS

    async def _send(self, signed: SignedTransaction) -> str:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "sendTransaction",
            "params": [self.encode(signed), {"encoding": "base64"}]
        }
        data = await self._post(self.url, payload)
        return str(data.get("result") or signed.signature)


class NozomiVenue(ZeroSlotVenue):
    name = "nozomi"
    tip_accounts = NOZOMI_TIP_ACCOUNTS


class BloxRouteVenue(HttpRelayVenue):
    """bloXroute Trader API submit endpoint, host picked by region"""

    name = "bloxroute"
    tip_accounts = BLOXROUTE_TIP_ACCOUNTS

    def __init__(self, network: str, region: str, auth_header: str, logger: TradingLogger, **kwargs):
        host = BLOXROUTE_REGION_HOSTS.get(region.lower(), region.lower())
        prefix = "" if network.lower() in ("mainnet", "mainnet-beta") else f"{network.lower()}."
        url = f"https://{prefix}{host}.solana.dex.blxrbdn.com/api/v2/submit"
        super().__init__(url, logger, headers={"Authorization": auth_header}, **kwargs)

    async def _send(self, signed: SignedTransaction) -> str:
        payload = {
            "transaction": {"content": self.encode(signed)},
            "frontRunningProtection": False,
            "useStakedRPCs": True,
        }
        data = await self._post(self.url, payload)
        return str(data.get("signature") or signed.signature)


def build_venues(config, client: AsyncClient, logger: TradingLogger) -> Tuple[List[VenueAdapter], RpcVenue]:
    """Racing relays enabled by config, plus the direct RPC fallback"""
    max_in_flight = config.runtime.venue_max_in_flight
    timeout = config.basic.max_wait_time / 1000.0
    common = {"max_in_flight": max_in_flight, "request_timeout": max(timeout, 1.0)}
    racing: List[VenueAdapter] = []

    if config.jito.use_jito:
        racing.append(JitoVenue(
            config.jito.block_engine_url, logger.child("jito"),
            tip_lamports=config.jito.tip_value, priority_fee=config.jito.priority_fee, **common
        ))
    if config.zero_slot.url:
        racing.append(ZeroSlotVenue(
            config.zero_slot.url, logger.child("zeroslot"),
            tip_lamports=config.zero_slot.tip_value, **common
        ))
    if config.nozomi.url:
        racing.append(NozomiVenue(
            config.nozomi.url, logger.child("nozomi"),
            tip_lamports=config.nozomi.tip_value, **common
        ))
    if config.blox_route.auth_header:
        racing.append(BloxRouteVenue(
            config.blox_route.network, config.blox_route.region, config.blox_route.auth_header,
            logger.child("bloxroute"), tip_lamports=config.blox_route.tip_value, **common
        ))

    rpc = RpcVenue(client, logger.child("rpc"), **common)
    return racing, rpc

from dataclasses import dataclass
from time import time
from typing import Optional, Dict, Tuple
import asyncio
from solders.pubkey import Pubkey
from solana.rpc.async_api import AsyncClient
from spl.token.instructions import get_associated_token_address
from construct import Struct, Int64ul, Flag
from .constants import PUMP_PROGRAM
from utils.logger import TradingLogger

CURVE_STRUCT = Struct(
    "virtual_token_reserves" / Int64ul,
    "virtual_sol_reserves" / Int64ul,
    "real_token_reserves" / Int64ul,
    "real_sol_reserves" / Int64ul,
    "token_total_supply" / Int64ul,
    "complete" / Flag
)

@dataclass
class BondingCurveAccount:
    virtual_token_reserves: int
    virtual_sol_reserves: int
    real_token_reserves: int
    real_sol_reserves: int
    token_total_supply: int
    complete: bool

    @classmethod
    def from_buffer(cls, data: bytes) -> "BondingCurveAccount":
        """Parse account data, skipping the 8-byte discriminator"""
        parsed = CURVE_STRUCT.parse(data[8:])
        return cls(
            virtual_token_reserves=parsed.virtual_token_reserves,
            virtual_sol_reserves=parsed.virtual_sol_reserves,
            real_token_reserves=parsed.real_token_reserves,
            real_sol_reserves=parsed.real_sol_reserves,
            token_total_supply=parsed.token_total_supply,
            complete=parsed.complete
        )


def get_bonding_curve_pda(mint: Pubkey, program_id: Pubkey = PUMP_PROGRAM) -> Pubkey:
    """Derive the bonding curve PDA for a given mint"""
    pda, _ = Pubkey.find_program_address([b"bonding-curve", bytes(mint)], program_id)
    return pda


def get_associated_bonding_curve(mint: Pubkey, bonding_curve_pda: Pubkey) -> Pubkey:
    """Token account holding the curve's tokens"""
    return get_associated_token_address(bonding_curve_pda, mint)


def calculate_buy_amount(sol_amount: int, curve: BondingCurveAccount, slippage_basis_points: int) -> Tuple[int, int]:
    """Constant-product token output for a lamport input.

    Returns:
        Tuple of (expected_token_amount, minimum_token_amount)
    """
    k = curve.virtual_sol_reserves * curve.virtual_token_reserves
    new_virtual_sol = curve.virtual_sol_reserves + sol_amount
    expected = curve.virtual_token_reserves - k // new_virtual_sol
    minimum = expected - (expected * slippage_basis_points) // 10000
    return expected, max(minimum, 0)


def calculate_sell_amount(token_amount: int, curve: BondingCurveAccount, slippage_basis_points: int) -> Tuple[int, int]:
    """Constant-product lamport output for a raw token input.

    Returns:
        Tuple of (expected_sol_amount, minimum_sol_amount)
    """
    k = curve.virtual_sol_reserves * curve.virtual_token_reserves
    new_virtual_token = curve.virtual_token_reserves + token_amount
    expected = curve.virtual_sol_reserves - k // new_virtual_token
    minimum = expected - (expected * slippage_basis_points) // 10000
    return expected, max(minimum, 0)


@dataclass
class CachedBondingCurve:
    data: BondingCurveAccount
    timestamp: float


class BondingCurveReader:
    """Fetches curve state over RPC with a short cache"""

    def __init__(self, client: AsyncClient, logger: TradingLogger, cache_seconds: float = 2.0):
        self.client = client
        self.logger = logger
        self.cache: Dict[str, CachedBondingCurve] = {}
        self.cache_seconds = cache_seconds

    async def fetch(self, mint: Pubkey, retries: int = 3) -> Optional[BondingCurveAccount]:
        mint_str = str(mint)
        now = time()
        cached = self.cache.get(mint_str)
        if cached and now - cached.timestamp < self.cache_seconds:
            return cached.data

        pda = get_bonding_curve_pda(mint)
        delay = 0.2
        for attempt in range(retries):
            try:
                account_info = await self.client.get_account_info(pda)
                if account_info.value and account_info.value.data:
                    account = BondingCurveAccount.from_buffer(bytes(account_info.value.data))
                    if account.complete:
                        self.logger.warning(f"Bonding curve for {mint_str} is complete")
                        return None
                    self.cache[mint_str] = CachedBondingCurve(data=account, timestamp=now)
                    return account
                self.logger.debug(f"Bonding curve account not found for {mint_str} (attempt {attempt + 1})")
            except Exception as e:
                if "429" not in str(e):
                    self.logger.error(f"Error fetching bonding curve for {mint_str}: {str(e)}")
                    return None
                self.logger.warning(f"Rate limited fetching bonding curve for {mint_str}")
            await asyncio.sleep(delay)
            delay *= 2
        return None

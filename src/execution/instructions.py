from typing import List, Sequence, Tuple
import random
import struct
from solders.pubkey import Pubkey
from solders.instruction import Instruction, AccountMeta
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.system_program import transfer, TransferParams
from spl.token.instructions import (
    get_associated_token_address,
    create_idempotent_associated_token_account,
)
from .constants import (
    PUMP_PROGRAM, PUMP_GLOBAL, PUMP_FEE, PUMP_EVENT_AUTHORITY, SYSTEM_PROGRAM,
    SYSTEM_TOKEN_PROGRAM, SYSTEM_RENT, ASSOCIATED_TOKEN_PROGRAM_ID,
    PUMP_BUY_DISCRIMINATOR, PUMP_SELL_DISCRIMINATOR,
)


class PumpInstructions:
    """Builds the instructions of a pump.fun trade for one wallet"""

    def __init__(self, owner: Pubkey):
        self.owner = owner

    def user_ata(self, mint: Pubkey) -> Tuple[Pubkey, Instruction]:
        """The owner's token account and an idempotent create for it; every buy carries the create"""
        ata = get_associated_token_address(self.owner, mint)
        create_ix = create_idempotent_associated_token_account(
            payer=self.owner,
            owner=self.owner,
            mint=mint
        )
        return ata, create_ix

    @staticmethod
    def compute_budget(unit_limit: int, unit_price: int) -> List[Instruction]:
        """Compute unit limit and price (micro-lamports per CU)"""
        return [
            set_compute_unit_limit(unit_limit),
            set_compute_unit_price(unit_price),
        ]

    def tip(self, tip_accounts: Sequence[str], lamports: int) -> List[Instruction]:
        """Transfer to a randomly picked relay tip account; nothing when no tip is due"""
        if lamports <= 0 or not tip_accounts:
            return []
        receiver = Pubkey.from_string(random.choice(tip_accounts))
        return [transfer(TransferParams(from_pubkey=self.owner, to_pubkey=receiver, lamports=lamports))]

    def buy(
        self,
        mint: Pubkey,
        bonding_curve: Pubkey,
        associated_bonding_curve: Pubkey,
        user_ata: Pubkey,
        token_amount: int,
        max_sol_amount: int
    ) -> Instruction:
        """Buy `token_amount` raw units paying at most `max_sol_amount` lamports"""
        accounts = [
            AccountMeta(pubkey=PUMP_GLOBAL, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_FEE, is_signer=False, is_writable=True),
            AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=bonding_curve, is_signer=False, is_writable=True),
            AccountMeta(pubkey=associated_bonding_curve, is_signer=False, is_writable=True),
            AccountMeta(pubkey=user_ata, is_signer=False, is_writable=True),
            AccountMeta(pubkey=self.owner, is_signer=True, is_writable=True),
            AccountMeta(pubkey=SYSTEM_PROGRAM, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SYSTEM_TOKEN_PROGRAM, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SYSTEM_RENT, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_EVENT_AUTHORITY, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_PROGRAM, is_signer=False, is_writable=False),
        ]
        data = PUMP_BUY_DISCRIMINATOR + struct.pack("<QQ", token_amount, max_sol_amount)
        return Instruction(PUMP_PROGRAM, data, accounts)

    def sell(
        self,
        mint: Pubkey,
        bonding_curve: Pubkey,
        associated_bonding_curve: Pubkey,
        user_ata: Pubkey,
        token_amount: int,
        min_sol_output: int
    ) -> Instruction:
        """Sell `token_amount` raw units for at least `min_sol_output` lamports"""
        accounts = [
            AccountMeta(pubkey=PUMP_GLOBAL, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_FEE, is_signer=False, is_writable=True),
            AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=bonding_curve, is_signer=False, is_writable=True),
            AccountMeta(pubkey=associated_bonding_curve, is_signer=False, is_writable=True),
            AccountMeta(pubkey=user_ata, is_signer=False, is_writable=True),
            AccountMeta(pubkey=self.owner, is_signer=True, is_writable=True),
            AccountMeta(pubkey=SYSTEM_PROGRAM, is_signer=False, is_writable=False),
            AccountMeta(pubkey=ASSOCIATED_TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SYSTEM_TOKEN_PROGRAM, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_EVENT_AUTHORITY, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_PROGRAM, is_signer=False, is_writable=False),
        ]
        data = PUMP_SELL_DISCRIMINATOR + struct.pack("<QQ", token_amount, min_sol_output)
        return Instruction(PUMP_PROGRAM, data, accounts)

"""Decoding of SPL Token program instructions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .codec import BorshError, BorshReader

INSTRUCTION_TYPE_TRANSFER = "Transfer"
INSTRUCTION_TYPE_APPROVE = "Approve"
INSTRUCTION_TYPE_TRANSFER_CHECKED = "TransferChecked"
INSTRUCTION_TYPE_APPROVE_CHECKED = "ApproveChecked"
INSTRUCTION_TYPE_INITIALIZE_MINT = "InitializeMint"
INSTRUCTION_TYPE_INITIALIZE_MINT2 = "InitializeMint2"
INSTRUCTION_TYPE_MINT_TO = "MintTo"
INSTRUCTION_TYPE_MINT_TO_CHECKED = "MintToChecked"
INSTRUCTION_TYPE_UNKNOWN = "Unknown Instruction"

_ZERO_PUBKEY = bytes(32)


@dataclass
class InstructionAccounts:
    mint: str = ""
    rent_sysvar: str = ""
    account: str = ""
    owner: str = ""
    signer_accounts: list[str] = field(default_factory=list)
    source: str = ""
    destination: str = ""
    delegate: str = ""
    authority: str = ""
    payer: str = ""
    fund_relocation_sys_program: str = ""
    funding_account: str = ""
    mint_funding_sys_program: str = ""


@dataclass
class InitializeMintArgs:
    decimals: int = 0
    mint_authority: bytes = _ZERO_PUBKEY


@dataclass
class AmountArgs:
    amount: int = 0


@dataclass
class CheckedAmountArgs:
    amount: int = 0
    decimals: int = 0


@dataclass
class TokenInstruction:
    """A decoded token instruction; only the arguments of its own kind are filled in."""

    name: str = ""
    instruction_accounts: InstructionAccounts = field(default_factory=InstructionAccounts)
    initialize_mint_args: InitializeMintArgs = field(default_factory=InitializeMintArgs)
    transfer_args: AmountArgs = field(default_factory=AmountArgs)
    approve_args: AmountArgs = field(default_factory=AmountArgs)
    mint_to_args: AmountArgs = field(default_factory=AmountArgs)
    transfer_checked_args: CheckedAmountArgs = field(default_factory=CheckedAmountArgs)
    approve_checked_args: CheckedAmountArgs = field(default_factory=CheckedAmountArgs)
    mint_to_checked_args: CheckedAmountArgs = field(default_factory=CheckedAmountArgs)
    initialize_mint2_args: InitializeMintArgs = field(default_factory=InitializeMintArgs)


# discriminator -> (name, account roles in order, whether trailing accounts are signers)
_LAYOUTS: dict[int, tuple[str, tuple[str, ...], bool]] = {
    0: (INSTRUCTION_TYPE_INITIALIZE_MINT, ("mint", "rent_sysvar"), False),
    3: (INSTRUCTION_TYPE_TRANSFER, ("source", "destination", "owner"), True),
    4: (INSTRUCTION_TYPE_APPROVE, ("source", "delegate", "owner"), True),
    7: (INSTRUCTION_TYPE_MINT_TO, ("mint", "account", "authority"), True),
    12: (INSTRUCTION_TYPE_TRANSFER_CHECKED, ("source", "mint", "destination", "owner"), True),
    13: (INSTRUCTION_TYPE_APPROVE_CHECKED, ("source", "mint", "delegate", "owner"), True),
    14: (INSTRUCTION_TYPE_MINT_TO_CHECKED, ("mint", "account", "authority"), True),
    20: (INSTRUCTION_TYPE_INITIALIZE_MINT2, ("mint",), False),
}


def _initialize_mint(rest: bytes) -> InitializeMintArgs:
    reader = BorshReader(rest)
    return InitializeMintArgs(decimals=reader.read_u8(), mint_authority=reader.read_pubkey())


def _amount(rest: bytes) -> AmountArgs:
    return AmountArgs(BorshReader(rest[:8]).read_u64())


def _checked_amount(rest: bytes, exact: bool) -> CheckedAmountArgs:
    reader = BorshReader(rest)
    args = CheckedAmountArgs(amount=reader.read_u64(), decimals=reader.read_u8())
    if exact and reader.remaining():
        raise BorshError(f"{reader.remaining()} unexpected trailing bytes")
    return args


def parse_instruction(bytes_stream, accounts: Sequence[str]) -> TokenInstruction:
    """Decode token instruction data against the instruction's resolved accounts."""
    data = bytes(bytes_stream)
    discriminator = BorshReader(data).read_u8()
    rest = data[1:]
    instruction = TokenInstruction()

    layout = _LAYOUTS.get(discriminator)
    if layout is None:
        return instruction

    name, roles, has_signers = layout
    instruction.name = name
    target = instruction.instruction_accounts
    for position, role in enumerate(roles):
        setattr(target, role, accounts[position])
    if has_signers:
        target.signer_accounts = list(accounts[len(roles):])

    if discriminator == 0:
        instruction.initialize_mint_args = _initialize_mint(rest)
    elif discriminator == 3:
        instruction.transfer_args = _amount(rest)
    elif discriminator == 4:
        instruction.approve_args = _amount(rest)
    elif discriminator == 7:
        instruction.mint_to_args = _amount(rest)
    elif discriminator == 12:
        instruction.transfer_checked_args = _checked_amount(rest, exact=False)
    elif discriminator == 13:
        instruction.approve_checked_args = _checked_amount(rest, exact=True)
    elif discriminator == 14:
        instruction.mint_to_checked_args = _checked_amount(rest, exact=True)
    elif discriminator == 20:
        instruction.initialize_mint2_args = _initialize_mint(rest)
    return instruction
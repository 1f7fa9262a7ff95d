"""Helpers that read token movements, mints, decimals and reserves out of transactions."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, Sequence

from .codec import BorshError, BorshReader, b58encode
from .model import CompiledInstruction, InnerInstructions, TokenBalance, TradeData

log = logging.getLogger(__name__)

WSOL_ADDRESS = "So11111111111111111111111111111111111111112"
USDT_ADDRESS = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
USDC_ADDRESS = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

PUMP_FUN_AMM_PROGRAM_ADDRESS = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
MOONSHOT_ADDRESS = "MoonCVVNZFSYkqNXP6bxHLPL6QQJiMagDL3qcqUQTrG"
METEORA_POOL_PROGRAM_ADDRESS = "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB"

TOKEN_PROGRAM_ADDRESS = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ADDRESS = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
SYSTEM_PROGRAM_ADDRESS = "11111111111111111111111111111111"

_IGNORED_MINT_OWNER = "GThUX1Atko4tqhN2NaiTazWSeFWMuiUvfFnyJyUghFMJ"
_BONDING_CURVE_PROGRAMS = frozenset({PUMP_FUN_AMM_PROGRAM_ADDRESS, MOONSHOT_ADDRESS})
_STABLE_COINS = frozenset({USDT_ADDRESS, USDC_ADDRESS})
_PUMP_EVENT_PREFIX = 16
_SYSTEM_TRANSFER = 2
# Token instruction discriminator -> position of the destination account.
_TOKEN_TRANSFER_DESTINATION = {3: 1, 12: 2}
_U64_PATTERN = re.compile(r"\+?[0-9]+")
_U64_LIMIT = 1 << 64


@dataclass(frozen=True)
class TransferAmount:
    """A transferred amount, negative when it leaves the watched account."""

    amount: int
    negative: bool = False

    def __str__(self) -> str:
        return f"-{self.amount}" if self.negative else str(self.amount)


@dataclass(frozen=True)
class PumpEvent:
    """Trade event emitted by the bonding-curve programs."""

    mint: bytes
    sol_amount: int
    token_amount: int
    is_buy: bool
    user: bytes
    timestamp: int
    virtual_sol_reserves: int
    virtual_token_reserves: int
    real_sol_reserves: int
    real_token_reserves: int


def decode_pump_event(data) -> PumpEvent:
    """Decode a trade event from instruction data that starts with a 16-byte prefix."""
    raw = bytes(data)
    if len(raw) < _PUMP_EVENT_PREFIX:
        raise BorshError(f"event data shorter than {_PUMP_EVENT_PREFIX} bytes")
    reader = BorshReader(raw[_PUMP_EVENT_PREFIX:])
    return PumpEvent(
        mint=reader.read_pubkey(),
        sol_amount=reader.read_u64(),
        token_amount=reader.read_u64(),
        is_buy=reader.read_bool(),
        user=reader.read_pubkey(),
        timestamp=reader.read_i64(),
        virtual_sol_reserves=reader.read_u64(),
        virtual_token_reserves=reader.read_u64(),
        real_sol_reserves=reader.read_u64(),
        real_token_reserves=reader.read_u64(),
    )


def convert_to_date(ts: int) -> str:
    """Format a unix timestamp as a UTC calendar date."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")


def _position(items: Sequence[str], value: str, message: str) -> int:
    try:
        return items.index(value)
    except ValueError:
        raise ValueError(message) from None


def _iter_inner(
    inner_instructions: Iterable[InnerInstructions],
) -> Iterator[tuple[int, CompiledInstruction]]:
    for group in inner_instructions:
        yield from enumerate(group.instructions)


def _in_window(inner_idx: int, input_inner_idx: int) -> bool:
    return input_inner_idx <= 0 or inner_idx > input_inner_idx


def _parse_u64(text: str) -> int:
    if not _U64_PATTERN.fullmatch(text):
        return 0
    value = int(text)
    return value if value < _U64_LIMIT else 0


def get_mint(
    address: str,
    token_balances: Sequence[TokenBalance],
    accounts: Sequence[str],
    dapp_address: str,
) -> str:
    """Mint of the token account at `address`, or "" when no balance names it."""
    if dapp_address in _BONDING_CURVE_PROGRAMS:
        return WSOL_ADDRESS
    index = _position(accounts, address, f"account {address} not found in accounts")
    result = ""
    for balance in token_balances:
        if balance.account_index == index and balance.owner != _IGNORED_MINT_OWNER:
            result = balance.mint
    return result


def get_amt(
    amm: str,
    address: str,
    input_inner_idx: int,
    inner_instructions: Sequence[InnerInstructions],
    accounts: Sequence[str],
    post_token_balances: Sequence[TokenBalance],
    dapp_address: str,
    pre_balances: Sequence[int],
    post_balances: Sequence[int],
) -> tuple[str, int]:
    """Amount moved through `address` and the decimals of its token (9 by default)."""
    transfer = get_token_transfer(
        amm,
        address,
        input_inner_idx,
        inner_instructions,
        accounts,
        dapp_address,
        pre_balances,
        post_balances,
    )
    result = transfer if transfer not in ("", "0") else ""
    exponent = 9
    if result:
        index = _position(accounts, address, f"account {address} not found in accounts")
        for balance in post_token_balances:
            if balance.account_index == index:
                if balance.ui_token_amount is None:
                    raise ValueError(f"token balance of {address} has no amount")
                exponent = balance.ui_token_amount.decimals
    return result, exponent


def get_decimals(
    in_mint: str, out_mint: str, post_token_balances: Sequence[TokenBalance]
) -> tuple[int, int]:
    """Decimals of both mints, taken from the first balance of each; 0 when unknown."""

    def find(mint: str) -> int:
        balance = next((b for b in post_token_balances if b.mint == mint), None)
        if balance is None or balance.ui_token_amount is None:
            return 0
        return balance.ui_token_amount.decimals

    return find(in_mint), find(out_mint)


def _scan_token_program(
    program_address: str,
    address: str,
    input_inner_idx: int,
    inner_instructions: Sequence[InnerInstructions],
    accounts: Sequence[str],
) -> TransferAmount | None:
    result: TransferAmount | None = None
    for inner_idx, inst in _iter_inner(inner_instructions):
        if accounts[inst.program_id_index] != program_address:
            continue
        discriminator = BorshReader(inst.data).read_u8()
        destination_pos = _TOKEN_TRANSFER_DESTINATION.get(discriminator)
        if destination_pos is None:
            continue
        input_accounts = prepare_input_accounts(inst.accounts, accounts)
        source = input_accounts[0]
        destination = input_accounts[destination_pos]
        if not _in_window(inner_idx, input_inner_idx):
            continue
        for negative, account in ((True, source), (False, destination)):
            if address == account:
                amount = BorshReader(inst.data[1:]).read_u64()
                if result is None:
                    result = TransferAmount(amount, negative)
    return result


def get_token_transfer(
    amm: str,
    address: str,
    input_inner_idx: int,
    inner_instructions: Sequence[InnerInstructions],
    accounts: Sequence[str],
    dapp_address: str,
    pre_balances: Sequence[int],
    post_balances: Sequence[int],
) -> str:
    """Signed amount of the first token transfer touching `address`, or ""."""
    if dapp_address in _BONDING_CURVE_PROGRAMS:
        return _system_program_transfer(
            amm,
            address,
            input_inner_idx,
            inner_instructions,
            accounts,
            pre_balances,
            post_balances,
        )
    result = _scan_token_program(
        TOKEN_PROGRAM_ADDRESS, address, input_inner_idx, inner_instructions, accounts
    )
    if result is None:
        result = get_token_22_transfer(address, input_inner_idx, inner_instructions, accounts)
    return "" if result is None else str(result)


def get_token_22_transfer(
    address: str,
    input_inner_idx: int,
    inner_instructions: Sequence[InnerInstructions],
    accounts: Sequence[str],
) -> TransferAmount | None:
    """First Token-2022 transfer touching `address`, if any."""
    return _scan_token_program(
        TOKEN_2022_PROGRAM_ADDRESS, address, input_inner_idx, inner_instructions, accounts
    )


def _system_program_transfer(
    amm: str,
    address: str,
    input_inner_idx: int,
    inner_instructions: Sequence[InnerInstructions],
    accounts: Sequence[str],
    pre_balances: Sequence[int],
    post_balances: Sequence[int],
) -> str:
    result: str | None = None
    for inner_idx, inst in _iter_inner(inner_instructions):
        program = accounts[inst.program_id_index]
        if program == SYSTEM_PROGRAM_ADDRESS:
            if BorshReader(inst.data).read_u32() != _SYSTEM_TRANSFER:
                continue
            input_accounts = prepare_input_accounts(inst.accounts, accounts)
            source, destination = input_accounts[0], input_accounts[1]
            if not _in_window(inner_idx, input_inner_idx):
                continue
            if address == source:
                amount = BorshReader(inst.data[4:]).read_u64()
                if result is None:
                    result = f"-{amount}"
            if address == destination:
                amount = BorshReader(inst.data[4:]).read_u64()
                if result is None:
                    result = str(amount)
        elif program in _BONDING_CURVE_PROGRAMS:
            if len(inst.data) < _PUMP_EVENT_PREFIX:
                raise ValueError(f"event data shorter than {_PUMP_EVENT_PREFIX} bytes")
            try:
                event = decode_pump_event(inst.data)
            except BorshError as exc:
                log.warning("Failed to deserialize TradeEvent: %s", exc)
                continue
            if result is None:
                result = str(event.sol_amount)

    if result is None:
        index = _position(accounts, amm, f"account {amm} not found in accounts")
        delta = float(post_balances[index]) - float(pre_balances[index])
        result = str(int(delta))
    return result


def parse_reserves_instruction(
    dapp_address: str,
    amm: str,
    accounts: Sequence[str],
    token_balances: Sequence[TokenBalance],
    post_balances: Sequence[int],
    vault_a: str,
    vault_b: str,
    token0: str,
    token1: str,
) -> tuple[int, int]:
    """Pool reserves of both tokens read from the vaults' token balances."""
    index_a = _position(accounts, vault_a, "Vault A not found in accounts")
    index_b = _position(accounts, vault_b, "Vault B not found in accounts")
    any_owner = dapp_address == METEORA_POOL_PROGRAM_ADDRESS

    reserves0 = reserves1 = 0
    for balance in token_balances:
        if balance.account_index not in (index_a, index_b):
            continue
        if not any_owner and balance.owner != amm:
            continue
        if balance.ui_token_amount is None:
            continue
        if balance.mint == token0:
            reserves0 = _parse_u64(balance.ui_token_amount.amount)
        elif balance.mint == token1:
            reserves1 = _parse_u64(balance.ui_token_amount.amount)

    if dapp_address == MOONSHOT_ADDRESS:
        index = _position(accounts, amm, "amm not found in accounts")
        if reserves0 == 0:
            reserves0 = post_balances[index]
        if reserves1 == 0:
            reserves1 = post_balances[index]
    return reserves0, reserves1


def prepare_input_accounts(account_indices: Iterable[int], accounts: Sequence[str]) -> list[str]:
    """Resolve an instruction's account indices to addresses."""
    return [accounts[index] for index in account_indices]


def get_b58_string(data) -> str:
    """Base58 form of a public key."""
    return b58encode(data)


def is_not_soltoken(token0: str, token1: str) -> bool:
    """True when neither side of the pair is wrapped SOL."""
    return token0 != WSOL_ADDRESS and token1 != WSOL_ADDRESS


def find_sol_stable_coin_trade(data: Iterable[TradeData]) -> TradeData | None:
    """First trade between wrapped SOL and USDC or USDT, in either direction."""
    for trade in data:
        if trade.base_mint in _STABLE_COINS and trade.quote_mint == WSOL_ADDRESS:
            return trade
        if trade.base_mint == WSOL_ADDRESS and trade.quote_mint in _STABLE_COINS:
            return trade
    return None
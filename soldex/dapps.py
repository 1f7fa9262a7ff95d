"""Recognisers for the swap instructions of the supported decentralised exchanges."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from .codec import BorshError, BorshReader
from .model import InnerInstructions, TokenBalance, TradeInstruction
from .utils import (
    METEORA_POOL_PROGRAM_ADDRESS,
    MOONSHOT_ADDRESS,
    PUMP_FUN_AMM_PROGRAM_ADDRESS,
    WSOL_ADDRESS,
    decode_pump_event,
    get_mint,
)

RAYDIUM_POOL_V4_AMM_PROGRAM_ADDRESS = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
RAYDIUM_CONCENTRATED_CAMM_PROGRAM_ADDRESS = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"
RAYDIUM_CPMM_ADDRESS = "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C"
METEORA_PROGRAM_ADDRESS = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"
ORCA_PROGRAM_ADDRESS = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"

INSTRUCTION_TYPE_INITIALIZE = "initialize"
INSTRUCTION_TYPE_INITIALIZE2 = "initialize2"
INSTRUCTION_TYPE_SWAPBASE_IN = "SwapBaseIn"
INSTRUCTION_TYPE_SWAPBASE_OUT = "SwapBaseOut"

BUY_DISCRIMINATOR = bytes([102, 6, 61, 18, 1, 218, 235, 234])
SELL_DISCRIMINATOR = bytes([51, 230, 133, 164, 1, 127, 131, 173])
CREATE_DISCRIMINATOR = bytes([24, 30, 200, 40, 5, 28, 7, 119])
SWAP_DISCRIMINATOR = bytes([248, 198, 158, 145, 225, 117, 135, 200])
SWAP_V2_DISCRIMINATOR = bytes([43, 4, 237, 11, 26, 201, 30, 98])
SWAP_BASE_INPUT_DISCRIMINATOR = bytes([143, 190, 90, 218, 196, 30, 51, 222])
SWAP_BASE_OUTPUT_DISCRIMINATOR = bytes([55, 217, 98, 86, 163, 74, 180, 173])
SWAP_EXACT_OUT_DISCRIMINATOR = bytes([250, 73, 101, 33, 38, 207, 75, 184])
SWAP_WITH_PRICE_IMPACT_DISCRIMINATOR = bytes([56, 173, 230, 208, 173, 228, 156, 205])

ORCA_SWAP_DISCRIMINATOR = 14449647541112719096
ORCA_SWAP_V2_DISCRIMINATOR = 7070309578724672555
ORCA_TWO_HOP_SWAP_DISCRIMINATOR = 16635068063392030915
ORCA_TWO_HOP_SWAP_V2_DISCRIMINATOR = 8485347938364657594

_RAY_LOG_PREFIX = "Program log: ray_log: "
_PUMP_EVENT_PREFIX = 16
_U64_PATTERN = re.compile(r"\+?[0-9]+")
_U64_LIMIT = 1 << 64


@dataclass(frozen=True)
class _Layout:
    """Positions of the pool and vault accounts of one swap instruction."""

    name: str
    amm: int
    vault_a: int
    vault_b: int
    second_amm: int | None = None
    second_vault_a: int | None = None
    second_vault_b: int | None = None


def _le(value: int) -> bytes:
    return value.to_bytes(8, "little")


_CLMM_LAYOUTS = {
    SWAP_DISCRIMINATOR: _Layout("Swap", 2, 5, 6),
    SWAP_V2_DISCRIMINATOR: _Layout("SwapV2", 2, 5, 6),
}
_CPMM_LAYOUTS = {
    SWAP_BASE_INPUT_DISCRIMINATOR: _Layout("SwapBaseInput", 3, 6, 7),
    SWAP_BASE_OUTPUT_DISCRIMINATOR: _Layout("SwapBaseOutput", 3, 6, 7),
}
_METEORA_POOL_LAYOUTS = {
    SWAP_DISCRIMINATOR: _Layout("Swap", 0, 5, 6),
}
_METEORA_DLMM_LAYOUTS = {
    SWAP_DISCRIMINATOR: _Layout("Swap", 0, 2, 3),
    SWAP_EXACT_OUT_DISCRIMINATOR: _Layout("SwapExactOut", 0, 2, 3),
    SWAP_WITH_PRICE_IMPACT_DISCRIMINATOR: _Layout("SwapWithPriceImpact", 0, 2, 3),
}
_MOONSHOT_LAYOUTS = {
    BUY_DISCRIMINATOR: _Layout("Buy", 2, 2, 3),
    SELL_DISCRIMINATOR: _Layout("Sell", 2, 2, 3),
}
_ORCA_LAYOUTS = {
    _le(ORCA_SWAP_DISCRIMINATOR): _Layout("Swap", 2, 4, 6),
    _le(ORCA_SWAP_V2_DISCRIMINATOR): _Layout("SwapV2", 4, 8, 10),
    _le(ORCA_TWO_HOP_SWAP_DISCRIMINATOR): _Layout("TwoHopSwap", 2, 5, 7, 3, 9, 11),
    _le(ORCA_TWO_HOP_SWAP_V2_DISCRIMINATOR): _Layout("TwoHopSwapV2", 0, 9, 10, 1, 11, 12),
}


def _discriminator(bytes_stream) -> bytes:
    return BorshReader(bytes_stream).read_bytes(8)


def _optional(accounts: Sequence[str], position: int | None) -> str | None:
    return None if position is None else accounts[position]


def _match(
    program: str,
    layouts: Mapping[bytes, _Layout],
    bytes_stream,
    accounts: Sequence[str],
) -> TradeInstruction | None:
    layout = layouts.get(_discriminator(bytes_stream))
    if layout is None:
        return None
    return TradeInstruction(
        program=program,
        name=layout.name,
        amm=accounts[layout.amm],
        vault_a=accounts[layout.vault_a],
        vault_b=accounts[layout.vault_b],
        second_swap_amm=_optional(accounts, layout.second_amm),
        second_swap_vault_a=_optional(accounts, layout.second_vault_a),
        second_swap_vault_b=_optional(accounts, layout.second_vault_b),
    )


def _raydium_vault_a_index(
    input_accounts: Sequence[str],
    post_token_balances: Sequence[TokenBalance],
    accounts: Sequence[str],
) -> int:
    # Some swap variants carry an extra account before the vaults; a vault has a mint.
    if get_mint(input_accounts[4], post_token_balances, accounts, ""):
        return 4
    return 5


def parse_raydium_v4(
    bytes_stream,
    input_accounts: Sequence[str],
    post_token_balances: Sequence[TokenBalance],
    accounts: Sequence[str],
) -> TradeInstruction | None:
    """Recognise a Raydium AMM v4 swap, locating its vaults through token balances."""
    discriminator = BorshReader(bytes_stream).read_u8()
    if discriminator == 9:
        name = INSTRUCTION_TYPE_SWAPBASE_IN
    elif discriminator == 11:
        name = INSTRUCTION_TYPE_SWAPBASE_OUT
    else:
        return None
    if len(input_accounts) < 2:
        return None
    amm = input_accounts[1]

    index_a = _raydium_vault_a_index(input_accounts, post_token_balances, accounts)
    vault_a = input_accounts[index_a]
    index_b = index_a + 1
    vault_b = input_accounts[index_b]
    if vault_a == vault_b:
        vault_b = input_accounts[index_b + 1]

    return TradeInstruction(
        program=RAYDIUM_POOL_V4_AMM_PROGRAM_ADDRESS,
        name=name,
        amm=amm,
        vault_a=vault_a,
        vault_b=vault_b,
    )


def parse_ray_logs(log_messages: Iterable[str]) -> list[str]:
    """Payloads of the `ray_log` program log lines, in order."""
    return [
        message.replace(_RAY_LOG_PREFIX, "").strip()
        for message in log_messages
        if message.startswith("Program log: ") and "ray_log" in message
    ]


def _parse_u64(text: str) -> int:
    if not _U64_PATTERN.fullmatch(text):
        return 0
    value = int(text)
    return value if value < _U64_LIMIT else 0


def is_matching(amount_in: int, amount_out: int, amount0: str, amount1: str) -> bool:
    """Whether signed transfer amounts agree with a swap's input and output amounts."""

    def agrees(amount: str) -> bool:
        parsed = _parse_u64(amount.lstrip("-"))
        return (amount_out if amount.startswith("-") else amount_in) == parsed

    return agrees(amount0) and agrees(amount1)


def parse_pump_fun(bytes_stream, accounts: Sequence[str]) -> TradeInstruction | None:
    """Recognise a pump.fun buy or sell; None when the accounts are incomplete."""
    discriminator = _discriminator(bytes_stream)
    if discriminator == BUY_DISCRIMINATOR:
        name = "Buy"
    elif discriminator == SELL_DISCRIMINATOR:
        name = "Sell"
    else:
        return None
    if len(accounts) < 5:
        return None
    return TradeInstruction(
        program=PUMP_FUN_AMM_PROGRAM_ADDRESS,
        name=name,
        amm=accounts[3],
        vault_a=accounts[3],
        vault_b=accounts[4],
    )


def _pump_swap_event(data) -> tuple[int, int] | None:
    raw = bytes(data)
    if len(raw) < _PUMP_EVENT_PREFIX:
        raise ValueError(f"event data shorter than {_PUMP_EVENT_PREFIX} bytes")
    try:
        event = decode_pump_event(raw)
    except BorshError:
        return None
    return event.real_token_reserves, event.real_sol_reserves


def parse_pump_fun_reserves(
    inner_instructions: Iterable[InnerInstructions],
    accounts: Sequence[str],
    log_messages: Sequence[str],
    token0: str,
    token1: str,
) -> tuple[int, int]:
    """Real reserves from the first pump.fun trade event, ordered to match the pair."""
    for group in inner_instructions:
        for inst in group.instructions:
            if accounts[inst.program_id_index] != PUMP_FUN_AMM_PROGRAM_ADDRESS:
                continue
            reserves = _pump_swap_event(inst.data)
            if reserves is None:
                continue
            token_reserves, sol_reserves = reserves
            if token0 == WSOL_ADDRESS:
                return sol_reserves, token_reserves
            return token_reserves, sol_reserves
    return 0, 0


def parse_raydium_clmm(bytes_stream, accounts: Sequence[str]) -> TradeInstruction | None:
    """Recognise a Raydium concentrated-liquidity swap."""
    return _match(RAYDIUM_CONCENTRATED_CAMM_PROGRAM_ADDRESS, _CLMM_LAYOUTS, bytes_stream, accounts)


def parse_raydium_cpmm(bytes_stream, accounts: Sequence[str]) -> TradeInstruction | None:
    """Recognise a Raydium constant-product swap."""
    return _match(RAYDIUM_CPMM_ADDRESS, _CPMM_LAYOUTS, bytes_stream, accounts)


def parse_meteora_pools(bytes_stream, accounts: Sequence[str]) -> TradeInstruction | None:
    """Recognise a Meteora dynamic-pool swap."""
    return _match(METEORA_POOL_PROGRAM_ADDRESS, _METEORA_POOL_LAYOUTS, bytes_stream, accounts)


def parse_meteora_dlmm(bytes_stream, input_accounts: Sequence[str]) -> TradeInstruction | None:
    """Recognise a Meteora DLMM swap."""
    return _match(METEORA_PROGRAM_ADDRESS, _METEORA_DLMM_LAYOUTS, bytes_stream, input_accounts)


def parse_moonshot(bytes_stream, accounts: Sequence[str]) -> TradeInstruction | None:
    """Recognise a Moonshot buy or sell."""
    return _match(MOONSHOT_ADDRESS, _MOONSHOT_LAYOUTS, bytes_stream, accounts)


def parse_orca(bytes_stream, accounts: Sequence[str]) -> TradeInstruction | None:
    """Recognise an Orca Whirlpool swap, including two-hop swaps."""
    return _match(ORCA_PROGRAM_ADDRESS, _ORCA_LAYOUTS, bytes_stream, accounts)
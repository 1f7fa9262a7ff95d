"""Extraction of DEX swap records from the transactions of a block."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .dapps import (
    METEORA_PROGRAM_ADDRESS,
    ORCA_PROGRAM_ADDRESS,
    RAYDIUM_CONCENTRATED_CAMM_PROGRAM_ADDRESS,
    RAYDIUM_CPMM_ADDRESS,
    RAYDIUM_POOL_V4_AMM_PROGRAM_ADDRESS,
    parse_meteora_dlmm,
    parse_meteora_pools,
    parse_moonshot,
    parse_orca,
    parse_pump_fun,
    parse_pump_fun_reserves,
    parse_raydium_clmm,
    parse_raydium_cpmm,
    parse_raydium_v4,
)
from .model import (
    Block,
    InnerInstructions,
    TokenBalance,
    TradeData,
    TradeInstruction,
    Transaction,
)
from .utils import (
    METEORA_POOL_PROGRAM_ADDRESS,
    MOONSHOT_ADDRESS,
    PUMP_FUN_AMM_PROGRAM_ADDRESS,
    get_amt,
    get_mint,
    is_not_soltoken,
    parse_reserves_instruction,
    prepare_input_accounts,
)

log = logging.getLogger(__name__)

_RAYDIUM_V4_AUTHORITY = "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"
_RAYDIUM_CPMM_AUTHORITY = "GpMZbSM2GgvTKHJirzeGfMFoaZ8UR2X7F4v8vHTvxFbL"

_PARSERS: dict[str, Callable[[bytes, Sequence[str]], TradeInstruction | None]] = {
    PUMP_FUN_AMM_PROGRAM_ADDRESS: parse_pump_fun,
    RAYDIUM_CONCENTRATED_CAMM_PROGRAM_ADDRESS: parse_raydium_clmm,
    METEORA_PROGRAM_ADDRESS: parse_meteora_dlmm,
    METEORA_POOL_PROGRAM_ADDRESS: parse_meteora_pools,
    ORCA_PROGRAM_ADDRESS: parse_orca,
    RAYDIUM_CPMM_ADDRESS: parse_raydium_cpmm,
    MOONSHOT_ADDRESS: parse_moonshot,
}

# Programs whose reserves are read from vault token balances, with the
# owner that the balances must carry when it is not the pool itself.
_BALANCE_RESERVE_PROGRAMS = frozenset(
    {
        RAYDIUM_POOL_V4_AMM_PROGRAM_ADDRESS,
        RAYDIUM_CONCENTRATED_CAMM_PROGRAM_ADDRESS,
        METEORA_PROGRAM_ADDRESS,
        ORCA_PROGRAM_ADDRESS,
        RAYDIUM_CPMM_ADDRESS,
        MOONSHOT_ADDRESS,
        METEORA_POOL_PROGRAM_ADDRESS,
    }
)
_POOL_AUTHORITIES = {
    RAYDIUM_POOL_V4_AMM_PROGRAM_ADDRESS: _RAYDIUM_V4_AUTHORITY,
    RAYDIUM_CPMM_ADDRESS: _RAYDIUM_CPMM_AUTHORITY,
}


def map_swap_block(block: Block) -> list[TradeData]:
    """Swap records of every SOL-paired trade in the block."""
    return process_block(block)


@dataclass
class _Context:
    block: Block
    trx: Transaction
    instruction_index: int
    inner_instructions: list[InnerInstructions]

    @property
    def accounts(self) -> list[str]:
        return self.trx.accounts


def _first_mint(
    vault: str,
    first: Sequence[TokenBalance],
    second: Sequence[TokenBalance],
    accounts: Sequence[str],
    dapp_address: str,
) -> str:
    return get_mint(vault, first, accounts, dapp_address) or get_mint(
        vault, second, accounts, dapp_address
    )


def _record(
    ctx: _Context,
    *,
    reserve_program: str,
    amount_amm: str,
    pool: str,
    vault_a: str,
    vault_b: str,
    token0: str,
    token1: str,
    dapp_address: str,
    inner_idx: int,
    instruction_type: str,
    is_inner: bool,
    outer_program: str,
    inner_program: str,
) -> TradeData:
    meta = ctx.trx.meta
    accounts = ctx.accounts
    amount0, decimals0 = get_amt(
        amount_amm,
        vault_a,
        inner_idx,
        ctx.inner_instructions,
        accounts,
        meta.post_token_balances,
        dapp_address,
        meta.pre_balances,
        meta.post_balances,
    )
    amount1, decimals1 = get_amt(
        amount_amm,
        vault_b,
        inner_idx,
        ctx.inner_instructions,
        accounts,
        meta.post_token_balances,
        "",
        meta.pre_balances,
        meta.post_balances,
    )
    reserves0, reserves1 = get_reserves(
        reserve_program,
        pool,
        vault_a,
        vault_b,
        ctx.inner_instructions,
        meta.log_messages,
        accounts,
        token0,
        token1,
        amount0,
        amount1,
        meta.post_token_balances,
        meta.post_balances,
    )
    return TradeData(
        tx_id=ctx.trx.signature(),
        block_slot=ctx.block.slot,
        block_time=ctx.block.block_time,
        signer=accounts[0],
        pool_address=pool,
        base_mint=token0,
        quote_mint=token1,
        base_amount=amount0,
        quote_amount=amount1,
        base_reserves=reserves0,
        quote_reserves=reserves1,
        base_decimals=decimals0,
        quote_decimals=decimals1,
        base_vault=vault_a,
        quote_vault=vault_b,
        is_inner_instruction=is_inner,
        instruction_index=ctx.instruction_index,
        instruction_type=instruction_type,
        inner_instruction_index=inner_idx,
        outer_program=outer_program,
        inner_program=inner_program,
        txn_fee_lamports=meta.fee,
    )


def process_block(block: Block) -> list[TradeData]:
    """Walk every instruction, top-level and inner, and collect SOL-paired swaps."""
    data: list[TradeData] = []
    if block.block_time is None:
        log.info("block at slot %s has no timestamp", block.slot)
        return data

    for trx in block.transactions:
        accounts = trx.accounts
        meta = trx.meta
        pre = meta.pre_token_balances
        post = meta.post_token_balances

        for idx, inst in enumerate(trx.instructions):
            ctx = _Context(
                block, trx, idx, filter_inner_instructions(meta.inner_instructions, idx)
            )
            program = accounts[inst.program_id_index]
            td = get_trade_instruction(program, inst.data, inst.accounts, accounts, post)
            if td is not None:
                token0 = _first_mint(td.vault_a, post, pre, accounts, td.program)
                token1 = _first_mint(td.vault_b, pre, post, accounts, "")
                # A pair without wrapped SOL ends the work on this instruction.
                if is_not_soltoken(token0, token1):
                    continue
                data.append(
                    _record(
                        ctx,
                        reserve_program=program,
                        amount_amm=td.amm,
                        pool=td.amm,
                        vault_a=td.vault_a,
                        vault_b=td.vault_b,
                        token0=token0,
                        token1=token1,
                        dapp_address=td.program,
                        inner_idx=0,
                        instruction_type=td.name,
                        is_inner=False,
                        outer_program=td.program,
                        inner_program="",
                    )
                )

                if td.second_swap_amm:
                    vault_a = td.second_swap_vault_a
                    vault_b = td.second_swap_vault_b
                    token0 = _first_mint(vault_a, post, pre, accounts, td.program)
                    token1 = _first_mint(vault_b, pre, post, accounts, "")
                    if is_not_soltoken(token0, token1):
                        continue
                    data.append(
                        _record(
                            ctx,
                            reserve_program=program,
                            amount_amm=td.amm,
                            pool=td.second_swap_amm,
                            vault_a=vault_a,
                            vault_b=vault_b,
                            token0=token0,
                            token1=token1,
                            dapp_address=td.program,
                            inner_idx=0,
                            instruction_type=td.name,
                            is_inner=False,
                            outer_program=td.program,
                            inner_program="",
                        )
                    )

            for group in meta.inner_instructions:
                if group.index != idx:
                    continue
                for inner_idx, inner_inst in enumerate(group.instructions):
                    inner_program = accounts[inner_inst.program_id_index]
                    inner_td = get_trade_instruction(
                        inner_program, inner_inst.data, inner_inst.accounts, accounts, post
                    )
                    if inner_td is None:
                        continue
                    token0 = _first_mint(inner_td.vault_a, pre, post, accounts, inner_td.program)
                    token1 = _first_mint(inner_td.vault_b, pre, post, accounts, "")
                    if is_not_soltoken(token0, token1):
                        continue
                    data.append(
                        _record(
                            ctx,
                            reserve_program=inner_program,
                            amount_amm=inner_td.amm,
                            pool=inner_td.amm,
                            vault_a=inner_td.vault_a,
                            vault_b=inner_td.vault_b,
                            token0=token0,
                            token1=token1,
                            dapp_address=inner_td.program,
                            inner_idx=inner_idx,
                            instruction_type=inner_td.name,
                            is_inner=True,
                            outer_program=program,
                            inner_program=inner_td.program,
                        )
                    )
    log.info("%s", block.slot)
    return data


def get_trade_instruction(
    program: str,
    instruction_data,
    account_indices,
    accounts: Sequence[str],
    post_token_balances: Sequence[TokenBalance],
) -> TradeInstruction | None:
    """Decode a swap of a supported program; None for anything else."""
    input_accounts = prepare_input_accounts(account_indices, accounts)
    if program == RAYDIUM_POOL_V4_AMM_PROGRAM_ADDRESS:
        return parse_raydium_v4(instruction_data, input_accounts, post_token_balances, accounts)
    parser = _PARSERS.get(program)
    if parser is None:
        return None
    return parser(instruction_data, input_accounts)


def get_reserves(
    program: str,
    amm: str,
    vault_a: str,
    vault_b: str,
    inner_instructions: Sequence[InnerInstructions],
    log_messages: Sequence[str],
    accounts: Sequence[str],
    token0: str,
    token1: str,
    amount0: str,
    amount1: str,
    post_token_balances: Sequence[TokenBalance],
    post_balances: Sequence[int],
) -> tuple[int, int]:
    """Pool reserves after the swap, as the program in question exposes them."""
    if program == PUMP_FUN_AMM_PROGRAM_ADDRESS:
        return parse_pump_fun_reserves(
            inner_instructions, accounts, log_messages, token0, token1
        )
    if program not in _BALANCE_RESERVE_PROGRAMS:
        return 0, 0
    return parse_reserves_instruction(
        program,
        _POOL_AUTHORITIES.get(program, amm),
        accounts,
        post_token_balances,
        post_balances,
        vault_a,
        vault_b,
        token0,
        token1,
    )


def filter_inner_instructions(
    meta_inner_instructions: Iterable[InnerInstructions], idx: int
) -> list[InnerInstructions]:
    """Inner instruction groups that belong to top-level instruction `idx`."""
    return [group for group in meta_inner_instructions if group.index == idx]
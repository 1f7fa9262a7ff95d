import struct

import pytest

from soldex.codec import b58encode
from soldex.dapps import (
    ORCA_PROGRAM_ADDRESS,
    ORCA_TWO_HOP_SWAP_DISCRIMINATOR,
    RAYDIUM_CONCENTRATED_CAMM_PROGRAM_ADDRESS,
    RAYDIUM_CPMM_ADDRESS,
    RAYDIUM_POOL_V4_AMM_PROGRAM_ADDRESS,
    SWAP_DISCRIMINATOR,
)
from soldex.model import (
    Block,
    CompiledInstruction,
    InnerInstructions,
    TokenBalance,
    Transaction,
    TransactionMeta,
    UiTokenAmount,
)
from soldex.swap import (
    filter_inner_instructions,
    get_reserves,
    get_trade_instruction,
    map_swap_block,
    process_block,
)
from soldex.utils import (
    PUMP_FUN_AMM_PROGRAM_ADDRESS,
    TOKEN_PROGRAM_ADDRESS,
    USDC_ADDRESS,
    USDT_ADDRESS,
    WSOL_ADDRESS,
)

CLMM = RAYDIUM_CONCENTRATED_CAMM_PROGRAM_ADDRESS
SIGNATURE = bytes(64)

# index: 0 signer, 1 clmm, 2 token, 3 pool, 4 vault_a, 5 vault_b,
#        6 user_a, 7 user_b, 8 config, 9 router, 10 vault_c, 11 vault_d
ACCOUNTS = [
    "signer",
    CLMM,
    TOKEN_PROGRAM_ADDRESS,
    "pool",
    "vault_a",
    "vault_b",
    "user_a",
    "user_b",
    "config",
    "router",
    "vault_c",
    "vault_d",
]


def _balance(index, mint, owner, amount, decimals):
    return TokenBalance(
        account_index=index,
        mint=mint,
        owner=owner,
        ui_token_amount=UiTokenAmount(amount=amount, decimals=decimals),
    )


def _balances():
    return [
        _balance(4, WSOL_ADDRESS, "pool", "1000", 9),
        _balance(5, USDC_ADDRESS, "pool", "5000", 6),
        _balance(10, USDT_ADDRESS, "pool", "10", 6),
        _balance(11, USDC_ADDRESS, "pool", "20", 6),
    ]


def _transfer(amount, source, destination, authority):
    return CompiledInstruction(
        program_id_index=2,
        accounts=bytes([source, destination, authority]),
        data=bytes([3]) + amount.to_bytes(8, "little"),
    )


def _clmm_swap(vault_a=4, vault_b=5):
    return CompiledInstruction(
        program_id_index=1,
        accounts=bytes([0, 8, 3, 6, 7, vault_a, vault_b]),
        data=SWAP_DISCRIMINATOR + bytes(16),
    )


def _transfers():
    return [_transfer(100, 6, 4, 0), _transfer(50, 5, 7, 3)]


def _block(instructions, inner, block_time=1700000000):
    meta = TransactionMeta(
        fee=5000,
        pre_balances=[0] * len(ACCOUNTS),
        post_balances=[0] * len(ACCOUNTS),
        pre_token_balances=_balances(),
        post_token_balances=_balances(),
        inner_instructions=inner,
    )
    trx = Transaction(
        accounts=list(ACCOUNTS),
        signatures=[SIGNATURE],
        instructions=instructions,
        meta=meta,
    )
    return Block(slot=42, block_time=block_time, transactions=[trx])


def test_outer_clmm_swap_is_recorded():
    block = _block([_clmm_swap()], [InnerInstructions(0, _transfers())])
    trades = process_block(block)
    assert len(trades) == 1
    trade = trades[0]
    assert trade.tx_id == "1" * 64
    assert trade.block_slot == 42
    assert trade.block_time == 1700000000
    assert trade.signer == "signer"
    assert trade.pool_address == "pool"
    assert (trade.base_mint, trade.quote_mint) == (WSOL_ADDRESS, USDC_ADDRESS)
    assert (trade.base_amount, trade.quote_amount) == ("100", "-50")
    assert (trade.base_decimals, trade.quote_decimals) == (9, 6)
    assert (trade.base_reserves, trade.quote_reserves) == (1000, 5000)
    assert (trade.base_vault, trade.quote_vault) == ("vault_a", "vault_b")
    assert trade.is_inner_instruction is False
    assert trade.instruction_type == "Swap"
    assert trade.outer_program == CLMM
    assert trade.inner_program == ""
    assert trade.txn_fee_lamports == 5000


def test_map_swap_block_matches_process_block():
    block = _block([_clmm_swap()], [InnerInstructions(0, _transfers())])
    assert map_swap_block(block) == process_block(block)


def test_block_without_time_yields_nothing():
    block = _block([_clmm_swap()], [InnerInstructions(0, _transfers())], block_time=None)
    assert process_block(block) == []


def test_pair_without_sol_is_skipped():
    block = _block([_clmm_swap(10, 11)], [])
    assert process_block(block) == []


def test_inner_swap_is_recorded():
    router = CompiledInstruction(program_id_index=9, accounts=b"", data=b"\x00")
    inner = InnerInstructions(0, [_clmm_swap()] + _transfers())
    trades = process_block(_block([router], [inner]))
    assert len(trades) == 1
    trade = trades[0]
    assert trade.is_inner_instruction is True
    assert trade.inner_instruction_index == 0
    assert trade.instruction_index == 0
    assert trade.outer_program == "router"
    assert trade.inner_program == CLMM
    assert (trade.base_amount, trade.quote_amount) == ("100", "-50")


def test_non_sol_outer_swap_skips_its_inner_swaps():
    inner = InnerInstructions(0, [_clmm_swap()] + _transfers())
    assert process_block(_block([_clmm_swap(10, 11)], [inner])) == []


def test_inner_swaps_of_other_instructions_are_ignored():
    router = CompiledInstruction(program_id_index=9, accounts=b"", data=b"\x00")
    inner = InnerInstructions(1, [_clmm_swap()] + _transfers())
    assert process_block(_block([router], [inner])) == []


def test_orca_two_hop_swap_yields_two_trades():
    accounts = [
        "signer", ORCA_PROGRAM_ADDRESS, TOKEN_PROGRAM_ADDRESS,
        "p0", "p1", "pool1", "pool2", "p4", "vault1a", "p6",
        "vault1b", "p8", "vault2a", "p10", "vault2b",
    ]
    balances = [
        _balance(8, WSOL_ADDRESS, "pool1", "700", 9),
        _balance(10, USDC_ADDRESS, "pool1", "800", 6),
        _balance(12, WSOL_ADDRESS, "pool2", "900", 9),
        _balance(14, USDT_ADDRESS, "pool2", "600", 6),
    ]
    inst = CompiledInstruction(
        program_id_index=1,
        accounts=bytes(range(3, 15)),
        data=ORCA_TWO_HOP_SWAP_DISCRIMINATOR.to_bytes(8, "little") + bytes(8),
    )
    meta = TransactionMeta(
        pre_balances=[0] * len(accounts),
        post_balances=[0] * len(accounts),
        pre_token_balances=balances,
        post_token_balances=balances,
    )
    trx = Transaction(accounts=accounts, signatures=[b"\x01" * 64], instructions=[inst], meta=meta)
    trades = process_block(Block(slot=1, block_time=2, transactions=[trx]))
    assert [t.pool_address for t in trades] == ["pool1", "pool2"]
    assert [(t.base_reserves, t.quote_reserves) for t in trades] == [(700, 800), (900, 600)]
    assert {t.instruction_type for t in trades} == {"TwoHopSwap"}
    assert all(t.tx_id == b58encode(b"\x01" * 64) for t in trades)


def test_get_trade_instruction_unknown_program():
    assert get_trade_instruction("router", b"\x09", b"", ACCOUNTS, []) is None


def test_get_trade_instruction_clmm():
    td = get_trade_instruction(CLMM, _clmm_swap().data, _clmm_swap().accounts, ACCOUNTS, [])
    assert (td.program, td.name, td.amm, td.vault_a, td.vault_b) == (
        CLMM, "Swap", "pool", "vault_a", "vault_b",
    )
    assert td.second_swap_amm is None


def test_get_trade_instruction_bad_account_index():
    with pytest.raises(IndexError):
        get_trade_instruction(CLMM, _clmm_swap().data, bytes([200]), ACCOUNTS, [])


def test_get_reserves_unknown_program():
    assert get_reserves(
        "router", "pool", "vault_a", "vault_b", [], [], ACCOUNTS,
        WSOL_ADDRESS, USDC_ADDRESS, "", "", _balances(), [0] * len(ACCOUNTS),
    ) == (0, 0)


@pytest.mark.parametrize(
    "program,owner",
    [
        (RAYDIUM_CPMM_ADDRESS, "GpMZbSM2GgvTKHJirzeGfMFoaZ8UR2X7F4v8vHTvxFbL"),
        (RAYDIUM_POOL_V4_AMM_PROGRAM_ADDRESS, "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"),
    ],
)
def test_get_reserves_uses_fixed_pool_authority(program, owner):
    balances = [
        _balance(4, WSOL_ADDRESS, owner, "31", 9),
        _balance(5, USDC_ADDRESS, owner, "47", 6),
    ]
    assert get_reserves(
        program, "pool", "vault_a", "vault_b", [], [], ACCOUNTS,
        WSOL_ADDRESS, USDC_ADDRESS, "", "", balances, [0] * len(ACCOUNTS),
    ) == (31, 47)
    # balances owned by the pool itself are not the authority's
    assert get_reserves(
        program, "pool", "vault_a", "vault_b", [], [], ACCOUNTS,
        WSOL_ADDRESS, USDC_ADDRESS, "", "", _balances(), [0] * len(ACCOUNTS),
    ) == (0, 0)


def test_get_reserves_pump_fun_orders_by_sol():
    accounts = ["signer", PUMP_FUN_AMM_PROGRAM_ADDRESS]
    event = (
        bytes(16)
        + bytes(32)
        + struct.pack("<QQ?", 1, 2, True)
        + bytes(32)
        + struct.pack("<qQQQQ", 3, 4, 5, 600, 700)
    )
    inner = [InnerInstructions(0, [CompiledInstruction(1, b"", event)])]
    with_sol_first = get_reserves(
        PUMP_FUN_AMM_PROGRAM_ADDRESS, "pool", "a", "b", inner, [], accounts,
        WSOL_ADDRESS, "mint", "", "", [], [],
    )
    with_sol_second = get_reserves(
        PUMP_FUN_AMM_PROGRAM_ADDRESS, "pool", "a", "b", inner, [], accounts,
        "mint", WSOL_ADDRESS, "", "", [], [],
    )
    assert with_sol_first == (600, 700)
    assert with_sol_second == (700, 600)


def test_filter_inner_instructions_keeps_matching_groups_in_order():
    groups = [
        InnerInstructions(0, [_transfer(1, 6, 4, 0)]),
        InnerInstructions(1, []),
        InnerInstructions(0, [_transfer(2, 6, 4, 0)]),
    ]
    result = filter_inner_instructions(groups, 0)
    assert result == [groups[0], groups[2]]
    assert filter_inner_instructions(groups, 5) == []
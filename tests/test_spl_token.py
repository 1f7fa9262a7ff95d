import struct

import pytest

from soldex.codec import BorshError
from soldex.spl_token import (
    INSTRUCTION_TYPE_APPROVE,
    INSTRUCTION_TYPE_APPROVE_CHECKED,
    INSTRUCTION_TYPE_INITIALIZE_MINT,
    INSTRUCTION_TYPE_INITIALIZE_MINT2,
    INSTRUCTION_TYPE_MINT_TO,
    INSTRUCTION_TYPE_MINT_TO_CHECKED,
    INSTRUCTION_TYPE_TRANSFER,
    INSTRUCTION_TYPE_TRANSFER_CHECKED,
    AmountArgs,
    CheckedAmountArgs,
    InitializeMintArgs,
    parse_instruction,
)

ACCOUNTS = ["acc0", "acc1", "acc2", "acc3", "acc4", "acc5"]


def test_transfer():
    inst = parse_instruction(bytes([3]) + struct.pack("<Q", 42), ACCOUNTS[:3])
    assert inst.name == INSTRUCTION_TYPE_TRANSFER
    accts = inst.instruction_accounts
    assert (accts.source, accts.destination, accts.owner) == ("acc0", "acc1", "acc2")
    assert accts.signer_accounts == []
    assert inst.transfer_args == AmountArgs(42)


def test_transfer_with_signers_and_trailing_bytes():
    inst = parse_instruction(bytes([3]) + struct.pack("<Q", 9) + b"\xff\xff", ACCOUNTS[:5])
    assert inst.transfer_args.amount == 9
    assert inst.instruction_accounts.signer_accounts == ["acc3", "acc4"]


def test_transfer_short_data():
    with pytest.raises(BorshError):
        parse_instruction(bytes([3, 1, 2]), ACCOUNTS)


def test_approve():
    inst = parse_instruction(bytes([4]) + struct.pack("<Q", 77), ACCOUNTS[:3])
    assert inst.name == INSTRUCTION_TYPE_APPROVE
    assert inst.instruction_accounts.delegate == "acc1"
    assert inst.approve_args.amount == 77
    assert inst.transfer_args.amount == 0


def test_mint_to():
    inst = parse_instruction(bytes([7]) + struct.pack("<Q", 1000), ACCOUNTS[:4])
    assert inst.name == INSTRUCTION_TYPE_MINT_TO
    accts = inst.instruction_accounts
    assert (accts.mint, accts.account, accts.authority) == ("acc0", "acc1", "acc2")
    assert accts.signer_accounts == ["acc3"]
    assert inst.mint_to_args.amount == 1000


def test_transfer_checked():
    data = bytes([12]) + struct.pack("<QB", 5000, 6) + b"\x00"
    inst = parse_instruction(data, ACCOUNTS)
    assert inst.name == INSTRUCTION_TYPE_TRANSFER_CHECKED
    accts = inst.instruction_accounts
    assert (accts.source, accts.mint, accts.destination, accts.owner) == (
        "acc0",
        "acc1",
        "acc2",
        "acc3",
    )
    assert accts.signer_accounts == ["acc4", "acc5"]
    assert inst.transfer_checked_args == CheckedAmountArgs(5000, 6)


def test_approve_checked_exact():
    inst = parse_instruction(bytes([13]) + struct.pack("<QB", 12, 2), ACCOUNTS[:4])
    assert inst.name == INSTRUCTION_TYPE_APPROVE_CHECKED
    assert inst.approve_checked_args == CheckedAmountArgs(12, 2)
    with pytest.raises(BorshError):
        parse_instruction(bytes([13]) + struct.pack("<QB", 12, 2) + b"\x00", ACCOUNTS[:4])


def test_mint_to_checked():
    inst = parse_instruction(bytes([14]) + struct.pack("<QB", 3, 9), ACCOUNTS[:3])
    assert inst.name == INSTRUCTION_TYPE_MINT_TO_CHECKED
    assert inst.mint_to_checked_args == CheckedAmountArgs(3, 9)
    with pytest.raises(BorshError):
        parse_instruction(bytes([14]) + struct.pack("<QB", 3, 9) + b"\x01", ACCOUNTS[:3])


def test_initialize_mint():
    authority = bytes(range(32))
    inst = parse_instruction(bytes([0, 6]) + authority + b"\x00", ACCOUNTS[:2])
    assert inst.name == INSTRUCTION_TYPE_INITIALIZE_MINT
    assert inst.instruction_accounts.mint == "acc0"
    assert inst.instruction_accounts.rent_sysvar == "acc1"
    assert inst.initialize_mint_args == InitializeMintArgs(6, authority)


def test_initialize_mint2():
    authority = bytes(range(32, 64))
    inst = parse_instruction(bytes([20, 9]) + authority, ACCOUNTS[:1])
    assert inst.name == INSTRUCTION_TYPE_INITIALIZE_MINT2
    assert inst.instruction_accounts.mint == "acc0"
    assert inst.initialize_mint2_args == InitializeMintArgs(9, authority)


def test_unknown_discriminator_leaves_defaults():
    inst = parse_instruction(bytes([99, 1, 2, 3]), ACCOUNTS)
    assert inst.name == ""
    assert inst.instruction_accounts.source == ""
    assert inst.transfer_args == AmountArgs(0)


def test_empty_data():
    with pytest.raises(BorshError):
        parse_instruction(b"", ACCOUNTS)


def test_missing_account():
    with pytest.raises(IndexError):
        parse_instruction(bytes([3]) + struct.pack("<Q", 1), ACCOUNTS[:2])
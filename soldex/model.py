"""Block, transaction and trade records handled by the swap extractor."""

from __future__ import annotations

from dataclasses import dataclass, field

from .codec import b58encode


@dataclass
class UiTokenAmount:
    amount: str = "0"
    decimals: int = 0


@dataclass
class TokenBalance:
    account_index: int
    mint: str = ""
    owner: str = ""
    ui_token_amount: UiTokenAmount | None = None


@dataclass
class CompiledInstruction:
    program_id_index: int
    accounts: bytes = b""
    data: bytes = b""


@dataclass
class InnerInstructions:
    index: int
    instructions: list[CompiledInstruction] = field(default_factory=list)


@dataclass
class TransactionMeta:
    fee: int = 0
    pre_balances: list[int] = field(default_factory=list)
    post_balances: list[int] = field(default_factory=list)
    pre_token_balances: list[TokenBalance] = field(default_factory=list)
    post_token_balances: list[TokenBalance] = field(default_factory=list)
    inner_instructions: list[InnerInstructions] = field(default_factory=list)
    log_messages: list[str] = field(default_factory=list)


@dataclass
class Transaction:
    """A confirmed transaction with its resolved account addresses."""

    accounts: list[str]
    signatures: list[bytes] = field(default_factory=list)
    instructions: list[CompiledInstruction] = field(default_factory=list)
    meta: TransactionMeta = field(default_factory=TransactionMeta)

    def signature(self) -> str:
        """Base58 form of the first signature, which identifies the transaction."""
        if not self.signatures:
            raise ValueError("transaction has no signatures")
        return b58encode(self.signatures[0])


@dataclass
class Block:
    slot: int
    block_time: int | None = None
    transactions: list[Transaction] = field(default_factory=list)


@dataclass
class TradeData:
    tx_id: str
    block_slot: int
    block_time: int
    signer: str
    pool_address: str
    base_mint: str
    quote_mint: str
    base_amount: str
    quote_amount: str
    base_reserves: int
    quote_reserves: int
    base_decimals: int
    quote_decimals: int
    base_vault: str
    quote_vault: str
    is_inner_instruction: bool
    instruction_index: int
    instruction_type: str
    inner_instruction_index: int
    outer_program: str
    inner_program: str
    txn_fee_lamports: int


@dataclass
class TradeInstruction:
    program: str = ""
    name: str = ""
    amm: str = ""
    vault_a: str = ""
    vault_b: str = ""
    second_swap_amm: str | None = None
    second_swap_vault_a: str | None = None
    second_swap_vault_b: str | None = None
# soldex

`soldex` turns Solana block data into a flat list of DEX swap trades. It
recognises swaps on Raydium (AMM v4, concentrated liquidity and constant
product), Orca Whirlpools, Meteora (DLMM and dynamic pools), Pump.fun and
Moonshot. Each trade record holds the pool, both mints, the amounts, the
decimals and the pool reserves after the trade. Only pairs that include
wrapped SOL are kept.

The package uses only the standard library.

## Installation

From a checkout of the project:

```
pip install .
```

## Processing a block

Build a `soldex.model.Block` from your data and pass it to
`soldex.swap.map_swap_block` (or `process_block`, which does the same).

- A `Block` has a `slot`, a `block_time` (or `None`) and `transactions`.
- A `Transaction` has the resolved account addresses (`accounts`), its raw
  `signatures`, its top-level `instructions` (`CompiledInstruction` objects)
  and a `TransactionMeta`.
- The `TransactionMeta` holds the fee, the lamport balances before and after,
  the token balances before and after (`TokenBalance` with an optional
  `UiTokenAmount`), the inner instructions (`InnerInstructions`) and the log
  messages.

```python
from soldex.swap import map_swap_block

for trade in map_swap_block(block):
    print(trade.tx_id, trade.pool_address, trade.base_mint, trade.base_amount,
          trade.quote_mint, trade.quote_amount)
```

A block without a block time gives an empty list. Swaps are looked for both in
top-level instructions and in their inner instructions; Orca two-hop swaps give
a record for each hop. Each `soldex.model.TradeData` record carries:

- the transaction id (base58 of the first signature), slot, block time and
  signer (the first account)
- the pool address and both vaults
- the base and quote mints
- the amounts as decimal strings; a leading `-` means the vault sent tokens,
  and an empty string means no transfer was found
- the reserves and decimals of both sides
- the instruction index, the inner instruction index and whether the swap was
  an inner instruction
- the outer and inner program, and the transaction fee in lamports

`soldex.utils.find_sol_stable_coin_trade` returns the first trade between
wrapped SOL and USDC or USDT, in either direction, or `None`.

## Decoding single instructions

`soldex.dapps` has one function per exchange: `parse_raydium_v4`,
`parse_raydium_clmm`, `parse_raydium_cpmm`, `parse_orca`, `parse_meteora_dlmm`,
`parse_meteora_pools`, `parse_pump_fun` and `parse_moonshot`. Each takes the
raw instruction bytes and the instruction's resolved accounts
(`parse_raydium_v4` also takes the post-trade token balances and the
transaction's accounts, which it uses to find the vaults). Each returns a
`soldex.model.TradeInstruction`, or `None` when the instruction is not a swap
it knows. `soldex.swap.get_trade_instruction` chooses the parser from the
program address, and `soldex.swap.get_reserves` reads the pool reserves for it.

Other instruction decoders:

- `soldex.spl_token.parse_instruction` decodes SPL Token instructions
  (initialize mint, transfer, approve, mint-to and their checked forms) into a
  `TokenInstruction`.
- `soldex.token_meta.parse_instruction` and `soldex.token_meta.prepare_arg`
  decode token-metadata instructions that create metadata accounts (v1, v2,
  v3) and `Create`. `soldex.token_meta.prepare_input_accounts` names the
  accounts of such an instruction.

## Low-level helpers

`soldex.codec` holds the pieces the decoders are built on:

- `BorshReader` reads little-endian Borsh values: integers, bools, strings,
  public keys, options and vectors.
- `b58encode` and `b58decode` convert between bytes and base58 text.

Truncated or malformed Borsh data raises `BorshError`, a subclass of
`ValueError`.

## What the package does not do

`soldex` is a library only. It has no command-line tool, does not fetch blocks
from a node or a stream, and does not store or publish the trades it finds:
you supply `Block` objects and get back a list of `TradeData` records.

## Running the tests

```
pip install -e ".[test]"
pytest
```
"""Decode Solana DEX swap, token and token-metadata instructions and extract swap trades from blocks."""

__version__ = "0.1.0"
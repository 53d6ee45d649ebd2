"""Follows an EVM chain and keeps a ledger of transaction hashes and missing blocks."""

__version__ = "0.1.0"

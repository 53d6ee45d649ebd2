# interpreter.py
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from indexer.errors import DecodeError
from indexer.helpers import hex_to_int, to_hex


@dataclass(frozen=True)
class BlockQuery:
    number: int
    include_transactions: bool = False


@dataclass(frozen=True)
class BlockResult:
    number: int
    present: bool
    transaction_hashes: Tuple[str, ...] = ()


def tx_hash_of(tx) -> str:
    """Hash of one `transactions` entry: a bare hash or an object with `hash`."""
    if isinstance(tx, str):
        return tx
    if isinstance(tx, (bytes, bytearray)):
        return to_hex(tx)
    if isinstance(tx, Mapping):
        h = tx.get("hash")
        if isinstance(h, str) and h:
            return h
        if isinstance(h, (bytes, bytearray)) and h:
            return to_hex(h)
    raise DecodeError(f"transaction entry has no usable hash: {tx!r}")


def interpret_block(payload: Optional[Mapping[str, Any]], number: int) -> BlockResult:
    """
    Turn the `result` member of an eth_getBlockByNumber reply into a BlockResult.

    A null result, or one whose `number` is empty, means the block does not
    exist (yet); its transactions are ignored whatever their shape.
    """
    if payload is None:
        return BlockResult(number=number, present=False)
    if not isinstance(payload, Mapping):
        raise DecodeError(f"block {number}: expected an object, got {type(payload).__name__}")
    if payload.get("number") in (None, "", "0x"):
        return BlockResult(number=number, present=False)
    try:
        got = hex_to_int(payload["number"])
    except (TypeError, ValueError) as e:
        raise DecodeError(f"block {number}: bad number field {payload['number']!r}") from e
    if got != number:
        raise DecodeError(f"asked for block {number}, node returned {got}")

    txs = payload.get("transactions") or []
    if not isinstance(txs, (list, tuple)):
        raise DecodeError(f"block {number}: transactions is not a list")
    return BlockResult(
        number=number,
        present=True,
        transaction_hashes=tuple(tx_hash_of(tx) for tx in txs),
    )

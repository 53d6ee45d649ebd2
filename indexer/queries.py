# queries.py
import sqlite3
from typing import Any, Dict, List, Optional

from indexer.cursor import CursorStore

MAX_LIMIT = 500

def row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {k: row[k] for k in row.keys()}

def _clamp(limit: int) -> int:
    return max(1, min(int(limit), MAX_LIMIT))

def ledger_stats(conn: sqlite3.Connection, block_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Totals over the ledger: distinct hashes, all observations (sum of counts),
    how many were seen more than once, and the gap table. When a cursor file
    is given its current value is included.
    """
    tx = conn.execute("""
        SELECT COUNT(*) AS n,
               COALESCE(SUM(count), 0) AS observations,
               COALESCE(SUM(count > 1), 0) AS repeated
        FROM ledger_tx
    """).fetchone()
    gaps = conn.execute(
        "SELECT COUNT(*) AS n, MAX(CAST(block AS INTEGER)) AS max_block FROM gaps"
    ).fetchone()
    out: Dict[str, Any] = {
        "txs": {"count": tx["n"], "observations": tx["observations"], "repeated": tx["repeated"]},
        "gaps": {"count": gaps["n"], "max_block": gaps["max_block"]},
        "cursor": None,
    }
    if block_file:
        out["cursor"] = CursorStore(block_file).load()
    return out

def tx_by_hash(conn: sqlite3.Connection, tx_hash: str) -> Dict[str, Any]:
    if not tx_hash:
        return {"error": "hash is required"}
    row = conn.execute(
        "SELECT tx, count FROM ledger_tx WHERE lower(tx)=lower(?)", (tx_hash,)
    ).fetchone()
    if not row:
        return {"error": f"tx {tx_hash} not found"}
    return row_to_dict(row)

def recent_gaps(conn: sqlite3.Connection, limit: int = 10) -> List[int]:
    """Highest missing block numbers first."""
    rows = conn.execute(
        "SELECT block FROM gaps ORDER BY CAST(block AS INTEGER) DESC LIMIT ?", (_clamp(limit),)
    ).fetchall()
    return [int(r["block"]) for r in rows]

def duplicate_txs(conn: sqlite3.Connection, limit: int = 10) -> List[Dict[str, Any]]:
    # count > 1 is a re-delivery or a repeat; the table cannot tell which
    rows = conn.execute("""
        SELECT tx, count FROM ledger_tx
        WHERE count > 1
        ORDER BY count DESC, tx ASC
        LIMIT ?
    """, (_clamp(limit),)).fetchall()
    return [row_to_dict(r) for r in rows]

# db.py
import contextlib
import logging
import sqlite3

from indexer.errors import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA = """
-- one row per transaction hash; count grows on every re-ingest
CREATE TABLE IF NOT EXISTS ledger_tx (
    tx    TEXT PRIMARY KEY,
    count INTEGER NOT NULL DEFAULT 1
);

-- block numbers that had no block at fetch time
CREATE TABLE IF NOT EXISTS gaps (
    block TEXT PRIMARY KEY
);
"""

def db(path, readonly=False):
    try:
        if readonly:
            conn = sqlite3.connect(f"file:{path}?mode=ro", uri=True, check_same_thread=False)
        else:
            conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            # a committed block must survive power loss before the cursor moves past it
            conn.execute("PRAGMA synchronous=FULL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
    except sqlite3.Error as e:
        raise PersistenceError(f"unable to open database {path}: {e}") from e
    conn.row_factory = sqlite3.Row
    return conn

def ensure_schema(conn: sqlite3.Connection):
    try:
        conn.executescript(SCHEMA)
    except sqlite3.Error as e:
        raise PersistenceError(f"unable to create schema: {e}") from e


class LedgerSink:
    """Idempotent writes of transaction hashes and missing-block markers."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def record_transaction(self, tx_hash: str):
        # the counter is additive, so a re-delivered block bumps it again
        self._execute("""
            INSERT INTO ledger_tx(tx, count) VALUES(?, 1)
            ON CONFLICT(tx) DO UPDATE SET count = ledger_tx.count + 1
        """, (tx_hash,))

    def record_gap(self, block_number: int):
        self._execute(
            "INSERT INTO gaps(block) VALUES(?) ON CONFLICT(block) DO NOTHING",
            (str(block_number),),
        )

    @contextlib.contextmanager
    def atomic(self):
        """Group the effects of one block into a single transaction."""
        self._execute("BEGIN IMMEDIATE")
        try:
            yield self
            self._execute("COMMIT")
        except BaseException:
            if self.conn.in_transaction:
                try:
                    self.conn.execute("ROLLBACK")
                except sqlite3.Error:
                    logger.exception("rollback failed")
            raise

    def _execute(self, sql, params=()):
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError(f"ledger write failed: {e}") from e

    def close(self):
        self.conn.close()

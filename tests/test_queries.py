"""
Tests for the read-only ledger queries
"""
from indexer import queries
from indexer.db import db


def fill(sink):
    for tx in ["0xaa", "0xbb", "0xaa", "0xcc", "0xaa", "0xbb"]:
        sink.record_transaction(tx)
    for n in [9, 100, 11]:
        sink.record_gap(n)


class TestLedgerQueries:
    def test_stats(self, sink, conn, cursor_store):
        fill(sink)
        cursor_store.save(101)
        stats = queries.ledger_stats(conn, str(cursor_store.path))
        assert stats["txs"] == {"count": 3, "observations": 6, "repeated": 2}
        assert stats["gaps"] == {"count": 3, "max_block": 100}
        assert stats["cursor"] == 101

    def test_stats_on_empty_ledger(self, conn):
        stats = queries.ledger_stats(conn)
        assert stats["txs"] == {"count": 0, "observations": 0, "repeated": 0}
        assert stats["gaps"] == {"count": 0, "max_block": None}
        assert stats["cursor"] is None

    def test_recent_gaps_sorted_numerically(self, sink, conn):
        fill(sink)
        assert queries.recent_gaps(conn, 2) == [100, 11]

    def test_duplicates(self, sink, conn):
        fill(sink)
        assert queries.duplicate_txs(conn) == [{"tx": "0xaa", "count": 3}, {"tx": "0xbb", "count": 2}]

    def test_tx_lookup_is_case_insensitive(self, sink, conn):
        sink.record_transaction("0xAbC")
        assert queries.tx_by_hash(conn, "0xabc") == {"tx": "0xAbC", "count": 1}
        assert "error" in queries.tx_by_hash(conn, "0xdef")
        assert "error" in queries.tx_by_hash(conn, "")

    def test_readonly_connection(self, sink, tmp_path):
        fill(sink)
        ro = db(str(tmp_path / "ledger.sqlite"), readonly=True)
        try:
            assert queries.ledger_stats(ro)["txs"]["count"] == 3
        finally:
            ro.close()

import pytest

from indexer.config import IndexerConfig
from indexer.cursor import CursorStore
from indexer.db import LedgerSink, db, ensure_schema
from indexer.interpreter import interpret_block


class FakeSource:
    """Serves raw block payloads from a dict; unknown numbers are missing."""

    def __init__(self, blocks=None, errors=None):
        self.blocks = blocks or {}
        self.errors = list(errors or [])
        self.calls = []

    async def fetch(self, queries):
        self.calls.append([q.number for q in queries])
        if self.errors:
            raise self.errors.pop(0)
        return [interpret_block(self.blocks.get(q.number), q.number) for q in queries]


class RecordingSleep:
    def __init__(self, on_call=None):
        self.delays = []
        self.on_call = on_call

    async def __call__(self, delay):
        self.delays.append(delay)
        if self.on_call:
            self.on_call(len(self.delays))


def block(number, txs):
    return {"number": hex(number), "transactions": txs}


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = dict(
            rpc_url="http://localhost:8545",
            database=str(tmp_path / "ledger.sqlite"),
            block_file=str(tmp_path / "block.txt"),
            poll_interval=0,
            retry_backoff=0,
            max_backoff=0,
        )
        values.update(overrides)
        return IndexerConfig(**values)
    return _make


@pytest.fixture
def conn(tmp_path):
    c = db(str(tmp_path / "ledger.sqlite"))
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def sink(conn):
    return LedgerSink(conn)


@pytest.fixture
def cursor_store(tmp_path):
    return CursorStore(tmp_path / "block.txt")

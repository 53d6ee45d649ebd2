# mcp_server.py
import argparse
import os

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import BaseModel, Field

from indexer import __version__
from indexer import queries
from indexer.db import db

load_dotenv(".env")
DB_PATH = os.getenv("DB_PATH", "ledger_index.sqlite")
BLOCK_FILE = os.getenv("BLOCK_FILE", "block.txt")

mcp = FastMCP("ledger-index-mcp", version=__version__)

_conn = None

def get_db():
    global _conn
    if _conn is None:
        _conn = db(DB_PATH, readonly=True)
    return _conn

# ---------- Typed input models ----------
class LimitIn(BaseModel):
    limit: int = Field(10, ge=1, le=queries.MAX_LIMIT)

class HashIn(BaseModel):
    hash: str = Field(..., min_length=1)

# ---------- Tools ----------
@mcp.tool(name="ledger_health")
def ledger_health_t() -> dict:
    """Ledger totals, gap count and the follower's current cursor."""
    out = queries.ledger_stats(get_db(), BLOCK_FILE)
    out["db_path"] = DB_PATH
    return out

@mcp.tool(name="tx_get")
def tx_get_t(args: HashIn) -> dict:
    """Ledger record (hash + observation count) for a transaction hash."""
    return queries.tx_by_hash(get_db(), args.hash)

@mcp.tool(name="gaps_recent")
def gaps_recent_t(args: LimitIn) -> list:
    """Most recent block numbers that were missing when fetched."""
    return queries.recent_gaps(get_db(), args.limit)

@mcp.tool(name="txs_repeated")
def txs_repeated_t(args: LimitIn) -> list:
    """Transaction hashes recorded more than once, highest count first."""
    return queries.duplicate_txs(get_db(), args.limit)


def run():
    p = argparse.ArgumentParser(prog="indexer-mcp", description="Read-only MCP tools over the ledger database.")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=8000)
    args = p.parse_args()
    mcp.run(transport="http", host=args.host, port=args.port)


if __name__ == "__main__":
    run()

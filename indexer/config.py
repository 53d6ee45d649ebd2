# config.py
import argparse
import os
from typing import Literal, Mapping, Optional, Sequence

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from indexer import __version__
from indexer.errors import ConfigError

# -------- settings --------
class IndexerConfig(BaseModel):
    """Everything the follower needs, fixed once at startup."""

    model_config = ConfigDict(frozen=True)

    database: str = Field("ledger_index.sqlite", min_length=1)
    rpc_url: str = Field(..., min_length=1)
    block_file: str = Field("block.txt", min_length=1)
    from_block: int = Field(0, ge=0)
    to_block: int = Field(0, ge=0)           # 0 = follow forever
    batch_size: int = Field(99, ge=1)
    policy: Literal["batch", "single"] = "batch"
    full_transactions: bool = False
    debug: bool = False
    reset_cursor: bool = False
    poll_interval: float = Field(1.0, ge=0)
    max_backoff: float = Field(30.0, ge=0)
    retry_attempts: int = Field(3, ge=1)
    retry_backoff: float = Field(1.0, ge=0)
    request_timeout: float = Field(30.0, gt=0)

    @property
    def bounded(self) -> bool:
        return self.to_block > 0


# env / config-file key -> field
ENV_KEYS = {
    "DB_PATH": "database",
    "RPC_URL": "rpc_url",
    "BLOCK_FILE": "block_file",
    "FROM_BLOCK": "from_block",
    "TO_BLOCK": "to_block",
    "BATCH_SIZE": "batch_size",
    "FETCH_POLICY": "policy",
    "FULL_TRANSACTIONS": "full_transactions",
    "DEBUG": "debug",
    "POLL_INTERVAL": "poll_interval",
    "MAX_BACKOFF": "max_backoff",
    "RETRY_ATTEMPTS": "retry_attempts",
    "RETRY_BACKOFF": "retry_backoff",
    "REQUEST_TIMEOUT": "request_timeout",
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="indexer",
        description="Follow an EVM chain and record transaction hashes and missing blocks.",
    )
    # every default is None so that only flags actually given override lower layers
    p.add_argument("-c", "--config", help="dotenv-style config file (default: .env)")
    p.add_argument("--database", help="SQLite database path")
    p.add_argument("-r", "--rpc", dest="rpc_url", help="JSON-RPC endpoint URL")
    p.add_argument("-b", "--block-file", dest="block_file", help="cursor file path")
    p.add_argument("-f", "--from-block", dest="from_block", type=int,
                   help="block to start from when no cursor is stored")
    p.add_argument("-t", "--to-block", dest="to_block", type=int,
                   help="stop once this block is reached (0 = never)")
    p.add_argument("-a", "--batch", dest="batch_size", type=int, help="blocks per request")
    p.add_argument("--policy", choices=["batch", "single"], help="batch RPC or one call per block")
    p.add_argument("--full-transactions", dest="full_transactions", action=argparse.BooleanOptionalAction,
                   help="ask for transaction objects instead of bare hashes")
    p.add_argument("-d", "--debug", action=argparse.BooleanOptionalAction, help="debug logging")
    p.add_argument("--reset-cursor", dest="reset_cursor", action="store_true", default=None,
                   help="ignore the stored cursor and start at --from-block")
    p.add_argument("--poll-interval", dest="poll_interval", type=float,
                   help="first wait in seconds when a whole batch is missing")
    p.add_argument("--max-backoff", dest="max_backoff", type=float, help="longest wait at chain head")
    p.add_argument("--retry-attempts", dest="retry_attempts", type=int,
                   help="attempts per RPC call / block write before giving up")
    p.add_argument("--retry-backoff", dest="retry_backoff", type=float, help="first retry wait in seconds")
    p.add_argument("--timeout", dest="request_timeout", type=float, help="RPC request timeout in seconds")
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _from_env(env: Mapping[str, Optional[str]]) -> dict:
    out = {}
    for key, field in ENV_KEYS.items():
        value = env.get(key)
        if value is not None and value != "":
            out[field] = value
    return out


def load_config(argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> IndexerConfig:
    """
    Merge defaults < process environment < config file < command-line flags.

    The config file is dotenv-formatted; a missing default `.env` is fine,
    a missing file named with --config is not.
    """
    args = build_parser().parse_args(argv)
    environ = os.environ if environ is None else environ

    if args.config and not os.path.exists(args.config):
        raise ConfigError(f"config file not found: {args.config}")
    file_values = dotenv_values(args.config or ".env")

    merged = _from_env(environ)
    merged.update(_from_env(file_values))
    merged.update({k: v for k, v in vars(args).items() if k != "config" and v is not None})

    if not merged.get("rpc_url"):
        raise ConfigError("missing RPC endpoint: pass --rpc or set RPC_URL")
    try:
        return IndexerConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration:\n{e}") from e

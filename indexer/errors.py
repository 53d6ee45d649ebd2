# errors.py
class IndexerError(Exception):
    """Base for every error the follower raises on purpose."""


class ConfigError(IndexerError):
    """Missing or invalid settings; fatal at startup."""


class TransportError(IndexerError):
    """The RPC call itself failed (connection, timeout, HTTP status)."""


class DecodeError(IndexerError):
    """The RPC answered, but not with something we can read."""


class PersistenceError(IndexerError):
    """A write to the ledger database or the cursor file failed."""

# cursor.py
import logging
import os
import pathlib
from typing import Optional

from indexer.errors import PersistenceError

logger = logging.getLogger(__name__)


class CursorStore:
    """
    The next block number to process, kept as a decimal string in a text file.

    save() writes a sibling temp file and renames it over the old one, so a
    reader sees either the previous value or the new one, never a fragment.
    """

    def __init__(self, path):
        self.path = pathlib.Path(path)

    def load(self) -> Optional[int]:
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"cannot read cursor file {self.path}: {e}") from e
        if not (raw.isascii() and raw.isdigit()):
            if raw:
                logger.warning("ignoring unparsable cursor file %s: %r", self.path, raw[:32])
            return None
        return int(raw)

    def save(self, n: int) -> None:
        if n < 0:
            raise ValueError(f"cursor must be non-negative, got {n}")
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(str(n))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"cannot write cursor file {self.path}: {e}") from e

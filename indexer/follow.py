# follow.py
import asyncio
import enum
import logging
from typing import List, Optional

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from indexer.config import IndexerConfig
from indexer.cursor import CursorStore
from indexer.db import LedgerSink
from indexer.errors import DecodeError, PersistenceError, TransportError
from indexer.interpreter import BlockQuery, BlockResult
from indexer.source import BlockSource

logger = logging.getLogger(__name__)


class LoopState(enum.Enum):
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class FollowLoop:
    """
    Read cursor -> fetch batch -> record each block -> advance and save cursor.

    Effects of a block are committed before the cursor moves past it, so a
    crash re-delivers at most the block in flight (gaps are ignored on
    conflict, transaction counters grow by one).
    """

    def __init__(self, config: IndexerConfig, source: BlockSource, sink: LedgerSink,
                 cursor_store: CursorStore, sleep=asyncio.sleep):
        self.config = config
        self.source = source
        self.sink = sink
        self.cursor_store = cursor_store
        self.sleep = sleep
        self.state: Optional[LoopState] = None
        self.cursor: Optional[int] = None
        self.processed = 0
        self.gaps = 0

    # ---------- cursor ----------
    def initial_cursor(self) -> int:
        if self.config.reset_cursor:
            logger.warning("cursor reset requested, starting at %d", self.config.from_block)
            return self.config.from_block
        stored = self.cursor_store.load()
        if stored is None:
            logger.info("no stored cursor, starting at %d", self.config.from_block)
            return self.config.from_block
        logger.info("resuming from stored cursor %d", stored)
        return stored

    def reached_end(self) -> bool:
        return self.config.bounded and self.cursor >= self.config.to_block

    def next_queries(self) -> List[BlockQuery]:
        stop = self.cursor + self.config.batch_size
        if self.config.bounded:
            stop = min(stop, self.config.to_block)
        return [BlockQuery(n, self.config.full_transactions) for n in range(self.cursor, stop)]

    # ---------- lifecycle ----------
    def stop(self):
        if self.state is LoopState.RUNNING:
            logger.info("stop requested at cursor %s", self.cursor)
            self.state = LoopState.STOPPING

    async def run(self):
        self.cursor = self.initial_cursor()
        self.state = LoopState.RUNNING
        idle = self.config.poll_interval

        while self.state is LoopState.RUNNING:
            if self.reached_end():
                logger.info("ended on %d", self.cursor)
                self.state = LoopState.STOPPING
                break
            queries = self.next_queries()
            results = await self._retrying(TransportError, self.source.fetch, queries)
            if len(results) != len(queries):
                raise DecodeError(f"asked for {len(queries)} blocks from {self.cursor}, got {len(results)}")

            found = 0
            for result in results:
                await self.advance(result)
                found += result.present
                if self.state is not LoopState.RUNNING:
                    break

            logger.info("batch %d..%d done: %d present, %d missing, cursor=%d",
                        queries[0].number, queries[-1].number, found, len(results) - found, self.cursor)

            if found or self.reached_end():
                idle = self.config.poll_interval
                continue
            # nothing at all in this range; probably past chain head
            delay = min(idle, self.config.max_backoff)
            logger.debug("empty batch, sleeping %.1fs", delay)
            await self.sleep(delay)
            idle = min(idle * 2, self.config.max_backoff)

        self.state = LoopState.STOPPED

    async def advance(self, result: BlockResult):
        if result.number != self.cursor:
            raise DecodeError(f"expected block {self.cursor}, got {result.number}")
        await self._retrying(PersistenceError, self._write_block, result)
        next_cursor = self.cursor + 1
        await self._retrying(PersistenceError, self.cursor_store.save, next_cursor)
        self.cursor = next_cursor
        self.processed += 1

    def _write_block(self, result: BlockResult):
        with self.sink.atomic():
            if not result.present:
                self.sink.record_gap(result.number)
            else:
                for tx in result.transaction_hashes:
                    self.sink.record_transaction(tx)
        if result.present:
            logger.debug("block %d: %d txs", result.number, len(result.transaction_hashes))
        else:
            self.gaps += 1
            logger.info("block %d missing, recorded gap", result.number)

    async def _retrying(self, retry_on, fn, *args):
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(multiplier=self.config.retry_backoff,
                                  max=max(self.config.max_backoff, self.config.retry_backoff)),
            retry=retry_if_exception_type(retry_on),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                out = fn(*args)
                if asyncio.iscoroutine(out):
                    out = await out
        return out

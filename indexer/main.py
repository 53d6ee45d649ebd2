import asyncio
import logging
import signal
import sys
from typing import Awaitable

import uvloop

from indexer.config import IndexerConfig, load_config
from indexer.cursor import CursorStore
from indexer.db import LedgerSink, db, ensure_schema
from indexer.errors import ConfigError, IndexerError, TransportError
from indexer.follow import FollowLoop
from indexer.source import TRANSPORT_ERRORS, build_source, connect

logger = logging.getLogger("indexer")

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP, signal.SIGQUIT, signal.SIGABRT)


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    # web3/aiohttp are chatty at DEBUG; keep them at INFO unless they misbehave
    for name in ("web3", "aiohttp", "urllib3"):
        logging.getLogger(name).setLevel(logging.INFO)


async def supervise(work: Awaitable[int]) -> int:
    """
    Run `work` as a background task until it finishes or a stop signal arrives.

    Handlers are in place before `work` starts, so a signal during startup
    (connecting, the first RPC call) is a clean exit too.
    """
    stop = asyncio.Event()
    ev = asyncio.get_running_loop()
    for sig in STOP_SIGNALS:
        ev.add_signal_handler(sig, stop.set)

    task = asyncio.ensure_future(work)
    waiter = asyncio.create_task(stop.wait(), name="signals")
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if not task.done():
            # no drain: the next start resumes from the saved cursor
            logger.info("termination signal received, stopping")
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return 0
        return task.result()
    finally:
        waiter.cancel()
        for sig in STOP_SIGNALS:
            ev.remove_signal_handler(sig)


async def follow(config: IndexerConfig) -> int:
    w3 = connect(config.rpc_url, config.request_timeout)
    try:
        try:
            head = await w3.eth.block_number
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"cannot reach {config.rpc_url}: {e}") from e
        logger.info("Connected to %s, head=%d", config.rpc_url, head)

        conn = db(config.database)
        try:
            ensure_schema(conn)
            loop = FollowLoop(config, build_source(config.policy, w3), LedgerSink(conn),
                              CursorStore(config.block_file))
            try:
                await loop.run()
            except asyncio.CancelledError:
                logger.info("cancelled at cursor %s", loop.cursor)
                raise
            logger.info("reached end block %d after %d blocks (%d gaps)",
                        config.to_block, loop.processed, loop.gaps)
            return 0
        finally:
            conn.close()
    finally:
        await w3.provider.disconnect()


async def main(argv=None) -> int:
    try:
        config = load_config(argv)
    except ConfigError as e:
        setup_logging()
        logger.error("%s", e)
        return 2
    setup_logging(config.debug)
    logger.debug("config: %s", config.model_dump(exclude={"rpc_url"}))

    try:
        return await supervise(follow(config))
    except IndexerError:
        logger.exception("fatal error, exiting")
        return 1


def run():
    sys.exit(uvloop.run(main()))


if __name__ == "__main__":
    run()

# source.py
import asyncio
import logging
from typing import List, Sequence

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception
from web3.types import RPCEndpoint

from indexer.errors import DecodeError, TransportError
from indexer.interpreter import BlockQuery, BlockResult, interpret_block

logger = logging.getLogger(__name__)

GET_BLOCK = RPCEndpoint("eth_getBlockByNumber")

# what a failing HTTP round-trip looks like from inside web3's async provider
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, Web3Exception)


def connect(rpc_url: str, timeout: float = 30.0) -> AsyncWeb3:
    return AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)}))


def block_params(q: BlockQuery):
    return [hex(q.number), q.include_transactions]


def unwrap(response, number: int):
    """Pull `result` out of one JSON-RPC response object."""
    if not isinstance(response, dict):
        raise DecodeError(f"block {number}: response is not an object: {response!r}")
    if response.get("error"):
        # the node answered with a JSON-RPC error (rate limit, header not found ...)
        raise TransportError(f"block {number}: rpc error {response['error']}")
    return response.get("result")


class BlockSource:
    """Fetches blocks by number; results come back in query order."""

    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3

    async def fetch(self, queries: Sequence[BlockQuery]) -> List[BlockResult]:
        raise NotImplementedError


class BatchRpcSource(BlockSource):
    """All queries of an iteration in one JSON-RPC batch request."""

    async def fetch(self, queries):
        if not queries:
            return []
        calls = [(GET_BLOCK, block_params(q)) for q in queries]
        try:
            responses = await self.w3.provider.make_batch_request(calls)
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"batch of {len(queries)} from {queries[0].number} failed: {e}") from e
        except ValueError as e:
            raise DecodeError(f"batch from {queries[0].number}: undecodable reply: {e}") from e

        if isinstance(responses, dict) and responses.get("error"):
            # a whole-batch failure comes back as a single error object
            raise TransportError(f"batch from {queries[0].number}: rpc error {responses['error']}")
        if not isinstance(responses, list):
            raise DecodeError(f"batch from {queries[0].number}: expected a list, got {responses!r}")
        if len(responses) != len(queries):
            raise DecodeError(
                f"batch from {queries[0].number}: sent {len(queries)} calls, got {len(responses)} responses"
            )
        return [interpret_block(unwrap(r, q.number), q.number) for q, r in zip(queries, responses)]


class SingleCallSource(BlockSource):
    """One eth_getBlockByNumber request per query, issued in order."""

    async def fetch(self, queries):
        out = []
        for q in queries:
            try:
                response = await self.w3.provider.make_request(GET_BLOCK, block_params(q))
            except TRANSPORT_ERRORS as e:
                raise TransportError(f"block {q.number}: request failed: {e}") from e
            except ValueError as e:
                raise DecodeError(f"block {q.number}: undecodable reply: {e}") from e
            out.append(interpret_block(unwrap(response, q.number), q.number))
        return out


POLICIES = {
    "batch": BatchRpcSource,
    "single": SingleCallSource,
}

def build_source(policy: str, w3: AsyncWeb3) -> BlockSource:
    try:
        cls = POLICIES[policy]
    except KeyError:
        raise ValueError(f"unknown fetch policy {policy!r}; expected one of {sorted(POLICIES)}") from None
    logger.debug("using %s fetch policy", policy)
    return cls(w3)

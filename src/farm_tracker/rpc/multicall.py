"""Multicall support for batching many contract reads into few aggregator calls."""

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from enum import StrEnum
from typing import TypeVar

from farm_tracker.exceptions import AggregationError, CallReverted, TransportError
from farm_tracker.rpc.codec import (
    CallDescriptor,
    ContractFunction,
    DecodedResult,
    decode_result,
    encode_call,
)
from farm_tracker.rpc.provider import CallTransport

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 2000

MULTICALL_AGGREGATE = ContractFunction(
    "aggregate",
    inputs=("(address,bytes)[]",),
    outputs=(("blockNumber", "uint256"), ("returnData", "bytes[]")),
)
MULTICALL_TRY_AGGREGATE = ContractFunction(
    "tryAggregate",
    inputs=("bool", "(address,bytes)[]"),
    outputs=(("returnData", "(bool,bytes)[]"),),
)


class AggregateMode(StrEnum):
    """Aggregator entry point used for a chunk."""

    # Multicall v1: one reverting call reverts the whole chunk
    AGGREGATE = "aggregate"
    # Multicall2/3: per-call success flags
    TRY_AGGREGATE = "try_aggregate"


def chunked(items: Sequence[T], chunk_size: int) -> list[Sequence[T]]:
    """Split items into consecutive chunks of at most ``chunk_size`` entries."""
    if chunk_size < 1:
        msg = f"chunk_size must be positive, got {chunk_size}"
        raise ValueError(msg)
    return [items[i : i + chunk_size] for i in range(0, len(items), chunk_size)]


class MulticallBatcher:
    """
    Executes contract reads through an aggregator contract.

    Calls are split into chunks of ``chunk_size``, each chunk is sent as one
    aggregator call and the chunks run in parallel. Results come back in
    submission order.

    Parameters
    ----------
    provider : CallTransport
        Transport used for the aggregator calls
    multicall_address : str
        Aggregator contract address
    chunk_size : int
        Maximum number of calls per aggregator invocation
    mode : AggregateMode
        Aggregator entry point

    """

    def __init__(
        self,
        provider: CallTransport,
        multicall_address: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        mode: AggregateMode = AggregateMode.TRY_AGGREGATE,
    ) -> None:
        if chunk_size < 1:
            msg = f"chunk_size must be positive, got {chunk_size}"
            raise ValueError(msg)
        self.provider = provider
        self.multicall_address = multicall_address
        self.chunk_size = chunk_size
        self.mode = AggregateMode(mode)

    def execute(self, calls: Sequence[CallDescriptor]) -> list[DecodedResult]:
        """
        Execute all calls.

        Parameters
        ----------
        calls : Sequence[CallDescriptor]
            Calls to execute

        Returns
        -------
        list[DecodedResult]
            One result per call, in the order of ``calls``

        Raises
        ------
        EncodingError
            If any call cannot be encoded (raised before any request is sent)
        AggregationError
            If any aggregator call fails as a whole

        """
        if not calls:
            return []

        encoded = [encode_call(call) for call in calls]
        chunks = list(zip(chunked(list(calls), self.chunk_size), chunked(encoded, self.chunk_size), strict=True))
        logger.info("Aggregate call with %d calls in %d chunk(s)", len(calls), len(chunks))

        if len(chunks) == 1:
            return self._execute_chunk(*chunks[0])

        with ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="multicall") as executor:
            futures = [executor.submit(self._execute_chunk, chunk, data) for chunk, data in chunks]
            # Collect in submission order so results line up across chunk boundaries
            chunk_results = [future.result() for future in futures]

        return [result for results in chunk_results for result in results]

    def _execute_chunk(self, calls: list[CallDescriptor], encoded: list[bytes]) -> list[DecodedResult]:
        targets = [(call.target, data) for call, data in zip(calls, encoded, strict=True)]
        if self.mode is AggregateMode.TRY_AGGREGATE:
            aggregate_call = CallDescriptor(self.multicall_address, MULTICALL_TRY_AGGREGATE, (False, targets))
        else:
            aggregate_call = CallDescriptor(self.multicall_address, MULTICALL_AGGREGATE, (targets,))

        logger.debug("Sending %s chunk of %d calls", aggregate_call.function.name, len(calls))
        try:
            raw = self.provider.eth_call(self.multicall_address, encode_call(aggregate_call))
        except (CallReverted, TransportError) as e:
            logger.error("Aggregator call with %d calls failed: %s", len(calls), e)
            msg = f"Aggregator call failed: {e}"
            raise AggregationError(msg) from e

        aggregated = decode_result(aggregate_call, raw)
        if not aggregated.success:
            msg = f"Cannot decode aggregator response: {aggregated.error}"
            logger.error(msg)
            raise AggregationError(msg)

        if self.mode is AggregateMode.TRY_AGGREGATE:
            returned = list(aggregated["returnData"])
        else:
            returned = [(True, data) for data in aggregated["returnData"]]

        if len(returned) != len(calls):
            msg = f"Aggregator returned {len(returned)} results for {len(calls)} calls"
            logger.error(msg)
            raise AggregationError(msg)

        return [
            decode_result(call, data, success=success)
            for call, (success, data) in zip(calls, returned, strict=True)
        ]

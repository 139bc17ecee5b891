"""Liquidity pair detection through speculative token0/token1 probes."""

import logging
from dataclasses import dataclass
from enum import StrEnum

from farm_tracker.core.models import PairMetadata
from farm_tracker.data.abis import PAIR_TOKEN0, PAIR_TOKEN1
from farm_tracker.exceptions import CallReverted, TransportError
from farm_tracker.rpc.cache import MetadataCache
from farm_tracker.rpc.codec import CallDescriptor, decode_result, encode_call
from farm_tracker.rpc.provider import CallTransport

logger = logging.getLogger(__name__)


class ProbeOutcome(StrEnum):
    """Result kind of a pair probe."""

    PAIR = "pair"
    NOT_PAIR = "not_pair"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True)
class ProbeResult:
    outcome: ProbeOutcome
    pair: PairMetadata | None = None
    error: TransportError | None = None


class PairClassifier:
    """
    Decides whether an address is a liquidity pair.

    The probes go straight to the transport rather than through the
    aggregator so a revert only affects the probed address. A revert or
    undecodable answer means "not a pair". A transport failure is its own
    outcome: ``classify`` re-raises it so a flaky endpoint never gets an
    address cached as a plain token.

    Parameters
    ----------
    provider : CallTransport
        Transport for the probe calls
    cache : MetadataCache
        Cache receiving positive classifications

    """

    def __init__(self, provider: CallTransport, cache: MetadataCache) -> None:
        self.provider = provider
        self.cache = cache

    def probe(self, address: str) -> ProbeResult:
        """Ask the address for its two underlying tokens."""
        tokens = []
        for function in (PAIR_TOKEN0, PAIR_TOKEN1):
            call = CallDescriptor(address, function)
            try:
                raw = self.provider.eth_call(address, encode_call(call))
            except CallReverted:
                return ProbeResult(ProbeOutcome.NOT_PAIR)
            except TransportError as e:
                return ProbeResult(ProbeOutcome.TRANSPORT_FAILURE, error=e)

            result = decode_result(call, raw)
            if not result.success:
                return ProbeResult(ProbeOutcome.NOT_PAIR)
            tokens.append(result[0])

        token0, token1 = tokens
        pair = PairMetadata(address=address, token0_address=token0, token1_address=token1)
        return ProbeResult(ProbeOutcome.PAIR, pair)

    def classify(self, address: str) -> PairMetadata | None:
        """
        Classify an address, using the cached composition when known.

        Parameters
        ----------
        address : str
            Candidate address (checksummed)

        Returns
        -------
        PairMetadata | None
            Pair composition, or None for a plain token

        Raises
        ------
        TransportError
            If a probe could not reach the chain

        """
        cached = self.cache.get_pair(address)
        if cached is not None:
            return cached

        result = self.probe(address)
        if result.outcome is ProbeOutcome.TRANSPORT_FAILURE:
            raise result.error
        if result.outcome is ProbeOutcome.NOT_PAIR:
            logger.info("Check token %s: is not LP token", address)
            return None

        return self.cache.put_pair(result.pair)

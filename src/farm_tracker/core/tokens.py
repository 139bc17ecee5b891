"""Token metadata resolution backed by the metadata cache."""

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from farm_tracker.core.classifier import PairClassifier
from farm_tracker.core.models import PairMetadata, PairReserves, TokenDetail, TokenMetadata
from farm_tracker.data.abis import PAIR_RESERVE_FUNCTIONS, TOKEN_DETAIL_FUNCTIONS
from farm_tracker.rpc.cache import MetadataCache
from farm_tracker.rpc.codec import CallDescriptor, DecodedResult, checksum, sorted_functions
from farm_tracker.rpc.multicall import MulticallBatcher

logger = logging.getLogger(__name__)


class TokenService:
    """
    Resolves token and pair metadata with one aggregated round trip per batch.

    Parameters
    ----------
    multicall : MulticallBatcher
        Aggregator used for the metadata reads
    classifier : PairClassifier
        Pair detection for uncached addresses
    cache : MetadataCache
        Shared metadata cache
    probe_workers : int
        Maximum number of concurrent pair probes

    """

    def __init__(
        self,
        multicall: MulticallBatcher,
        classifier: PairClassifier,
        cache: MetadataCache,
        probe_workers: int = 16,
    ) -> None:
        self.multicall = multicall
        self.classifier = classifier
        self.cache = cache
        self.probe_workers = probe_workers
        self._detail_functions = sorted_functions(TOKEN_DETAIL_FUNCTIONS)
        self._reserve_functions = sorted_functions(PAIR_RESERVE_FUNCTIONS)

    def get_or_fetch(self, address: str) -> TokenDetail:
        """
        Get token detail for a single address.

        Parameters
        ----------
        address : str
            Token address

        Returns
        -------
        TokenDetail
            Cached or freshly fetched detail

        """
        return self.get_or_fetch_batch([address])[0]

    def get_or_fetch_batch(self, addresses: Sequence[str]) -> list[TokenDetail]:
        """
        Get token details for many addresses.

        Cached addresses cost nothing, addresses another caller is already
        fetching are awaited, and all remaining addresses are fetched
        together in one aggregated batch.

        Parameters
        ----------
        addresses : Sequence[str]
            Token addresses (duplicates allowed)

        Returns
        -------
        list[TokenDetail]
            Details aligned with ``addresses``

        Raises
        ------
        ValueError
            If an address is malformed
        AggregationError
            If the aggregated metadata call fails
        TransportError
            If a pair probe could not reach the chain

        """
        if not addresses:
            return []

        normalized = [checksum(address) for address in addresses]
        claim = self.cache.claim(normalized)

        fetched: dict[str, TokenDetail] = {}
        if claim.owned:
            try:
                fetched = self._fetch(list(claim.owned))
            except BaseException as e:
                self.cache.release(claim.owned, error=e)
                raise
            self.cache.release(claim.owned, results=fetched)

        resolved = {**claim.hits, **fetched}
        for address, future in claim.waiting.items():
            resolved[address] = future.result()

        return [resolved[address] for address in normalized]

    def get_pair_reserves(self, pairs: Sequence[str]) -> list[PairReserves | None]:
        """
        Read reserves and LP supply of liquidity pairs.

        Parameters
        ----------
        pairs : Sequence[str]
            Pair addresses

        Returns
        -------
        list[PairReserves | None]
            Reserves aligned with ``pairs``, None where a read failed

        """
        calls = [CallDescriptor(pair, function) for pair in pairs for function in self._reserve_functions]
        results = self.multicall.execute(calls)

        size = len(self._reserve_functions)
        reserves: list[PairReserves | None] = []
        for index, pair in enumerate(pairs):
            by_name = _by_function_name(results[index * size : (index + 1) * size])
            get_reserves, total_supply = by_name["getReserves"], by_name["totalSupply"]
            if not (get_reserves.success and total_supply.success):
                logger.warning("Invalid reserves data for pair %s", pair)
                reserves.append(None)
                continue

            reserves.append(
                PairReserves(
                    reserve0=get_reserves["reserve0"],
                    reserve1=get_reserves["reserve1"],
                    total_supply=total_supply["totalSupply"],
                )
            )

        return reserves

    def _fetch(self, addresses: list[str]) -> dict[str, TokenDetail]:
        pairs = self._classify_all(addresses)

        calls: list[CallDescriptor] = []
        layout: list[tuple[str, PairMetadata | None, int, int]] = []
        for address in addresses:
            pair = pairs[address]
            targets = [address]
            if pair is not None:
                targets.extend([pair.token0_address, pair.token1_address])

            offset = len(calls)
            for target in targets:
                calls.extend(CallDescriptor(target, function) for function in self._detail_functions)
            layout.append((address, pair, offset, len(calls) - offset))

        results = self.multicall.execute(calls)

        size = len(self._detail_functions)
        details: dict[str, TokenDetail] = {}
        for address, pair, offset, length in layout:
            raw = results[offset : offset + length]
            token = self._to_metadata(address, raw[:size])

            if pair is None:
                detail = TokenDetail(token=token)
            else:
                detail = TokenDetail(
                    token=token,
                    pair=pair,
                    token0=self._to_metadata(pair.token0_address, raw[size : 2 * size]),
                    token1=self._to_metadata(pair.token1_address, raw[2 * size : 3 * size]),
                )

            if detail.is_complete:
                detail = self.cache.put_token(detail)
            else:
                logger.warning("Invalid token detail for %s, not caching", address)
            details[address] = detail

        return details

    def _classify_all(self, addresses: list[str]) -> dict[str, PairMetadata | None]:
        if len(addresses) == 1:
            return {addresses[0]: self.classifier.classify(addresses[0])}

        workers = max(1, min(self.probe_workers, len(addresses)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pair-probe") as executor:
            return dict(zip(addresses, executor.map(self.classifier.classify, addresses), strict=True))

    @staticmethod
    def _to_metadata(address: str, results: Sequence[DecodedResult]) -> TokenMetadata:
        by_name = _by_function_name(results)
        if not all(result.success for result in results):
            return TokenMetadata.unknown(address)

        return TokenMetadata(
            address=address,
            name=by_name["name"]["name"],
            symbol=by_name["symbol"]["symbol"],
            decimals=by_name["decimals"]["decimals"],
        )


def _by_function_name(results: Sequence[DecodedResult]) -> dict[str, DecodedResult]:
    return {result.function.name: result for result in results}

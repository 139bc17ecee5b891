"""In-memory cache for immutable on-chain token and pair metadata."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from farm_tracker.core.models import PairMetadata, TokenDetail


@dataclass
class Claim:
    """
    Outcome of claiming a set of addresses for fetching.

    Attributes
    ----------
    hits : dict[str, TokenDetail]
        Addresses already cached
    owned : dict[str, Future]
        Addresses the claiming caller must fetch and release
    waiting : dict[str, Future]
        Addresses another caller is fetching right now

    """

    hits: dict[str, TokenDetail] = field(default_factory=dict)
    owned: dict[str, Future] = field(default_factory=dict)
    waiting: dict[str, Future] = field(default_factory=dict)


class MetadataCache:
    """
    Process-lifetime cache of token details and pair compositions.

    Entries are keyed by lower-cased address, inserted only if absent and
    never evicted. Concurrent fetches of the same address are collapsed
    with a per-address single-flight registry: the first caller to claim
    an address fetches it, later callers wait on the same future.

    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: dict[str, TokenDetail] = {}
        self._pairs: dict[str, PairMetadata] = {}
        self._in_flight: dict[str, Future] = {}

    @staticmethod
    def _key(address: str) -> str:
        return address.lower()

    def get_token(self, address: str) -> TokenDetail | None:
        """
        Get cached token detail.

        Parameters
        ----------
        address : str
            Token address (any casing)

        Returns
        -------
        TokenDetail | None
            Cached detail, None on a miss

        """
        with self._lock:
            return self._tokens.get(self._key(address))

    def put_token(self, detail: TokenDetail) -> TokenDetail:
        """Store detail unless the address is cached already; return the stored value."""
        with self._lock:
            return self._tokens.setdefault(self._key(detail.address), detail)

    def get_pair(self, address: str) -> PairMetadata | None:
        with self._lock:
            return self._pairs.get(self._key(address))

    def put_pair(self, pair: PairMetadata) -> PairMetadata:
        with self._lock:
            return self._pairs.setdefault(self._key(pair.address), pair)

    def claim(self, addresses: Iterable[str]) -> Claim:
        """
        Split addresses into cache hits, addresses to fetch and addresses
        being fetched by someone else.

        Every owned future must later be resolved through ``release``.

        Parameters
        ----------
        addresses : Iterable[str]
            Addresses to resolve (duplicates are collapsed)

        Returns
        -------
        Claim
            Partition of the addresses, keyed by the addresses as given

        """
        claim = Claim()
        with self._lock:
            for address in addresses:
                key = self._key(address)
                if address in claim.hits or address in claim.owned or address in claim.waiting:
                    continue
                if key in self._tokens:
                    claim.hits[address] = self._tokens[key]
                elif key in self._in_flight:
                    claim.waiting[address] = self._in_flight[key]
                else:
                    future: Future = Future()
                    self._in_flight[key] = future
                    claim.owned[address] = future
        return claim

    def release(
        self,
        owned: dict[str, Future],
        results: dict[str, TokenDetail] | None = None,
        error: BaseException | None = None,
    ) -> None:
        """
        Resolve owned futures and drop them from the in-flight registry.

        Parameters
        ----------
        owned : dict[str, Future]
            Futures returned in ``Claim.owned``
        results : dict[str, TokenDetail] | None
            Fetched details by address (used when ``error`` is None)
        error : BaseException | None
            Failure propagated to every waiting caller

        """
        with self._lock:
            for address in owned:
                self._in_flight.pop(self._key(address), None)

        for address, future in owned.items():
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result((results or {})[address])

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return self._key(address) in self._tokens

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

"""Farm pool listing and holder position assembly."""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from farm_tracker.core.classifier import PairClassifier
from farm_tracker.core.models import PairReserves, Pool, StakePosition, TokenBalance
from farm_tracker.core.tokens import TokenService
from farm_tracker.data.abis import (
    FARM_PENDING_REWARD,
    FARM_POOL_INFO,
    FARM_POOL_LENGTH,
    FARM_STAKED_TOKENS,
    STAKED_INFO_FUNCTIONS,
)
from farm_tracker.exceptions import FarmTrackerError
from farm_tracker.rpc.cache import MetadataCache
from farm_tracker.rpc.codec import CallDescriptor, checksum, decode_result, encode_call, scale, sorted_functions
from farm_tracker.rpc.multicall import MulticallBatcher
from farm_tracker.rpc.provider import CallTransport

if TYPE_CHECKING:
    from farm_tracker.data.loader import Settings

logger = logging.getLogger(__name__)

# Defunct pools of the AutoFarmV2 deployment on BSC
DEFAULT_EXCLUDED_POOL_IDS = frozenset({331, 369})
DEFAULT_REWARD_DECIMALS = 18


def underlying_balance(reserve: int, staked: int, total_supply: int) -> int:
    """
    Share of a pair reserve owned by a staked LP amount.

    Parameters
    ----------
    reserve : int
        Pair reserve of one underlying token
    staked : int
        Staked LP token amount
    total_supply : int
        LP token total supply

    Returns
    -------
    int
        ``reserve * staked // total_supply`` (0 for an empty pair)

    """
    if total_supply == 0:
        return 0
    return reserve * staked // total_supply


class FarmService:
    """
    Builds the farm's pool list and a holder's stake positions.

    Workflow:
    1. Read the pool count from the farm contract
    2. Batch ``poolInfo`` for every pool id not on the deny-list
    3. Resolve each pool's staked token through the token service
    4. For a holder, batch pending reward and staked balance per pool and
       split LP stakes into their underlying token amounts

    Parameters
    ----------
    provider : CallTransport
        Transport for direct farm reads
    multicall : MulticallBatcher
        Aggregator for batched reads
    tokens : TokenService
        Token metadata resolution
    farm_address : str
        Farm (MasterChef style) contract address
    excluded_pool_ids : Iterable[int]
        Pool ids never listed
    first_pool_id : int
        Lowest pool id to read
    pool_count_inclusive : bool
        Whether ``pool_count`` itself is a pool id (ids run to
        ``pool_count - 1`` otherwise)
    reward_decimals : int
        Decimals of the farm's reward token

    """

    def __init__(
        self,
        provider: CallTransport,
        multicall: MulticallBatcher,
        tokens: TokenService,
        farm_address: str,
        excluded_pool_ids: Iterable[int] = DEFAULT_EXCLUDED_POOL_IDS,
        first_pool_id: int = 1,
        pool_count_inclusive: bool = True,
        reward_decimals: int = DEFAULT_REWARD_DECIMALS,
    ) -> None:
        self.provider = provider
        self.multicall = multicall
        self.tokens = tokens
        self.farm_address = checksum(farm_address)
        self.excluded_pool_ids = frozenset(excluded_pool_ids)
        self.first_pool_id = first_pool_id
        self.pool_count_inclusive = pool_count_inclusive
        self.reward_decimals = reward_decimals
        self._pools: tuple[Pool, ...] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        provider: CallTransport,
        cache: MetadataCache | None = None,
    ) -> "FarmService":
        """
        Wire a farm service and its collaborators from settings.

        Parameters
        ----------
        settings : Settings
            Loaded settings
        provider : CallTransport
            Connected transport
        cache : MetadataCache | None
            Metadata cache to share; a new one is created if None

        Returns
        -------
        FarmService
            Ready-to-use service

        """
        cache = cache or MetadataCache()
        multicall = MulticallBatcher(
            provider,
            settings.multicall_address,
            chunk_size=settings.chunk_size,
            mode=settings.aggregate_mode,
        )
        tokens = TokenService(
            multicall,
            PairClassifier(provider, cache),
            cache,
            probe_workers=settings.probe_workers,
        )
        return cls(
            provider,
            multicall,
            tokens,
            settings.farm_address,
            excluded_pool_ids=settings.excluded_pool_ids,
            first_pool_id=settings.first_pool_id,
            pool_count_inclusive=settings.pool_count_inclusive,
            reward_decimals=settings.reward_decimals,
        )

    def get_pool_count(self) -> int:
        """
        Read the number of pools from the farm contract.

        Raises
        ------
        TransportError
            If the endpoint could not be reached
        CallReverted
            If the farm contract reverted

        """
        call = CallDescriptor(self.farm_address, FARM_POOL_LENGTH)
        result = decode_result(call, self.provider.eth_call(self.farm_address, encode_call(call)))
        if not result.success:
            msg = f"Cannot read pool count from {self.farm_address}: {result.error}"
            raise FarmTrackerError(msg)
        return result["length"]

    def pool_ids(self, pool_count: int) -> list[int]:
        """Pool ids to read for a given pool count, deny-listed ids removed."""
        last = pool_count if self.pool_count_inclusive else pool_count - 1
        return [
            pool_id
            for pool_id in range(self.first_pool_id, last + 1)
            if pool_id not in self.excluded_pool_ids
        ]

    def refresh_pools(self) -> list[Pool]:
        """
        Rebuild the pool list from chain state.

        The cached pool list is replaced only when the whole rebuild
        succeeds.

        Returns
        -------
        list[Pool]
            Fresh pool list

        """
        pool_ids = self.pool_ids(self.get_pool_count())
        calls = [CallDescriptor(self.farm_address, FARM_POOL_INFO, (pool_id,)) for pool_id in pool_ids]
        results = self.multicall.execute(calls)

        infos = []
        for pool_id, result in zip(pool_ids, results, strict=True):
            if not result.success:
                logger.warning("Skipping pool %d: poolInfo unavailable (%s)", pool_id, result.error)
                continue
            infos.append((pool_id, result))

        details = self.tokens.get_or_fetch_batch([info["want"] for _, info in infos])

        pools = tuple(
            Pool(
                pool_id=pool_id,
                token=detail,
                alloc_point=info["allocPoint"],
                last_reward_block=info["lastRewardBlock"],
                strategy_address=info["strat"],
            )
            for (pool_id, info), detail in zip(infos, details, strict=True)
        )

        self._pools = pools
        logger.info("Fetched %d pools", len(pools))
        return list(pools)

    def list_pools(self) -> list[Pool]:
        """Pools from the last successful refresh (empty before the first one)."""
        return list(self._pools or ())

    def get_positions(self, holder: str) -> list[StakePosition]:
        """
        Get a holder's stake positions across all pools.

        Pools with neither a staked balance nor a pending reward are left
        out.

        Parameters
        ----------
        holder : str
            Holder wallet address

        Returns
        -------
        list[StakePosition]
            Positions in pool order

        Raises
        ------
        ValueError
            If ``holder`` is not a valid address

        """
        holder = checksum(holder)
        pools = self._pools
        if pools is None:
            self.refresh_pools()
            pools = self._pools

        functions = sorted_functions(STAKED_INFO_FUNCTIONS)
        calls = [
            CallDescriptor(self.farm_address, function, (pool.pool_id, holder))
            for pool in pools
            for function in functions
        ]
        results = self.multicall.execute(calls)

        size = len(functions)
        staked = []
        for index, pool in enumerate(pools):
            by_name = {result.function.name: result for result in results[index * size : (index + 1) * size]}
            reward_result = by_name[FARM_PENDING_REWARD.name]
            balance_result = by_name[FARM_STAKED_TOKENS.name]
            if not (reward_result.success and balance_result.success):
                logger.warning("Incomplete stake info for pool %d, treating missing values as zero", pool.pool_id)

            reward = reward_result.get("pending", 0)
            balance = balance_result.get("staked", 0)
            if balance == 0 and reward == 0:
                continue
            staked.append((pool, balance, reward))

        pair_pools = [pool for pool, _, _ in staked if pool.token.is_pair]
        reserves_by_pool: dict[int, PairReserves | None] = {}
        if pair_pools:
            reserves = self.tokens.get_pair_reserves([pool.token.address for pool in pair_pools])
            reserves_by_pool = {pool.pool_id: data for pool, data in zip(pair_pools, reserves, strict=True)}

        return [
            self._build_position(pool, balance, reward, reserves_by_pool.get(pool.pool_id))
            for pool, balance, reward in staked
        ]

    def _build_position(
        self,
        pool: Pool,
        staked: int,
        reward: int,
        reserves: PairReserves | None,
    ) -> StakePosition:
        detail = pool.token
        balance = scale(staked, detail.token.decimals)

        # Underlying amounts need both underlying tokens' real decimals
        if detail.is_pair and reserves is not None and detail.is_complete:
            tokens = [
                TokenBalance(
                    symbol=underlying.symbol,
                    address=underlying.address,
                    balance=scale(underlying_balance(reserve, staked, reserves.total_supply), underlying.decimals),
                )
                for underlying, reserve in (
                    (detail.token0, reserves.reserve0),
                    (detail.token1, reserves.reserve1),
                )
            ]
        else:
            tokens = [TokenBalance(symbol=detail.token.symbol, address=detail.address, balance=balance)]

        return StakePosition(
            pool=pool,
            staked_balance=staked,
            pending_reward=reward,
            balance=balance,
            reward=scale(reward, self.reward_decimals),
            tokens=tokens,
        )

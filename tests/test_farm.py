"""Tests for farm pool listing and stake position assembly."""

import pytest

from farm_tracker.core.classifier import PairClassifier
from farm_tracker.core.farm import FarmService, underlying_balance
from farm_tracker.core.tokens import TokenService
from farm_tracker.data.abis import ERC20_DECIMALS, FARM_POOL_LENGTH, PAIR_GET_RESERVES
from farm_tracker.exceptions import AggregationError, FarmTrackerError
from farm_tracker.rpc.multicall import AggregateMode, MulticallBatcher
from fake_chain import FARM, HOLDER, MULTICALL, STRATEGY, make_address

WBNB = make_address(0x1001)
CAKE = make_address(0x1002)
BTCB = make_address(0x1003)
PAIR = make_address(0x2001)
OTHER_HOLDER = make_address(0xCAFE)


@pytest.fixture
def tokens(chain, cache, multicall):
    chain.add_token(WBNB, "Wrapped BNB", "WBNB", 18)
    chain.add_token(CAKE, "PancakeSwap Token", "Cake", 18)
    chain.add_token(BTCB, "BTCB Token", "BTCB", 8)
    return TokenService(multicall, PairClassifier(chain, cache), cache)


def make_farm(chain, tokens, multicall, excluded=(), **kwargs) -> FarmService:
    return FarmService(chain, multicall, tokens, FARM, excluded_pool_ids=excluded, **kwargs)


@pytest.mark.parametrize(
    ("reserve", "staked", "total_supply", "expected"),
    [
        (1000, 10, 100, 100),
        (2000, 10, 100, 200),
        (1000, 3, 7, 428),
        (10**30, 10**18, 10**20, 10**28),
        (1000, 10, 0, 0),
        (0, 10, 100, 0),
    ],
)
def test_underlying_balance(reserve, staked, total_supply, expected):
    assert underlying_balance(reserve, staked, total_supply) == expected


def test_pool_ids_skip_excluded(chain, tokens, multicall):
    farm = make_farm(chain, tokens, multicall, excluded={2})

    assert farm.pool_ids(3) == [1, 3]
    assert farm.pool_ids(0) == []


@pytest.mark.parametrize("count", [1, 5, 330, 400])
def test_default_deny_list_never_listed(chain, tokens, multicall, count):
    farm = FarmService(chain, multicall, tokens, FARM)

    ids = farm.pool_ids(count)

    assert 331 not in ids
    assert 369 not in ids
    assert len(ids) == count - len({331, 369} & set(range(1, count + 1)))


def test_first_pool_id(chain, tokens, multicall):
    farm = make_farm(chain, tokens, multicall, first_pool_id=0)

    assert farm.pool_ids(2) == [0, 1, 2]


def test_pool_ids_exclusive_of_pool_count(chain, tokens, multicall):
    farm = make_farm(chain, tokens, multicall, excluded={2}, pool_count_inclusive=False)

    assert farm.pool_ids(4) == [1, 3]
    assert farm.pool_ids(1) == []


def test_aggregate_mode_refresh_on_zero_based_farm(chain, tokens):
    """Legacy aggregate mode only works when no id past the last pool is read."""
    chain.add_farm(FARM, {0: CAKE, 1: WBNB, 2: BTCB}, pool_length=3)
    multicall = MulticallBatcher(chain, MULTICALL, mode=AggregateMode.AGGREGATE)

    pools = make_farm(chain, tokens, multicall, pool_count_inclusive=False).refresh_pools()

    assert [(pool.pool_id, pool.token.token.symbol) for pool in pools] == [(1, "WBNB"), (2, "BTCB")]

    with pytest.raises(AggregationError, match="invalid pool id"):
        make_farm(chain, tokens, multicall).refresh_pools()


def test_get_pool_count(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB, 2: CAKE}, pool_length=2)

    assert make_farm(chain, tokens, multicall).get_pool_count() == 2


def test_get_pool_count_unreadable(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB})
    chain.set_raw(FARM, FARM_POOL_LENGTH, b"")

    with pytest.raises(FarmTrackerError, match="Cannot read pool count"):
        make_farm(chain, tokens, multicall).get_pool_count()


def test_refresh_pools_with_deny_list(chain, tokens, multicall):
    """Pool count 3 with pool 2 excluded lists pools 1 and 3."""
    chain.add_pair(PAIR, CAKE, WBNB)
    chain.add_farm(FARM, {1: WBNB, 2: CAKE, 3: PAIR}, pool_length=3)
    farm = make_farm(chain, tokens, multicall, excluded={2})

    pools = farm.refresh_pools()

    assert [pool.pool_id for pool in pools] == [1, 3]
    assert pools[0].token.token.symbol == "WBNB"
    assert pools[0].alloc_point == 100
    assert pools[0].last_reward_block == 1001
    assert pools[0].strategy_address == STRATEGY
    assert pools[1].token.is_pair
    assert pools[1].token.token0.symbol == "Cake"
    assert farm.list_pools() == pools


def test_refresh_skips_unreadable_pool(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB, 2: CAKE}, pool_length=3)
    farm = make_farm(chain, tokens, multicall)

    pools = farm.refresh_pools()

    assert [pool.pool_id for pool in pools] == [1, 2]


def test_list_pools_before_refresh(chain, tokens, multicall):
    assert make_farm(chain, tokens, multicall).list_pools() == []


def test_failed_refresh_keeps_previous_pools(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB, 2: CAKE})
    farm = make_farm(chain, tokens, multicall)
    pools = farm.refresh_pools()

    chain.unreachable.add(MULTICALL.lower())
    with pytest.raises(AggregationError):
        farm.refresh_pools()

    assert farm.list_pools() == pools


def test_plain_token_position(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB}, stakes={(1, HOLDER): (5 * 10**18, 0)})
    farm = make_farm(chain, tokens, multicall)

    (position,) = farm.get_positions(HOLDER)

    assert position.pool.pool_id == 1
    assert position.staked_balance == 5 * 10**18
    assert position.balance == "5.0"
    assert position.reward == "0.0"
    assert [token.model_dump() for token in position.tokens] == [
        {"symbol": "WBNB", "address": WBNB, "balance": "5.0"}
    ]


def test_positions_refresh_pools_on_first_use(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB}, stakes={(1, HOLDER): (1, 0)})
    farm = make_farm(chain, tokens, multicall)

    farm.get_positions(HOLDER)

    assert [pool.pool_id for pool in farm.list_pools()] == [1]


def test_zero_positions_are_filtered(chain, tokens, multicall):
    chain.add_farm(
        FARM,
        {1: WBNB, 2: CAKE, 3: BTCB},
        stakes={
            (1, HOLDER): (0, 0),
            (2, HOLDER): (0, 7 * 10**17),
            (3, HOLDER): (12345678, 0),
            (1, OTHER_HOLDER): (10**18, 10**18),
        },
    )
    farm = make_farm(chain, tokens, multicall)

    positions = farm.get_positions(HOLDER.lower())

    assert [position.pool.pool_id for position in positions] == [2, 3]
    assert positions[0].balance == "0.0"
    assert positions[0].reward == "0.7"
    assert positions[1].balance == "0.12345678"


def test_no_positions(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB})

    assert make_farm(chain, tokens, multicall).get_positions(HOLDER) == []


def test_excluded_pool_never_reported(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB, 2: CAKE}, stakes={(2, HOLDER): (10**18, 10**18)})
    farm = make_farm(chain, tokens, multicall, excluded={2})

    assert farm.get_positions(HOLDER) == []


def test_pair_position_splits_into_underlying(chain, tokens, multicall):
    """Reserves 1000/2000, supply 100, stake 10 gives 100 and 200 of the underlying tokens."""
    chain.add_token(make_address(0x1005), "Zero A", "ZA", 0)
    chain.add_token(make_address(0x1006), "Zero B", "ZB", 0)
    chain.add_pair(PAIR, make_address(0x1005), make_address(0x1006), reserves=(1000, 2000), total_supply=100)
    chain.add_farm(FARM, {1: PAIR}, stakes={(1, HOLDER): (10, 3 * 10**18)})
    farm = make_farm(chain, tokens, multicall)

    (position,) = farm.get_positions(HOLDER)

    assert position.reward == "3.0"
    assert position.balance == "0.00000000000000001"
    assert [(token.symbol, token.balance) for token in position.tokens] == [("ZA", "100.0"), ("ZB", "200.0")]
    assert position.tokens[0].address == make_address(0x1005)


def test_pair_position_uses_each_token_decimals(chain, tokens, multicall):
    chain.add_pair(PAIR, BTCB, WBNB, reserves=(2 * 10**8, 30 * 10**18), total_supply=10**18)
    chain.add_farm(FARM, {1: PAIR}, stakes={(1, HOLDER): (10**17, 0)})
    farm = make_farm(chain, tokens, multicall)

    (position,) = farm.get_positions(HOLDER)

    assert [(token.symbol, token.balance) for token in position.tokens] == [("BTCB", "0.2"), ("WBNB", "3.0")]


def test_pair_without_reserves_falls_back_to_lp_balance(chain, tokens, multicall):
    chain.add_pair(PAIR, CAKE, WBNB, reserves=(1000, 2000), total_supply=100)
    chain.set_raw(PAIR, PAIR_GET_RESERVES, b"")
    chain.add_farm(FARM, {1: PAIR}, stakes={(1, HOLDER): (2 * 10**18, 0)})
    farm = make_farm(chain, tokens, multicall)

    (position,) = farm.get_positions(HOLDER)

    assert [(token.symbol, token.balance) for token in position.tokens] == [("Cake-LP", "2.0")]


def test_invalid_holder(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB})

    with pytest.raises(ValueError, match="Invalid address"):
        make_farm(chain, tokens, multicall).get_positions("not-an-address")


def test_position_serializes(chain, tokens, multicall):
    chain.add_farm(FARM, {1: WBNB}, stakes={(1, HOLDER): (10**18, 0)})

    (position,) = make_farm(chain, tokens, multicall).get_positions(HOLDER)
    data = position.model_dump(mode="json")

    assert data["pool"]["pool_id"] == 1
    assert data["pool"]["token"]["token"]["symbol"] == "WBNB"
    assert data["tokens"][0]["balance"] == "1.0"


def test_pair_with_unknown_underlying_falls_back_to_lp_balance(chain, tokens, multicall):
    """An undecodable underlying token has no real decimals, so the LP amount is reported instead."""
    chain.add_pair(PAIR, CAKE, WBNB, reserves=(1000, 2000), total_supply=100)
    chain.set_raw(CAKE, ERC20_DECIMALS, b"\x01")
    chain.add_farm(FARM, {1: PAIR}, stakes={(1, HOLDER): (3 * 10**18, 0)})
    farm = make_farm(chain, tokens, multicall)

    (position,) = farm.get_positions(HOLDER)

    assert position.pool.token.token0.is_unknown
    assert [(token.symbol, token.balance) for token in position.tokens] == [("Cake-LP", "3.0")]

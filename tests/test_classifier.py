"""Tests for liquidity pair detection."""

import logging

import pytest

from farm_tracker.core.classifier import PairClassifier, ProbeOutcome
from farm_tracker.data.abis import PAIR_TOKEN1
from farm_tracker.exceptions import TransportError
from fake_chain import make_address

WBNB = make_address(0x1001)
CAKE = make_address(0x1002)
PAIR = make_address(0x2001)


@pytest.fixture
def classifier(chain, cache):
    chain.add_token(WBNB, "Wrapped BNB", "WBNB", 18)
    chain.add_token(CAKE, "PancakeSwap Token", "Cake", 18)
    chain.add_pair(PAIR, CAKE, WBNB)
    return PairClassifier(chain, cache)


def test_pair_is_detected(classifier, cache):
    pair = classifier.classify(PAIR)

    assert pair.address == PAIR
    assert pair.token0_address == CAKE
    assert pair.token1_address == WBNB
    assert cache.get_pair(PAIR) == pair


def test_cached_pair_skips_probes(classifier, chain):
    classifier.classify(PAIR)
    calls = len(chain.calls)

    classifier.classify(PAIR)

    assert len(chain.calls) == calls


def test_plain_token_is_not_a_pair(classifier, cache, caplog):
    with caplog.at_level(logging.INFO):
        assert classifier.classify(WBNB) is None

    assert cache.get_pair(WBNB) is None
    assert any("is not LP token" in record.getMessage() for record in caplog.records)
    assert all(record.levelno < logging.WARNING for record in caplog.records)


def test_account_without_code_is_not_a_pair(classifier):
    assert classifier.probe(make_address(0xE0A)).outcome is ProbeOutcome.NOT_PAIR


def test_half_pair_is_not_a_pair(classifier, chain):
    """A contract answering token0 but not token1 is treated as a plain token."""
    chain.set_raw(PAIR, PAIR_TOKEN1, b"\x00")

    result = classifier.probe(PAIR)

    assert result.outcome is ProbeOutcome.NOT_PAIR
    assert result.pair is None


def test_transport_failure_is_distinct(classifier, chain):
    chain.unreachable.add(PAIR.lower())

    result = classifier.probe(PAIR)

    assert result.outcome is ProbeOutcome.TRANSPORT_FAILURE
    assert isinstance(result.error, TransportError)


def test_transport_failure_is_raised_and_not_cached(classifier, chain, cache):
    chain.unreachable.add(PAIR.lower())

    with pytest.raises(TransportError):
        classifier.classify(PAIR)

    assert cache.get_pair(PAIR) is None

    chain.unreachable.clear()
    assert classifier.classify(PAIR) is not None

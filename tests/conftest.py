"""Pytest configuration and shared fixtures for farm-tracker tests."""

import pytest
from fake_chain import MULTICALL, FakeChain

from farm_tracker.rpc.cache import MetadataCache
from farm_tracker.rpc.multicall import MulticallBatcher


def pytest_configure(config):
    """Disable ape plugin during tests."""
    # Unregister ape pytest plugin to avoid network connection issues
    config.pluginmanager.set_blocked("ape_test")


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def cache() -> MetadataCache:
    return MetadataCache()


@pytest.fixture
def multicall(chain: FakeChain) -> MulticallBatcher:
    return MulticallBatcher(chain, MULTICALL)

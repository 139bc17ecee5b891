"""Core functionality including models, pair classification, token metadata and farm assembly."""

from farm_tracker.core.classifier import PairClassifier, ProbeOutcome, ProbeResult
from farm_tracker.core.farm import FarmService, underlying_balance
from farm_tracker.core.models import (
    PairMetadata,
    PairReserves,
    Pool,
    StakePosition,
    TokenBalance,
    TokenDetail,
    TokenMetadata,
)
from farm_tracker.core.tokens import TokenService

__all__ = [
    "FarmService",
    "PairClassifier",
    "PairMetadata",
    "PairReserves",
    "Pool",
    "ProbeOutcome",
    "ProbeResult",
    "StakePosition",
    "TokenBalance",
    "TokenDetail",
    "TokenMetadata",
    "TokenService",
    "underlying_balance",
]

"""RPC layer with providers, retry logic, call codec, metadata cache and multicall support."""

from farm_tracker.rpc.cache import Claim, MetadataCache
from farm_tracker.rpc.codec import (
    CallDescriptor,
    ContractFunction,
    DecodedResult,
    checksum,
    decode_result,
    encode_call,
    scale,
)
from farm_tracker.rpc.multicall import AggregateMode, MulticallBatcher, chunked
from farm_tracker.rpc.provider import ApeRPCProvider, CallTransport, HttpRPCProvider
from farm_tracker.rpc.retry import RetryConfig, with_retry

__all__ = [
    "AggregateMode",
    "ApeRPCProvider",
    "CallDescriptor",
    "CallTransport",
    "Claim",
    "ContractFunction",
    "DecodedResult",
    "HttpRPCProvider",
    "MetadataCache",
    "MulticallBatcher",
    "RetryConfig",
    "checksum",
    "chunked",
    "decode_result",
    "encode_call",
    "scale",
    "with_retry",
]

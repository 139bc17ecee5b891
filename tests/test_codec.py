"""Tests for call encoding, result decoding and amount formatting."""

import importlib

import pytest
from eth_abi import encode

from farm_tracker.data.abis import (
    ERC20_DECIMALS,
    ERC20_NAME,
    ERC20_SYMBOL,
    ERC20_TOTAL_SUPPLY,
    FARM_POOL_INFO,
    FARM_STAKED_TOKENS,
    PAIR_GET_RESERVES,
    PAIR_TOKEN0,
    PAIR_TOKEN1,
)
from farm_tracker.exceptions import EncodingError
from farm_tracker.rpc.codec import (
    CallDescriptor,
    DecodedResult,
    checksum,
    decode_result,
    encode_call,
    scale,
    sorted_functions,
)
from fake_chain import HOLDER, STRATEGY, make_address

TOKEN = make_address(0x1001)


@pytest.mark.parametrize(
    ("function", "selector"),
    [
        (ERC20_NAME, "06fdde03"),
        (ERC20_SYMBOL, "95d89b41"),
        (ERC20_DECIMALS, "313ce567"),
        (ERC20_TOTAL_SUPPLY, "18160ddd"),
        (PAIR_TOKEN0, "0dfe1681"),
        (PAIR_TOKEN1, "d21220a7"),
        (PAIR_GET_RESERVES, "0902f1ac"),
    ],
)
def test_known_selectors(function, selector):
    """Selectors match the well-known 4-byte ids."""
    assert function.selector.hex() == selector


def test_signature_includes_input_types():
    assert FARM_STAKED_TOKENS.signature == "stakedWantTokens(uint256,address)"


def test_encode_call_without_arguments():
    call = CallDescriptor(TOKEN, ERC20_DECIMALS)

    assert encode_call(call) == bytes.fromhex("313ce567")


def test_encode_call_with_arguments():
    call = CallDescriptor(TOKEN, FARM_STAKED_TOKENS, (7, HOLDER))

    encoded = encode_call(call)

    assert encoded[:4] == FARM_STAKED_TOKENS.selector
    assert encoded[4:] == encode(["uint256", "address"], [7, HOLDER])


def test_encode_call_arity_mismatch():
    """Wrong argument count is an encoding error, not a silent truncation."""
    call = CallDescriptor(TOKEN, FARM_STAKED_TOKENS, (7,))

    with pytest.raises(EncodingError, match="takes 2 arguments, got 1"):
        encode_call(call)


def test_encode_call_type_mismatch():
    call = CallDescriptor(TOKEN, FARM_STAKED_TOKENS, ("seven", HOLDER))

    with pytest.raises(EncodingError, match="stakedWantTokens"):
        encode_call(call)


def test_descriptor_args_are_tuples():
    call = CallDescriptor(TOKEN, FARM_POOL_INFO, [3])

    assert call.args == (3,)


def test_decode_result_named_values():
    call = CallDescriptor(TOKEN, FARM_POOL_INFO, (1,))
    data = encode(
        ["address", "uint256", "uint256", "uint256", "address"],
        [TOKEN.lower(), 300, 1001, 0, STRATEGY.lower()],
    )

    result = decode_result(call, data)

    assert result.success
    assert result["want"] == TOKEN
    assert result["allocPoint"] == 300
    assert result[2] == 1001
    assert result["strat"] == STRATEGY
    assert result.get("lastRewardBlock") == 1001


def test_decode_result_string():
    call = CallDescriptor(TOKEN, ERC20_NAME)

    result = decode_result(call, encode(["string"], ["Wrapped BNB"]))

    assert result.success
    assert result["name"] == "Wrapped BNB"


def test_decode_result_reverted():
    call = CallDescriptor(TOKEN, ERC20_DECIMALS)

    result = decode_result(call, b"", success=False)

    assert not result.success
    assert result.values == ()
    assert result.error == "call reverted"


@pytest.mark.parametrize("data", [b"", b"\x01\x02", b"\x00" * 16])
def test_decode_result_malformed_bytes(data):
    """Short or empty data yields a failure marker instead of raising."""
    call = CallDescriptor(TOKEN, ERC20_TOTAL_SUPPLY)

    result = decode_result(call, data)

    assert not result.success
    assert result.get("totalSupply", "missing") == "missing"


def test_truncated_data_fails_after_ape_import():
    """Truncated uint data stays a failure once ape has patched eth_abi's shared registry."""
    importlib.import_module("farm_tracker.rpc.provider")
    importlib.import_module("ape.utils.abi")

    decimals = decode_result(CallDescriptor(TOKEN, ERC20_DECIMALS), b"\xff")
    supply = decode_result(CallDescriptor(TOKEN, ERC20_TOTAL_SUPPLY), b"\x01\x02")

    assert not decimals.success
    assert not supply.success


def test_decode_result_value_out_of_range():
    """A uint8 slot holding a larger number is rejected."""
    call = CallDescriptor(TOKEN, ERC20_DECIMALS)

    result = decode_result(call, encode(["uint256"], [2**200]))

    assert not result.success


def test_failure_results_compare_equal_regardless_of_message():
    assert DecodedResult.failure(ERC20_NAME, "a") == DecodedResult.failure(ERC20_NAME, "b")


def test_checksum():
    assert checksum(TOKEN.lower()) == TOKEN


@pytest.mark.parametrize("value", ["", "0x1234", "not an address", None])
def test_checksum_rejects_invalid(value):
    with pytest.raises(ValueError, match="Invalid address"):
        checksum(value)


@pytest.mark.parametrize(
    ("value", "decimals", "expected"),
    [
        (5 * 10**18, 18, "5.0"),
        (0, 18, "0.0"),
        (1234500, 6, "1.2345"),
        (1, 18, "0.000000000000000001"),
        (7, 0, "7.0"),
        (100, 0, "100.0"),
        (-15, 1, "-1.5"),
        (10**30, 18, "1000000000000.0"),
    ],
)
def test_scale(value, decimals, expected):
    assert scale(value, decimals) == expected


def test_scale_rejects_negative_decimals():
    with pytest.raises(ValueError, match="non-negative"):
        scale(1, -1)


def test_sorted_functions_orders_by_name():
    ordered = sorted_functions([ERC20_SYMBOL, ERC20_NAME, ERC20_DECIMALS])

    assert [function.name for function in ordered] == ["decimals", "name", "symbol"]

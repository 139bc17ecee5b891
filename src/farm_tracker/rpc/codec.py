"""ABI encoding and decoding of single contract read calls."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from eth_abi.codec import ABICodec
from eth_abi.decoding import UnsignedIntegerDecoder
from eth_abi.encoding import UnsignedIntegerEncoder
from eth_abi.exceptions import DecodingError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_abi.registry import BaseEquals, registry
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address

from farm_tracker.exceptions import EncodingError

logger = logging.getLogger(__name__)


def _strict_codec() -> ABICodec:
    """
    Build a codec on a private copy of eth_abi's registry.

    ape replaces the shared registry's ``uint`` decoder with one that
    zero-pads short data, so truncated return data would decode to a value.
    The copy gets eth_abi's own strict ``uint`` coders back, whichever of the
    two modules was imported first.
    """
    strict_registry = registry.copy()
    strict_registry.unregister("uint")
    strict_registry.register(
        BaseEquals("uint"),
        UnsignedIntegerEncoder,
        UnsignedIntegerDecoder,
        label="uint",
    )
    return ABICodec(strict_registry)


_codec = _strict_codec()


@dataclass(frozen=True)
class ContractFunction:
    """
    Read-only contract function.

    Parameters
    ----------
    name : str
        Function name (e.g., 'balanceOf')
    inputs : tuple[str, ...]
        ABI types of the arguments
    outputs : tuple[tuple[str, str], ...]
        (name, ABI type) pairs of the return values

    """

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[tuple[str, str], ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    @property
    def output_types(self) -> list[str]:
        return [abi_type for _, abi_type in self.outputs]

    @property
    def output_names(self) -> list[str]:
        return [name for name, _ in self.outputs]


@dataclass(frozen=True)
class CallDescriptor:
    """Target address, function and arguments of one contract read."""

    target: str
    function: ContractFunction
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        # Normalise so list arguments don't break hashing of the frozen instance
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class DecodedResult:
    """
    Decoded return values of one call.

    A failed call (revert, empty or malformed return data) has
    ``success=False`` and no values.
    """

    function: ContractFunction
    success: bool
    values: tuple[Any, ...] = ()
    error: str | None = field(default=None, compare=False)

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, str):
            key = self.function.output_names.index(key)
        return self.values[key]

    def get(self, name: str, default: Any = None) -> Any:
        """Return the named value, or ``default`` when the call failed."""
        if not self.success or name not in self.function.output_names:
            return default
        return self[name]

    @classmethod
    def failure(cls, function: ContractFunction, error: str) -> "DecodedResult":
        return cls(function=function, success=False, error=error)


def encode_call(call: CallDescriptor) -> bytes:
    """
    Encode a call as selector + ABI-encoded arguments.

    Raises
    ------
    EncodingError
        If the argument count or types don't match the function inputs

    """
    function = call.function
    if len(call.args) != len(function.inputs):
        msg = (
            f"{function.signature} on {call.target} takes {len(function.inputs)} "
            f"arguments, got {len(call.args)}"
        )
        raise EncodingError(msg)

    try:
        return function.selector + _codec.encode(list(function.inputs), list(call.args))
    except (AbiEncodingError, TypeError, ValueError) as e:
        msg = f"Cannot encode {function.signature} on {call.target}: {e}"
        raise EncodingError(msg) from e


def decode_result(call: CallDescriptor, data: bytes, *, success: bool = True) -> DecodedResult:
    """
    Decode the raw return data of a call.

    Never raises for bad return data; failures are reported through
    ``DecodedResult.success``.
    """
    function = call.function
    if not success:
        return DecodedResult.failure(function, "call reverted")
    if not data and function.outputs:
        return DecodedResult.failure(function, "empty return data")

    try:
        values = _codec.decode(function.output_types, data)
    except (DecodingError, UnicodeDecodeError, OverflowError) as e:
        logger.debug("Cannot decode %s from %s: %s", function.signature, call.target, e)
        return DecodedResult.failure(function, str(e))

    values = tuple(
        to_checksum_address(value) if abi_type == "address" else value
        for value, abi_type in zip(values, function.output_types, strict=True)
    )
    return DecodedResult(function=function, success=True, values=values)


def checksum(address: str) -> str:
    """
    Validate and checksum an address.

    Raises
    ------
    ValueError
        If the value is not a 20-byte hex address

    """
    if not isinstance(address, str) or not is_address(address.lower()):
        msg = f"Invalid address: {address!r}"
        raise ValueError(msg)
    return to_checksum_address(address)


def scale(value: int, decimals: int) -> str:
    """
    Format an integer amount as a fixed-point decimal string.

    Trailing zeros of the fraction are dropped but at least one
    fractional digit is kept.

    Parameters
    ----------
    value : int
        Raw on-chain amount
    decimals : int
        Token decimals

    Returns
    -------
    str
        Formatted amount

    Examples
    --------
    >>> scale(5 * 10**18, 18)
    '5.0'
    >>> scale(1234500, 6)
    '1.2345'

    """
    if decimals < 0:
        msg = f"decimals must be non-negative, got {decimals}"
        raise ValueError(msg)

    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10**decimals)
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{fraction_str or '0'}"


def sorted_functions(functions: Sequence[ContractFunction]) -> list[ContractFunction]:
    """Order functions by name so batched calls map to predictable result slots."""
    return sorted(functions, key=lambda function: function.name)

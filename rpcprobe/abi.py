from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Sequence, Tuple, Union

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import is_hex, keccak, to_bytes, to_checksum_address

from rpcprobe.errors import DecodeError


ERROR_STRING_SELECTOR = "0x08c379a0"
PANIC_SELECTOR = "0x4e487b71"

_PANIC_CODES = {
    0x01: "assertion failed",
    0x11: "arithmetic overflow or underflow",
    0x12: "division or modulo by zero",
    0x21: "invalid enum value",
    0x22: "invalid storage byte array",
    0x31: "pop on empty array",
    0x32: "array index out of bounds",
    0x41: "out of memory",
    0x51: "call to zero-initialized function",
}


def function_selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def encode_calldata(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> str:
    sel = function_selector(signature)
    try:
        enc = abi_encode(list(arg_types), list(args))
    except EncodingError as e:
        raise ValueError(f"Cannot encode arguments for {signature}: {e}") from e
    return "0x" + (sel + enc).hex()


def decode_call_result(output_hex: Any, out_types: Sequence[str]) -> Tuple[Any, ...]:
    if output_hex is None:
        raise DecodeError("Missing output")
    if not isinstance(output_hex, str) or not output_hex.startswith("0x") or not is_hex(output_hex):
        raise DecodeError(f"Invalid output hex: {output_hex!r}")
    data = to_bytes(hexstr=output_hex)
    if len(data) == 0:
        if out_types:
            # Calls to an address without code succeed with empty output.
            raise DecodeError(f"Empty output, expected {list(out_types)}")
        return tuple()
    try:
        return tuple(abi_decode(list(out_types), data))
    except (DecodingError, OverflowError, ValueError) as e:
        raise DecodeError(f"Output does not match {list(out_types)}: {e}") from e


def decode_revert_reason(data: Any) -> Optional[str]:
    if not isinstance(data, str) or not data.startswith("0x") or len(data) < 10:
        return None
    selector = data[:10].lower()
    try:
        payload = to_bytes(hexstr="0x" + data[10:])
    except ValueError:
        return None
    try:
        if selector == ERROR_STRING_SELECTOR:
            (reason,) = abi_decode(["string"], payload)
            return str(reason)
        if selector == PANIC_SELECTOR:
            (code,) = abi_decode(["uint256"], payload)
            return f"panic 0x{code:02x} ({_PANIC_CODES.get(code, 'unknown')})"
    except (DecodingError, OverflowError, ValueError):
        return None
    return None


def parse_units(amount: Union[str, int, float, Decimal], decimals: int) -> int:
    """Convert a human amount ("0.01") into base units, rounding half up past `decimals`."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    scaled = (value * (Decimal(10) ** int(decimals))).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(scaled)


def format_units(value: int, decimals: int) -> str:
    d = Decimal(int(value)).scaleb(-int(decimals))
    s = format(d, "f")
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def checksum(addr: str) -> str:
    try:
        return to_checksum_address(addr)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid address: {addr!r}") from e

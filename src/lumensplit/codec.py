"""Value codec between native Python values and Soroban SCVal wire values.

Encoding is strict: bad input raises CodecError before anything is sent.

Decoding is defensive: ``decode`` never raises. Anything it cannot turn
into a native value is handed back unchanged, and callers treat that echo
as "no data".
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Iterable, Union

from stellar_sdk import scval
from stellar_sdk import xdr as stellar_xdr

from lumensplit.errors import CodecError
from lumensplit.models import AMOUNT_DECIMALS, I128_MAX, I128_MIN, AccountId

logger = logging.getLogger(__name__)

U32_MAX = 2**32 - 1

# Integer digits beyond which no amount can fit i128
MAX_AMOUNT_DIGITS = 40


class WireType(str, Enum):
    """Argument types the contract accepts."""
    U32 = "u32"
    AMOUNT = "i128"
    STRING = "string"
    ADDRESS = "address"
    ADDRESS_VEC = "vec<address>"


@dataclass(frozen=True)
class DecodeResult:
    """Tagged decode outcome: ``decoded`` is False when ``value`` is the raw input."""
    decoded: bool
    value: Any


# ======================
# Encoding
# ======================

def to_minor_units(value: Union[str, int, float, Decimal]) -> int:
    """Scale a decimal amount by 10^7, truncating extra digits toward zero."""
    if isinstance(value, bool) or value is None:
        raise CodecError(f"Invalid amount: {value!r}")
    try:
        if isinstance(value, float):
            value = repr(value)
        amount = Decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, ValueError, TypeError) as e:
        raise CodecError(f"Invalid amount: {value!r}") from e

    if not amount.is_finite():
        raise CodecError(f"Invalid amount: {value!r}")
    if amount and amount.adjusted() > MAX_AMOUNT_DIGITS:
        raise CodecError(f"Amount out of i128 range: {value!r}")

    # Exact scaling: the context must hold every input digit
    with localcontext() as ctx:
        ctx.prec = max(60, len(amount.as_tuple().digits) + AMOUNT_DECIMALS)
        minor = int(amount.scaleb(AMOUNT_DECIMALS).to_integral_value(rounding=ROUND_DOWN))
    if not I128_MIN <= minor <= I128_MAX:
        raise CodecError(f"Amount out of i128 range: {value!r}")
    return minor


def from_minor_units(minor: int) -> Decimal:
    """Convert minor units back to a decimal amount."""
    with localcontext() as ctx:
        ctx.prec = 60
        return Decimal(minor).scaleb(-AMOUNT_DECIMALS)


def encode_u32(value: Union[int, str]) -> stellar_xdr.SCVal:
    if isinstance(value, bool):
        raise CodecError(f"Invalid u32: {value!r}")
    try:
        number = int(value.strip()) if isinstance(value, str) else int(value)
    except (ValueError, TypeError) as e:
        raise CodecError(f"Invalid u32: {value!r}") from e
    if isinstance(value, float) and number != value:
        raise CodecError(f"Invalid u32: {value!r}")
    if not 0 <= number <= U32_MAX:
        raise CodecError(f"u32 out of range: {value!r}")
    return scval.to_uint32(number)


def encode_amount(value: Union[str, int, float, Decimal]) -> stellar_xdr.SCVal:
    return scval.to_int128(to_minor_units(value))


def encode_string(value: str) -> stellar_xdr.SCVal:
    if not isinstance(value, str):
        raise CodecError(f"Invalid string: {value!r}")
    return scval.to_string(value)


def encode_address(value: Union[str, AccountId]) -> stellar_xdr.SCVal:
    account = AccountId.parse(value)
    return scval.to_address(account.address)


def encode_address_vec(values: Iterable[Union[str, AccountId]]) -> stellar_xdr.SCVal:
    if isinstance(values, (str, bytes)):
        raise CodecError("Address list must be a sequence, not a string")
    return scval.to_vec([encode_address(v) for v in values])


_ENCODERS = {
    WireType.U32: encode_u32,
    WireType.AMOUNT: encode_amount,
    WireType.STRING: encode_string,
    WireType.ADDRESS: encode_address,
    WireType.ADDRESS_VEC: encode_address_vec,
}


def encode(value: Any, wire_type: WireType) -> stellar_xdr.SCVal:
    """Encode a native value as the given wire type."""
    try:
        encoder = _ENCODERS[WireType(wire_type)]
    except (KeyError, ValueError) as e:
        raise CodecError(f"Unsupported wire type: {wire_type!r}") from e
    return encoder(value)


# ======================
# Decoding
# ======================

_INTEGER_DECODERS = {
    stellar_xdr.SCValType.SCV_U32: scval.from_uint32,
    stellar_xdr.SCValType.SCV_I32: scval.from_int32,
    stellar_xdr.SCValType.SCV_U64: scval.from_uint64,
    stellar_xdr.SCValType.SCV_I64: scval.from_int64,
    stellar_xdr.SCValType.SCV_TIMEPOINT: scval.from_timepoint,
    stellar_xdr.SCValType.SCV_DURATION: scval.from_duration,
    stellar_xdr.SCValType.SCV_U128: scval.from_uint128,
    stellar_xdr.SCValType.SCV_I128: scval.from_int128,
    stellar_xdr.SCValType.SCV_U256: scval.from_uint256,
    stellar_xdr.SCValType.SCV_I256: scval.from_int256,
}


def _text(raw: Union[str, bytes]) -> Union[str, bytes]:
    if isinstance(raw, bytes):
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw
    return raw


def sc_val_to_native(sc_val: stellar_xdr.SCVal) -> Any:
    """Structured SCVal -> native conversion. Raises on unsupported values."""
    kind = sc_val.type

    if kind == stellar_xdr.SCValType.SCV_BOOL:
        return scval.from_bool(sc_val)
    if kind == stellar_xdr.SCValType.SCV_VOID:
        return None
    if kind in _INTEGER_DECODERS:
        return _INTEGER_DECODERS[kind](sc_val)
    if kind == stellar_xdr.SCValType.SCV_BYTES:
        return scval.from_bytes(sc_val)
    if kind == stellar_xdr.SCValType.SCV_STRING:
        return _text(scval.from_string(sc_val))
    if kind == stellar_xdr.SCValType.SCV_SYMBOL:
        return _text(scval.from_symbol(sc_val))
    if kind == stellar_xdr.SCValType.SCV_ADDRESS:
        return scval.from_address(sc_val).address
    if kind == stellar_xdr.SCValType.SCV_VEC:
        if sc_val.vec is None:
            return []
        return [sc_val_to_native(item) for item in sc_val.vec.sc_vec]
    if kind == stellar_xdr.SCValType.SCV_MAP:
        if sc_val.map is None:
            return {}
        return {
            sc_val_to_native(entry.key): sc_val_to_native(entry.val)
            for entry in sc_val.map.sc_map
        }

    raise CodecError(f"Unsupported wire value type: {kind}")


def decode_result(value: Any) -> DecodeResult:
    """Decode a wire value, tagging whether decoding actually happened.

    Accepts a structured ``xdr.SCVal`` or its base64 XDR serialization.
    Anything else is already native and passes through as decoded.
    """
    try:
        if isinstance(value, str):
            return DecodeResult(True, sc_val_to_native(stellar_xdr.SCVal.from_xdr(value)))
        if isinstance(value, stellar_xdr.SCVal):
            return DecodeResult(True, sc_val_to_native(value))
    except Exception as e:
        logger.debug(f"Wire value left undecoded ({type(e).__name__}: {e})")
        return DecodeResult(False, value)
    return DecodeResult(True, value)


def decode(value: Any) -> Any:
    """Decode a wire value, or return the input unchanged if that fails."""
    return decode_result(value).value

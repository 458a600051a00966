# field_codecs.py
"""
Field encoders and decoders for the DBF record layout.

Each column type has a decoder `(data, column, encoding) -> value` that reads
a fixed-width slice, and an encoder `(value, column, encoding) -> bytes` that
returns exactly `column.length` bytes or raises.

Edge cases:
- blank fields (all spaces) decode to None for Number, Float, Date, Boolean
  and Memo columns
- values that do not fit their column raise FormatError at encode time,
  except Character values which are truncated
- a Python value of the wrong kind raises TypeMismatchError
"""

import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

from byte_utils import pack_i32, unpack_i32, pack_u32, unpack_u32
from dbf_columns import ColumnDescriptor, ColumnType
from dbf_errors import FormatError, TypeMismatchError

Decoder = Callable[[bytes, ColumnDescriptor, str], Any]
Encoder = Callable[[Any, ColumnDescriptor, str], bytes]

SPACE = b' '
TRUE_BYTES = b'TtYy'
FALSE_BYTES = b'FfNn'
NULL_BOOL_BYTES = b'? '


def _blank(data: bytes) -> bool:
    return not bytes(data).strip(b' \x00')


# ---- Character ----
def decode_character(data: bytes, column: ColumnDescriptor, encoding: str) -> str:
    raw = bytes(data).rstrip(b' \x00')
    try:
        return raw.decode(encoding)
    except UnicodeDecodeError as e:
        raise FormatError(f"Column {column.name}: cannot decode {raw!r} as {encoding}: {e}") from None


def encode_character(value: Any, column: ColumnDescriptor, encoding: str) -> bytes:
    if value is None:
        return SPACE * column.length
    if not isinstance(value, str):
        raise TypeMismatchError(f"Column {column.name}: expected str, got {type(value).__name__}")
    try:
        raw = value.encode(encoding)
    except UnicodeEncodeError as e:
        raise FormatError(f"Column {column.name}: {value!r} is not representable in {encoding}: {e}") from None
    if len(raw) > column.length:
        # drop a multi-byte sequence cut in half by the truncation
        raw = raw[:column.length].decode(encoding, 'ignore').encode(encoding)
    return raw.ljust(column.length, SPACE)


# ---- Number / Float ----
def _numeric_text(data: bytes, column: ColumnDescriptor) -> Optional[str]:
    text = bytes(data).strip(b' \x00')
    if not text:
        return None
    try:
        return text.decode('ascii')
    except UnicodeDecodeError:
        raise FormatError(f"Column {column.name}: non-ASCII numeric content {text!r}") from None


def decode_number(data: bytes, column: ColumnDescriptor, encoding: str):
    text = _numeric_text(data, column)
    if text is None:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise FormatError(f"Column {column.name}: malformed number {text!r}") from None
    if not value.is_finite():
        raise FormatError(f"Column {column.name}: malformed number {text!r}")
    if column.decimals == 0 and value == value.to_integral_value():
        return int(value)
    return value


def decode_float(data: bytes, column: ColumnDescriptor, encoding: str) -> Optional[float]:
    text = _numeric_text(data, column)
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        raise FormatError(f"Column {column.name}: malformed float {text!r}") from None


def _to_decimal(value: Any, column: ColumnDescriptor) -> Decimal:
    if isinstance(value, bool):
        raise TypeMismatchError(f"Column {column.name}: expected a number, got bool")
    if isinstance(value, (int, Decimal)):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            raise TypeMismatchError(f"Column {column.name}: {value!r} is not numeric") from None
    else:
        raise TypeMismatchError(f"Column {column.name}: expected a number, got {type(value).__name__}")
    # NaN and infinities have no fixed-width text form
    if not number.is_finite():
        raise FormatError(f"Column {column.name}: {value!r} is not a finite number")
    return number


def encode_number(value: Any, column: ColumnDescriptor, encoding: str) -> bytes:
    if value is None:
        return SPACE * column.length
    number = _to_decimal(value, column)
    text = format(number, f'.{column.decimals}f')
    if len(text) > column.length:
        raise FormatError(
            f"Column {column.name}: {text!r} does not fit width {column.length} "
            f"with {column.decimals} decimals"
        )
    return text.rjust(column.length).encode('ascii')


# ---- Boolean ----
def decode_boolean(data: bytes, column: ColumnDescriptor, encoding: str) -> Optional[bool]:
    b = bytes(data[:1])
    if not b or b in NULL_BOOL_BYTES:
        return None
    if b in TRUE_BYTES:
        return True
    if b in FALSE_BYTES:
        return False
    raise FormatError(f"Column {column.name}: invalid logical value {b!r}")


def encode_boolean(value: Any, column: ColumnDescriptor, encoding: str) -> bytes:
    if value is None:
        return b'?'
    if not isinstance(value, bool):
        raise TypeMismatchError(f"Column {column.name}: expected bool, got {type(value).__name__}")
    return b'T' if value else b'F'


# ---- Date ----
def decode_date(data: bytes, column: ColumnDescriptor, encoding: str) -> Optional[datetime.date]:
    raw = bytes(data)
    if _blank(raw) or raw == b'00000000':
        return None
    if len(raw) != 8 or not raw.isdigit():
        raise FormatError(f"Column {column.name}: date {raw!r} is not YYYYMMDD")
    try:
        return datetime.date(int(raw[0:4]), int(raw[4:6]), int(raw[6:8]))
    except ValueError:
        raise FormatError(f"Column {column.name}: impossible date {raw!r}") from None


def encode_date(value: Any, column: ColumnDescriptor, encoding: str) -> bytes:
    if value is None:
        return SPACE * column.length
    if isinstance(value, datetime.datetime):
        value = value.date()
    if isinstance(value, str):
        value = decode_date(value.encode('ascii', 'replace'), column, encoding)
        if value is None:
            return SPACE * column.length
    if not isinstance(value, datetime.date):
        raise TypeMismatchError(f"Column {column.name}: expected date, got {type(value).__name__}")
    return f"{value.year:04d}{value.month:02d}{value.day:02d}".encode('ascii')


# ---- Integer (4-byte binary) ----
def decode_integer(data: bytes, column: ColumnDescriptor, encoding: str) -> int:
    return unpack_i32(bytes(data))


def encode_integer(value: Any, column: ColumnDescriptor, encoding: str) -> bytes:
    if value is None:
        return b'\x00' * column.length
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeMismatchError(f"Column {column.name}: expected int, got {type(value).__name__}")
    if not -2**31 <= value < 2**31:
        raise FormatError(f"Column {column.name}: {value} out of int32 range")
    return pack_i32(value)


# ---- Binary / General ----
def decode_binary(data: bytes, column: ColumnDescriptor, encoding: str) -> bytes:
    return bytes(data)


def encode_binary(value: Any, column: ColumnDescriptor, encoding: str) -> bytes:
    if value is None:
        return b'\x00' * column.length
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeMismatchError(f"Column {column.name}: expected bytes, got {type(value).__name__}")
    raw = bytes(value)
    if len(raw) > column.length:
        raise FormatError(f"Column {column.name}: {len(raw)} bytes do not fit width {column.length}")
    return raw.ljust(column.length, b'\x00')


# ---- Memo (block pointer only) ----
def decode_memo(data: bytes, column: ColumnDescriptor, encoding: str) -> Optional[int]:
    if column.length == 4:
        block = unpack_u32(bytes(data))
        return block or None
    text = _numeric_text(data, column)
    if text is None:
        return None
    if not text.isdigit():
        raise FormatError(f"Column {column.name}: malformed memo block {text!r}")
    return int(text) or None


def encode_memo(value: Any, column: ColumnDescriptor, encoding: str) -> bytes:
    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
        raise TypeMismatchError(f"Column {column.name}: expected block number, got {type(value).__name__}")
    if value is not None and value < 0:
        raise FormatError(f"Column {column.name}: negative memo block {value}")
    if column.length == 4:
        if value is not None and value > 0xFFFFFFFF:
            raise FormatError(f"Column {column.name}: memo block {value} out of range")
        return pack_u32(value or 0)
    if value is None:
        return SPACE * column.length
    text = str(value)
    if len(text) > column.length:
        raise FormatError(f"Column {column.name}: memo block {value} does not fit width {column.length}")
    return text.rjust(column.length).encode('ascii')


# ---- Dispatch tables ----
DECODERS: Dict[ColumnType, Decoder] = {
    ColumnType.CHARACTER: decode_character,
    ColumnType.NUMBER: decode_number,
    ColumnType.FLOAT: decode_float,
    ColumnType.BOOLEAN: decode_boolean,
    ColumnType.DATE: decode_date,
    ColumnType.BINARY: decode_binary,
    ColumnType.GENERAL: decode_binary,
    ColumnType.MEMO: decode_memo,
    ColumnType.INTEGER: decode_integer,
}

ENCODERS: Dict[ColumnType, Encoder] = {
    ColumnType.CHARACTER: encode_character,
    ColumnType.NUMBER: encode_number,
    ColumnType.FLOAT: encode_number,
    ColumnType.BOOLEAN: encode_boolean,
    ColumnType.DATE: encode_date,
    ColumnType.BINARY: encode_binary,
    ColumnType.GENERAL: encode_binary,
    ColumnType.MEMO: encode_memo,
    ColumnType.INTEGER: encode_integer,
}

# every ColumnType must have both codecs
assert set(DECODERS) == set(ColumnType) == set(ENCODERS)


def blank_field(column: ColumnDescriptor) -> bytes:
    """Bytes of an empty field: zeros for binary-encoded columns, spaces otherwise."""
    if column.type in (ColumnType.INTEGER, ColumnType.BINARY, ColumnType.GENERAL):
        return b'\x00' * column.length
    if column.type is ColumnType.MEMO and column.length == 4:
        return b'\x00' * column.length
    return SPACE * column.length


def decode_field(data: bytes, column: ColumnDescriptor, encoding: str) -> Any:
    return DECODERS[column.type](data, column, encoding)


def encode_field(value: Any, column: ColumnDescriptor, encoding: str) -> bytes:
    encoded = ENCODERS[column.type](value, column, encoding)
    assert len(encoded) == column.length
    return encoded

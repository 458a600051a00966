# dbf_columns.py
"""
Column types and field descriptors for the DBF format.

ColumnType is a closed enum keyed by the ASCII type byte stored in the
field descriptor. ColumnDescriptor is immutable; its offset is assigned by
the header when the column is added.
"""

import enum
from dataclasses import dataclass, replace
from typing import Optional

from byte_utils import MAX_FIELD_LEN, MAX_NAME_LEN
from dbf_errors import FormatError


class ColumnType(enum.Enum):
    CHARACTER = 'C'
    NUMBER = 'N'
    FLOAT = 'F'
    BOOLEAN = 'L'
    DATE = 'D'
    BINARY = 'B'
    GENERAL = 'G'
    MEMO = 'M'
    INTEGER = 'I'

    @classmethod
    def from_code(cls, code: str) -> 'ColumnType':
        try:
            return cls(code.upper())
        except ValueError:
            raise FormatError(f"Unknown column type {code!r}") from None


# Types whose width is dictated by the format rather than the caller.
FIXED_WIDTHS = {
    ColumnType.BOOLEAN: 1,
    ColumnType.DATE: 8,
    ColumnType.INTEGER: 4,
}

DEFAULT_MEMO_WIDTH = 10
MEMO_WIDTHS = (4, DEFAULT_MEMO_WIDTH)


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    type: ColumnType
    length: int
    decimals: int = 0
    offset: int = 0

    def __post_init__(self):
        if not isinstance(self.type, ColumnType):
            object.__setattr__(self, 'type', ColumnType.from_code(str(self.type)))
        validate_name(self.name)
        if not 1 <= self.length <= MAX_FIELD_LEN:
            raise FormatError(f"Column {self.name!r}: width {self.length} outside 1..{MAX_FIELD_LEN}")
        expected = FIXED_WIDTHS.get(self.type)
        if expected is not None and self.length != expected:
            raise FormatError(f"Column {self.name!r}: {self.type.name} width must be {expected}")
        if self.type is ColumnType.MEMO and self.length not in MEMO_WIDTHS:
            raise FormatError(f"Column {self.name!r}: memo width must be one of {MEMO_WIDTHS}")
        if self.decimals < 0 or self.decimals > MAX_FIELD_LEN:
            raise FormatError(f"Column {self.name!r}: bad decimal count {self.decimals}")

    @property
    def end(self) -> int:
        return self.offset + self.length

    def at_offset(self, offset: int) -> 'ColumnDescriptor':
        return replace(self, offset=offset)

    def __repr__(self):
        dec = f",{self.decimals}" if self.decimals else ""
        return f"<Column {self.name} {self.type.value}({self.length}{dec}) @{self.offset}>"


def validate_name(name: str) -> None:
    if not name:
        raise FormatError("Column name must not be empty")
    try:
        raw = name.encode('ascii')
    except UnicodeEncodeError:
        raise FormatError(f"Column name {name!r} is not ASCII") from None
    if len(raw) > MAX_NAME_LEN:
        raise FormatError(f"Column name {name!r} longer than {MAX_NAME_LEN} bytes")
    if b'\x00' in raw:
        raise FormatError(f"Column name {name!r} contains NUL")


def make_column(name: str, type, length: Optional[int] = None, decimals: int = 0) -> ColumnDescriptor:
    """
    Build a descriptor from loose arguments.

    - type may be a ColumnType or its one-letter code ('C', 'N', ...)
    - length may be omitted for Boolean, Date, Integer and Memo columns
    """
    col_type = type if isinstance(type, ColumnType) else ColumnType.from_code(str(type))
    if length is None:
        if col_type in FIXED_WIDTHS:
            length = FIXED_WIDTHS[col_type]
        elif col_type is ColumnType.MEMO:
            length = DEFAULT_MEMO_WIDTH
        else:
            raise FormatError(f"Column {name!r}: {col_type.name} needs an explicit width")
    return ColumnDescriptor(name=name, type=col_type, length=int(length), decimals=int(decimals))

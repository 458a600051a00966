# header_utils.py
"""
Header parser & serializer for the DBF format.

The header is a 32-byte preamble followed by one 32-byte descriptor per
column and a 0x0D terminator:

  header_length = 32 + 32 * column_count + 1
  record_length = 1 + sum(column widths)      # byte 0 is the deletion marker

Both lengths are always recomputed from the column list; the stored values
are only checked against it when parsing.
"""

import datetime
import io
from typing import BinaryIO, Dict, Iterator, List, Optional, Union

from byte_utils import (
    PREAMBLE_STRUCT, DESCRIPTOR_STRUCT, PREAMBLE_LEN, DESCRIPTOR_LEN,
    HEADER_TERMINATOR, UINT16_MAX, UINT32_MAX, read_exact,
)
from dbf_columns import ColumnDescriptor, ColumnType, make_column
from dbf_errors import FormatError, RangeError, StateError
from dbf_settings import get_settings

# Language driver id -> Python codec
CODEPAGES: Dict[int, str] = {
    0x01: 'cp437',
    0x02: 'cp850',
    0x03: 'cp1252',
    0x04: 'mac_roman',
    0x08: 'cp865',
    0x09: 'cp437',
    0x0A: 'cp850',
    0x0B: 'cp437',
    0x0D: 'cp437',
    0x0E: 'cp850',
    0x0F: 'cp437',
    0x10: 'cp850',
    0x11: 'cp437',
    0x12: 'cp850',
    0x13: 'cp932',
    0x14: 'cp850',
    0x15: 'cp437',
    0x16: 'cp850',
    0x17: 'cp865',
    0x18: 'cp437',
    0x19: 'cp437',
    0x1A: 'cp850',
    0x1B: 'cp437',
    0x1C: 'cp863',
    0x1D: 'cp850',
    0x1F: 'cp852',
    0x22: 'cp852',
    0x23: 'cp852',
    0x24: 'cp860',
    0x25: 'cp850',
    0x26: 'cp866',
    0x37: 'cp850',
    0x40: 'cp852',
    0x4D: 'cp936',
    0x4E: 'cp949',
    0x4F: 'cp950',
    0x50: 'cp874',
    0x57: 'cp1252',
    0x58: 'cp1252',
    0x59: 'cp1252',
    0x64: 'cp852',
    0x65: 'cp866',
    0x66: 'cp865',
    0x67: 'cp861',
    0x6A: 'cp737',
    0x6B: 'cp857',
    0x78: 'cp950',
    0x79: 'cp949',
    0x7A: 'gbk',
    0x7B: 'cp932',
    0x7C: 'cp874',
    0x7D: 'cp1255',
    0x7E: 'cp1256',
    0x96: 'mac_cyrillic',
    0x97: 'mac_latin2',
    0x98: 'mac_greek',
    0xC8: 'cp1250',
    0xC9: 'cp1251',
    0xCA: 'cp1254',
    0xCB: 'cp1253',
    0xCC: 'cp1257',
}


def expected_header_length(column_count: int) -> int:
    return PREAMBLE_LEN + DESCRIPTOR_LEN * column_count + 1


class DbfHeader:
    """
    File preamble plus the ordered column layout.

    Mutations (add_column, record_count changes) set `dirty`; the file engine
    rewrites the header on close when it is dirty. Once a record is bound to
    the header the layout is locked.
    """

    def __init__(self,
                 version: Optional[int] = None,
                 language_driver: Optional[int] = None,
                 last_update: Optional[datetime.date] = None,
                 encoding: Optional[str] = None):
        settings = get_settings()
        self.version = settings.default_version if version is None else version
        self.language_driver = settings.default_language_driver if language_driver is None else language_driver
        self.last_update = last_update or datetime.date.today()
        self._encoding = encoding
        self._columns: List[ColumnDescriptor] = []
        self._by_name: Dict[str, int] = {}
        self._record_count = 0
        self._locked = False
        self.dirty = True

    # ---- layout ----
    @property
    def columns(self) -> List[ColumnDescriptor]:
        return list(self._columns)

    @property
    def column_count(self) -> int:
        return len(self._columns)

    @property
    def header_length(self) -> int:
        return expected_header_length(len(self._columns))

    @property
    def record_length(self) -> int:
        return 1 + sum(c.length for c in self._columns)

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        self._locked = True

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[ColumnDescriptor]:
        return iter(self._columns)

    def __getitem__(self, ordinal: int) -> ColumnDescriptor:
        return self._columns[self.check_ordinal(ordinal)]

    def check_ordinal(self, ordinal: int) -> int:
        if not isinstance(ordinal, int) or isinstance(ordinal, bool):
            raise RangeError(f"Column ordinal must be an int, got {ordinal!r}")
        if ordinal < 0 or ordinal >= len(self._columns):
            raise RangeError(f"Column ordinal {ordinal} out of range (0..{len(self._columns) - 1})")
        return ordinal

    def find_column(self, name: str) -> int:
        """Case-insensitive lookup. Raises RangeError if absent."""
        try:
            return self._by_name[name.upper()]
        except (KeyError, AttributeError):
            raise RangeError(f"Column {name!r} not found") from None

    def has_column(self, name: str) -> bool:
        return name.upper() in self._by_name

    def add_column(self,
                   column: Union[ColumnDescriptor, str],
                   type=None,
                   length: Optional[int] = None,
                   decimals: int = 0) -> ColumnDescriptor:
        """
        Append a column and return its descriptor (with its computed offset).

        Accepts a ColumnDescriptor or (name, type, length, decimals).
        Raises StateError once records exist, once the layout is bound to a
        record, or when the name is already taken.
        """
        if self._record_count > 0:
            raise StateError("Cannot add columns once the file holds records")
        if self._locked:
            raise StateError("Cannot add columns after records have been bound to the layout")
        if not isinstance(column, ColumnDescriptor):
            column = make_column(column, type, length, decimals)
        if column.name.upper() in self._by_name:
            raise StateError(f"Column {column.name!r} already exists")
        if self.record_length + column.length > UINT16_MAX:
            raise FormatError("Record length would exceed 65535 bytes")
        placed = column.at_offset(self.record_length)
        self._append(placed)
        self.dirty = True
        return placed

    def _append(self, column: ColumnDescriptor) -> None:
        self._by_name[column.name.upper()] = len(self._columns)
        self._columns.append(column)

    # ---- counters ----
    @property
    def record_count(self) -> int:
        return self._record_count

    @record_count.setter
    def record_count(self, value: int) -> None:
        if value < 0 or value > UINT32_MAX:
            raise FormatError(f"Record count {value} outside uint32 range")
        if value != self._record_count:
            self._record_count = value
            self.dirty = True

    @property
    def encoding(self) -> str:
        if self._encoding:
            return self._encoding
        return CODEPAGES.get(self.language_driver, get_settings().default_encoding)

    @encoding.setter
    def encoding(self, value: Optional[str]) -> None:
        self._encoding = value

    def touch(self, today: Optional[datetime.date] = None) -> None:
        self.last_update = today or datetime.date.today()

    def mark_clean(self) -> None:
        self.dirty = False

    # ---- (de)serialization ----
    def serialize(self) -> bytes:
        """Preamble + descriptor table + terminator, lengths recomputed."""
        buf = io.BytesIO()
        d = self.last_update
        buf.write(PREAMBLE_STRUCT.pack(
            self.version & 0xFF,
            max(0, min(d.year - 1900, 0xFF)),
            d.month,
            d.day,
            self._record_count,
            self.header_length,
            self.record_length,
            self.language_driver & 0xFF,
        ))
        for col in self._columns:
            buf.write(DESCRIPTOR_STRUCT.pack(
                col.name.encode('ascii'),
                col.type.value.encode('ascii'),
                col.length,
                col.decimals,
            ))
        buf.write(bytes([HEADER_TERMINATOR]))
        return buf.getvalue()

    @classmethod
    def parse(cls, f: BinaryIO, encoding: Optional[str] = None) -> 'DbfHeader':
        """
        Read a header from the current position of f.

        Leaves f positioned at the start of the data region.
        Raises FormatError on an inconsistent header, DbfIOError if truncated.
        """
        (version, yy, mm, dd, record_count, header_length, record_length,
         language_driver) = PREAMBLE_STRUCT.unpack(read_exact(f, PREAMBLE_LEN))

        header = cls(version=version, language_driver=language_driver,
                     last_update=_decode_update_date(yy, mm, dd), encoding=encoding)

        consumed = PREAMBLE_LEN
        terminated = False
        while consumed < header_length:
            first = read_exact(f, 1)
            consumed += 1
            if first[0] == HEADER_TERMINATOR:
                terminated = True
                break
            entry = first + read_exact(f, DESCRIPTOR_LEN - 1)
            consumed += DESCRIPTOR_LEN - 1
            column = _parse_descriptor(entry, header.record_length)
            if header.has_column(column.name):
                raise FormatError(f"Duplicate column name {column.name!r}")
            header._append(column)

        if not terminated:
            raise FormatError(f"Header terminator 0x0D not found within {header_length} bytes")
        if header_length != header.header_length:
            raise FormatError(
                f"Header length {header_length} inconsistent with {header.column_count} columns "
                f"(expected {header.header_length})"
            )
        if record_length != header.record_length:
            raise FormatError(
                f"Record length {record_length} != 1 + sum of column widths ({header.record_length})"
            )

        header._record_count = record_count
        header.dirty = False
        return header

    def __repr__(self):
        return (f"<DbfHeader version=0x{self.version:02X} columns={self.column_count} "
                f"records={self._record_count} record_length={self.record_length}>")


def _parse_descriptor(entry: bytes, offset: int) -> ColumnDescriptor:
    raw_name, raw_type, length, decimals = DESCRIPTOR_STRUCT.unpack(entry)
    name = raw_name.split(b'\x00', 1)[0].strip()
    try:
        name_str = name.decode('ascii')
        type_code = raw_type.decode('ascii')
    except UnicodeDecodeError:
        raise FormatError(f"Non-ASCII field descriptor {entry[:12]!r}") from None
    col_type = ColumnType.from_code(type_code)
    return ColumnDescriptor(name=name_str, type=col_type, length=length,
                            decimals=decimals, offset=offset)


def _decode_update_date(yy: int, mm: int, dd: int) -> Optional[datetime.date]:
    try:
        return datetime.date(1900 + yy, mm, dd)
    except ValueError:
        return None


def parse_header(header_bytes: bytes) -> DbfHeader:
    """Parse a header from an in-memory buffer."""
    return DbfHeader.parse(io.BytesIO(header_bytes))


def build_header(columns: List[ColumnDescriptor], record_count: int = 0, **kwargs) -> bytes:
    """Serialize a header for the given columns without touching a file."""
    header = DbfHeader(**kwargs)
    for col in columns:
        header.add_column(col)
    header.record_count = record_count
    return header.serialize()

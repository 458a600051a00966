# dbf_record.py
"""
In-memory record buffer bound to a header's column layout.

Byte 0 is the deletion marker; each column occupies
[column.offset, column.offset + column.length). The record keeps a reference
to the header rather than a copy of its columns, and binding a record locks
the header layout.
"""

import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from byte_utils import ACTIVE_MARKER, DELETED_MARKER
from dbf_columns import ColumnType
from dbf_errors import FormatError, TypeMismatchError
from field_codecs import blank_field, decode_character, decode_field, encode_field
from header_utils import DbfHeader

Key = Union[int, str]


class DbfRecord:
    __slots__ = ("header", "_buf", "record_index")

    def __init__(self, header: DbfHeader):
        header.lock()
        self.header = header
        self._buf = bytearray(header.record_length)
        self.record_index: Optional[int] = None
        self.clear()

    # ---- raw buffer ----
    @property
    def data(self) -> bytearray:
        return self._buf

    def __len__(self) -> int:
        return len(self._buf)

    def load(self, raw: bytes, index: Optional[int] = None) -> None:
        """Replace the buffer contents, e.g. after a read from disk."""
        if len(raw) != len(self._buf):
            raise FormatError(f"Record needs {len(self._buf)} bytes, got {len(raw)}")
        self._buf[:] = raw
        self.record_index = index

    def to_bytes(self) -> bytes:
        return bytes(self._buf)

    def clear(self) -> None:
        """Reset to an active, blank record."""
        self._buf[0] = ACTIVE_MARKER
        for col in self.header:
            self._buf[col.offset:col.end] = blank_field(col)

    def ordinal(self, key: Key) -> int:
        if isinstance(key, str):
            return self.header.find_column(key)
        return self.header.check_ordinal(key)

    def column_data(self, key: Key) -> memoryview:
        """Zero-copy view over one field's bytes."""
        col = self.header[self.ordinal(key)]
        return memoryview(self._buf)[col.offset:col.end]

    # ---- deletion flag ----
    @property
    def is_deleted(self) -> bool:
        return self._buf[0] == DELETED_MARKER

    @is_deleted.setter
    def is_deleted(self, value: bool) -> None:
        self._buf[0] = DELETED_MARKER if value else ACTIVE_MARKER

    # ---- typed access ----
    def get(self, key: Key) -> Any:
        col = self.header[self.ordinal(key)]
        return decode_field(self._buf[col.offset:col.end], col, self.header.encoding)

    def set(self, key: Key, value: Any) -> None:
        col = self.header[self.ordinal(key)]
        # encode fully before touching the buffer
        encoded = encode_field(value, col, self.header.encoding)
        self._buf[col.offset:col.end] = encoded

    __getitem__ = get
    __setitem__ = set

    def _typed(self, key: Key, *types: ColumnType) -> Any:
        ordinal = self.ordinal(key)
        col = self.header[ordinal]
        if col.type not in types:
            wanted = "/".join(t.name for t in types)
            raise TypeMismatchError(f"Column {col.name} is {col.type.name}, not {wanted}")
        return self.get(ordinal)

    def get_string(self, key: Key) -> str:
        """Trimmed field text, valid for every column type."""
        col = self.header[self.ordinal(key)]
        raw = bytes(self._buf[col.offset:col.end])
        if col.type is ColumnType.CHARACTER:
            return decode_character(raw, col, self.header.encoding)
        if col.type in (ColumnType.INTEGER, ColumnType.BINARY, ColumnType.GENERAL):
            value = self.get(key)
            return str(value) if col.type is ColumnType.INTEGER else value.hex()
        if col.type is ColumnType.MEMO and col.length == 4:
            block = self.get(key)
            return "" if block is None else str(block)
        return raw.strip(b' \x00').decode('ascii', 'replace')

    def get_number(self, key: Key) -> Optional[Union[int, Decimal]]:
        return self._typed(key, ColumnType.NUMBER, ColumnType.FLOAT)

    def get_float(self, key: Key) -> Optional[float]:
        value = self._typed(key, ColumnType.NUMBER, ColumnType.FLOAT)
        return None if value is None else float(value)

    def get_boolean(self, key: Key) -> Optional[bool]:
        return self._typed(key, ColumnType.BOOLEAN)

    def get_date(self, key: Key) -> Optional[datetime.date]:
        return self._typed(key, ColumnType.DATE)

    def get_integer(self, key: Key) -> int:
        return self._typed(key, ColumnType.INTEGER)

    def get_bytes(self, key: Key) -> bytes:
        return self._typed(key, ColumnType.BINARY, ColumnType.GENERAL)

    def get_memo_block(self, key: Key) -> Optional[int]:
        return self._typed(key, ColumnType.MEMO)

    # ---- snapshots ----
    def values(self) -> List[Any]:
        return [self.get(i) for i in range(self.header.column_count)]

    def as_dict(self) -> Dict[str, Any]:
        return {col.name: self.get(i) for i, col in enumerate(self.header)}

    def copy(self) -> 'DbfRecord':
        other = DbfRecord(self.header)
        other.load(bytes(self._buf), self.record_index)
        return other

    def __repr__(self):
        flag = " deleted" if self.is_deleted else ""
        return f"<DbfRecord index={self.record_index}{flag} {bytes(self._buf)!r}>"

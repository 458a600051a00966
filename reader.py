# reader.py
"""
Forward-only cursor over a DBF file, plus bulk read helpers.

DbfReader mirrors the usual data-reader contract: read() advances to the next
row and returns False at the end; values are fetched by ordinal or name
through typed getters that check the declared column type.
"""

import csv
import datetime
from decimal import Decimal
from typing import Any, Iterator, List, Optional, Tuple

from dbf_columns import ColumnType
from dbf_errors import StateError, TypeMismatchError
from dbf_file import DbfFile, Source
from dbf_record import DbfRecord, Key
from header_utils import DbfHeader

# Python type produced for each column type
FIELD_TYPES = {
    ColumnType.CHARACTER: str,
    ColumnType.NUMBER: Decimal,
    ColumnType.FLOAT: float,
    ColumnType.BOOLEAN: bool,
    ColumnType.DATE: datetime.date,
    ColumnType.BINARY: bytes,
    ColumnType.GENERAL: bytes,
    ColumnType.MEMO: int,
    ColumnType.INTEGER: int,
}


class DbfReader:
    def __init__(self, source: Optional[Source] = None, skip_deleted: bool = False,
                 encoding: Optional[str] = None):
        self._file = DbfFile()
        self._record: Optional[DbfRecord] = None
        self._positioned = False
        self.skip_deleted = skip_deleted
        if source is not None:
            self.open(source, encoding=encoding)

    def open(self, source: Source, encoding: Optional[str] = None) -> 'DbfReader':
        leave_open = not isinstance(source, (str, bytes)) and hasattr(source, 'read')
        self._file.open(source, read_only=True, leave_open=leave_open, encoding=encoding)
        self._record = self._file.new_record()
        self._positioned = False
        return self

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> 'DbfReader':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---- cursor ----
    @property
    def is_closed(self) -> bool:
        return not self._file.is_open

    @property
    def header(self) -> DbfHeader:
        self._guard_open("header")
        return self._file.header

    @property
    def field_count(self) -> int:
        self._guard_open("field_count")
        return self._file.header.column_count

    @property
    def has_rows(self) -> bool:
        self._guard_open("has_rows")
        return self._file.header.record_count >= 1

    @property
    def records_affected(self) -> int:
        self._guard_open("records_affected")
        return self._file.header.record_count

    @property
    def record(self) -> DbfRecord:
        self._guard_row("record")
        return self._record

    @property
    def record_index(self) -> Optional[int]:
        self._guard_row("record_index")
        return self._record.record_index

    def read(self) -> bool:
        """Advance to the next row, skipping deleted rows if requested."""
        self._guard_open("read")
        ok = self._file.read_next(self._record)
        while ok and self.skip_deleted and self._record.is_deleted:
            ok = self._file.read_next(self._record)
        self._positioned = ok
        return ok

    def __iter__(self) -> Iterator[DbfRecord]:
        self._guard_open("__iter__")
        while self.read():
            yield self._record

    # ---- metadata ----
    def get_name(self, ordinal: int) -> str:
        self._guard_open("get_name")
        return self._file.header[ordinal].name

    def get_ordinal(self, name: str) -> int:
        self._guard_open("get_ordinal")
        return self._file.header.find_column(name)

    def get_data_type_name(self, ordinal: int) -> str:
        self._guard_open("get_data_type_name")
        return self._file.header[ordinal].type.name

    def get_field_type(self, ordinal: int) -> type:
        self._guard_open("get_field_type")
        col = self._file.header[ordinal]
        if col.type is ColumnType.NUMBER and col.decimals == 0:
            return int
        return FIELD_TYPES[col.type]

    # ---- values ----
    def __getitem__(self, key: Key) -> Any:
        return self.get_value(key)

    def get_value(self, key: Key) -> Any:
        self._guard_row("get_value")
        return self._record.get(key)

    def get_values(self) -> List[Any]:
        self._guard_row("get_values")
        return self._record.values()

    def is_null(self, key: Key) -> bool:
        return self.get_value(key) is None

    def get_string(self, key: Key) -> str:
        self._guard_row("get_string")
        return self._record.get_string(key)

    def get_char(self, key: Key) -> str:
        self._guard_type("get_char", key, ColumnType.CHARACTER)
        return self._record.get_string(key)[:1]

    def get_boolean(self, key: Key) -> Optional[bool]:
        self._guard_row("get_boolean")
        return self._record.get_boolean(key)

    def get_date(self, key: Key) -> Optional[datetime.date]:
        self._guard_row("get_date")
        return self._record.get_date(key)

    def get_decimal(self, key: Key) -> Optional[Decimal]:
        self._guard_type("get_decimal", key, ColumnType.NUMBER, ColumnType.FLOAT)
        value = self._record.get_number(key)
        if value is None or isinstance(value, Decimal):
            return value
        return Decimal(repr(value)) if isinstance(value, float) else Decimal(value)

    def get_double(self, key: Key) -> Optional[float]:
        self._guard_row("get_double")
        return self._record.get_float(key)

    def get_int(self, key: Key) -> Optional[int]:
        self._guard_row("get_int")
        col = self._file.header[self._record.ordinal(key)]
        if col.type is ColumnType.INTEGER:
            return self._record.get_integer(key)
        if col.type is ColumnType.NUMBER:
            value = self._record.get_number(key)
            return None if value is None else int(value)
        raise TypeMismatchError(f"get_int: column {col.name} is {col.type.name}")

    def get_bytes(self, key: Key) -> bytes:
        self._guard_row("get_bytes")
        return self._record.get_bytes(key)

    def get_byte(self, key: Key) -> int:
        data = self.get_bytes(key)
        return data[0]

    # ---- guards ----
    def _guard_open(self, op: str) -> None:
        if self.is_closed:
            raise StateError(f"{op}: reader is closed")

    def _guard_row(self, op: str) -> None:
        self._guard_open(op)
        if not self._positioned:
            raise StateError(f"{op}: no current row; call read() first")

    def _guard_type(self, op: str, key: Key, *types: ColumnType) -> None:
        self._guard_row(op)
        col = self._file.header[self._record.ordinal(key)]
        if col.type not in types:
            raise TypeMismatchError(f"{op}: column {col.name} is {col.type.name}")


def read_dbf(path: str,
             select_columns: Optional[List[str]] = None,
             skip_deleted: bool = True) -> Tuple[List[str], List[List[Any]]]:
    """
    Read a .dbf file and return (names, rows).

    - select_columns: list of column names to read. If None, read all columns.
    - rows hold typed values (str, int, Decimal, date, ...).

    Raises FormatError / DbfIOError on malformed files, RangeError for an
    unknown column name.
    """
    with DbfReader(path, skip_deleted=skip_deleted) as reader:
        if select_columns is None:
            ordinals = list(range(reader.field_count))
        else:
            ordinals = [reader.get_ordinal(name) for name in select_columns]
        names = [reader.get_name(i) for i in ordinals]
        rows = [[record.get(i) for i in ordinals] for record in reader]
    return names, rows


def read_dbf_to_csv(dbf_path: str, csv_out_path: str,
                    select_columns: Optional[List[str]] = None,
                    skip_deleted: bool = True) -> int:
    """
    Convenience helper: reads selected columns and writes a CSV file.
    Returns the number of rows written.
    """
    names, rows = read_dbf(dbf_path, select_columns=select_columns, skip_deleted=skip_deleted)
    with open(csv_out_path, 'w', newline='', encoding='utf-8') as out:
        writer = csv.writer(out)
        writer.writerow(names)
        # None becomes an empty cell, everything else its str()
        for r in rows:
            writer.writerow(['' if x is None else _csv_text(x) for x in r])
    return len(rows)


def _csv_text(value: Any) -> str:
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.hex()
    return str(value)

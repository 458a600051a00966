# dbf_file.py
"""
File engine for DBF tables.

DbfFile owns one seekable binary stream and one DbfHeader for as long as it
is open. Records live at

    header_length + index * record_length

and are read either sequentially (read_next, advancing a cursor that starts
at the first record on open) or by index (read / write). append() extends the
data region and bumps the record count; the header is rewritten on close when
it is dirty.

Usage:
    with DbfFile('people.dbf', OpenMode.CREATE_NEW) as dbf:
        dbf.add_column('NAME', 'C', 20)
        rec = dbf.new_record()
        rec['NAME'] = 'ALICE'
        dbf.append(rec)
"""

import enum
import io
import os
from typing import BinaryIO, Iterator, Optional, Union

from byte_utils import EOF_MARKER, UINT32_MAX, read_exact, seek_to, write_all
from dbf_columns import ColumnDescriptor
from dbf_errors import DbfIOError, FormatError, RangeError, StateError
from dbf_logging import get_logger
from dbf_record import DbfRecord
from dbf_settings import get_settings
from header_utils import DbfHeader

log = get_logger(__name__)

Source = Union[str, "os.PathLike[str]", BinaryIO]


class OpenMode(enum.Enum):
    OPEN_EXISTING = "open"
    CREATE_NEW = "create_new"     # fails if the file exists
    CREATE = "create"             # truncates an existing file


_FILE_MODES = {
    OpenMode.OPEN_EXISTING: 'r+b',
    OpenMode.CREATE_NEW: 'x+b',
    OpenMode.CREATE: 'w+b',
}


class DbfFile:
    def __init__(self,
                 source: Optional[Source] = None,
                 mode: OpenMode = OpenMode.OPEN_EXISTING,
                 read_only: bool = False,
                 leave_open: bool = False,
                 encoding: Optional[str] = None):
        self._stream: Optional[BinaryIO] = None
        self._header: Optional[DbfHeader] = None
        self._owns_stream = False
        self._read_only = False
        self._cursor = 0
        self._disk_header_length = 0
        self.name = None
        if source is not None:
            self.open(source, mode, read_only=read_only, leave_open=leave_open, encoding=encoding)

    # ---- lifecycle ----
    def open(self,
             source: Source,
             mode: OpenMode = OpenMode.OPEN_EXISTING,
             read_only: bool = False,
             leave_open: bool = False,
             encoding: Optional[str] = None) -> 'DbfFile':
        """
        Open a path or a seekable binary stream.

        OPEN_EXISTING parses the header and positions the cursor at the first
        record. CREATE_NEW / CREATE write an empty header; columns must be
        added before any record I/O.
        Raises DbfIOError if the source cannot be opened, FormatError on an
        inconsistent header.
        """
        if self._stream is not None:
            raise StateError("DbfFile is already open")
        if read_only and mode is not OpenMode.OPEN_EXISTING:
            raise StateError("Cannot create a file in read-only mode")

        stream, owns = self._acquire(source, mode, read_only, leave_open)
        try:
            if mode is OpenMode.OPEN_EXISTING:
                seek_to(stream, 0)
                header = DbfHeader.parse(stream, encoding=encoding)
                self._check_size(stream, header)
            else:
                header = DbfHeader(encoding=encoding)
                seek_to(stream, 0)
                try:
                    stream.truncate()
                except OSError as e:
                    raise DbfIOError(f"Cannot truncate {self.name}: {e}") from e
                write_all(stream, header.serialize())
                header.mark_clean()
        except BaseException:
            if owns:
                stream.close()
            raise

        self._stream = stream
        self._owns_stream = owns
        self._header = header
        self._read_only = read_only
        self._cursor = 0
        self._disk_header_length = header.header_length
        log.debug("dbf_opened", source=self.name, mode=mode.value, read_only=read_only,
                  columns=header.column_count, records=header.record_count)
        return self

    def _acquire(self, source: Source, mode: OpenMode, read_only: bool, leave_open: bool):
        if isinstance(source, (str, bytes, os.PathLike)):
            self.name = os.fsdecode(source)
            file_mode = 'rb' if read_only else _FILE_MODES[mode]
            try:
                return open(source, file_mode), True
            except OSError as e:
                raise DbfIOError(f"Cannot open {self.name}: {e}") from e

        self.name = getattr(source, 'name', repr(source))
        seekable = getattr(source, 'seekable', None)
        if not callable(getattr(source, 'read', None)) or (seekable is not None and not seekable()):
            raise DbfIOError(f"{self.name!r} is not a seekable binary stream")
        return source, not leave_open

    def _check_size(self, stream: BinaryIO, header: DbfHeader) -> None:
        try:
            size = stream.seek(0, io.SEEK_END)
        except OSError as e:
            raise DbfIOError(f"Cannot determine size of {self.name}: {e}") from e
        expected = header.header_length + header.record_count * header.record_length
        if size < expected:
            log.warning("dbf_truncated_data", source=self.name, size=size, expected=expected)
        seek_to(stream, header.header_length)

    def close(self) -> None:
        """Flush a dirty header and release the stream. Calling twice is a no-op."""
        if self._stream is None:
            return
        stream = self._stream
        try:
            if self._header.dirty and not self._read_only:
                self._write_header()
            if not self._read_only:
                stream.flush()
        except DbfIOError:
            raise
        except OSError as e:
            raise DbfIOError(f"Flush of {self.name} failed: {e}") from e
        finally:
            self._stream = None
            if self._owns_stream:
                stream.close()
            log.debug("dbf_closed", source=self.name, records=self._header.record_count)

    def flush(self) -> None:
        self._guard_writable("flush")
        if self._header.dirty:
            self._write_header()
        try:
            self._stream.flush()
        except OSError as e:
            raise DbfIOError(f"Flush of {self.name} failed: {e}") from e

    def __enter__(self) -> 'DbfFile':
        self._guard_open("__enter__")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---- state ----
    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def header(self) -> DbfHeader:
        self._guard_open("header")
        return self._header

    @property
    def record_count(self) -> int:
        return self.header.record_count

    @property
    def cursor(self) -> int:
        """Index of the next record read_next() will return."""
        self._guard_open("cursor")
        return self._cursor

    def __len__(self) -> int:
        return self.record_count

    def __bool__(self) -> bool:
        return self.is_open

    def _guard_open(self, op: str) -> None:
        if self._stream is None:
            raise StateError(f"{op}: DbfFile is closed")

    def _guard_writable(self, op: str) -> None:
        self._guard_open(op)
        if self._read_only:
            raise StateError(f"{op}: DbfFile is open read-only")

    def _guard_record(self, op: str, record: DbfRecord) -> None:
        if record.header is not self._header:
            raise StateError(f"{op}: record is bound to a different header")

    def _guard_index(self, op: str, index: int) -> None:
        count = self._header.record_count
        if not isinstance(index, int) or isinstance(index, bool) or index < 0 or index >= count:
            raise RangeError(f"{op}: record index {index!r} out of range (record count {count})")

    # ---- layout ----
    def add_column(self, column, type=None, length: Optional[int] = None, decimals: int = 0) -> ColumnDescriptor:
        self._guard_writable("add_column")
        return self._header.add_column(column, type, length, decimals)

    def new_record(self) -> DbfRecord:
        """Allocate a blank record bound to this file's header (locks the layout)."""
        self._guard_open("new_record")
        return DbfRecord(self._header)

    def _record_offset(self, index: int) -> int:
        return self._header.header_length + index * self._header.record_length

    def _write_header(self) -> None:
        self._header.touch()
        seek_to(self._stream, 0)
        write_all(self._stream, self._header.serialize())
        self._disk_header_length = self._header.header_length
        self._header.mark_clean()
        log.debug("dbf_header_flushed", source=self.name, records=self._header.record_count)

    # ---- record I/O ----
    def _read_into(self, record: DbfRecord, index: int) -> None:
        seek_to(self._stream, self._record_offset(index))
        raw = read_exact(self._stream, self._header.record_length)
        record.load(raw, index)

    def read_next(self, record: DbfRecord) -> bool:
        """
        Read the record under the cursor and advance.
        Returns False at the end of data, leaving `record` untouched.
        """
        self._guard_open("read_next")
        self._guard_record("read_next", record)
        if self._cursor >= self._header.record_count:
            return False
        self._read_into(record, self._cursor)
        self._cursor += 1
        return True

    def read(self, record: DbfRecord, index: int) -> DbfRecord:
        self._guard_open("read")
        self._guard_record("read", record)
        self._guard_index("read", index)
        self._read_into(record, index)
        return record

    def write(self, record: DbfRecord, index: int) -> None:
        """Overwrite an existing record; use append() to add new ones."""
        self._guard_writable("write")
        self._guard_record("write", record)
        self._guard_index("write", index)
        seek_to(self._stream, self._record_offset(index))
        write_all(self._stream, record.to_bytes())
        record.record_index = index

    def append(self, record: DbfRecord) -> int:
        """Write `record` after the last one and return its index."""
        self._guard_writable("append")
        self._guard_record("append", record)
        if self._header.column_count == 0:
            raise StateError("append: add columns before writing records")
        if self._disk_header_length != self._header.header_length:
            # columns were added since the header was last written
            self._write_header()

        index = self._header.record_count
        if index >= UINT32_MAX:
            raise FormatError("append: record count would overflow uint32")
        data = record.to_bytes()
        if get_settings().write_eof_marker:
            data += bytes([EOF_MARKER])
        seek_to(self._stream, self._record_offset(index))
        write_all(self._stream, data)
        self._header.record_count = index + 1
        record.record_index = index
        return index

    # ---- iteration ----
    def records(self) -> Iterator[DbfRecord]:
        """Lazily yield a fresh record per row, starting at the cursor."""
        self._guard_open("records")
        while True:
            record = DbfRecord(self._header)
            if not self.read_next(record):
                return
            yield record

    def __iter__(self) -> Iterator[DbfRecord]:
        return self.records()

    def __repr__(self):
        state = "open" if self.is_open else "closed"
        return f"<DbfFile {self.name!r} {state}>"

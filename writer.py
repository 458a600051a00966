# writer.py
from typing import Any, Iterable, List, Optional, Sequence, Union

from dbf_columns import ColumnDescriptor, make_column
from dbf_file import DbfFile, OpenMode
from dbf_logging import get_logger

log = get_logger(__name__)

ColumnSpec = Union[ColumnDescriptor, Sequence[Any]]


def write_dbf(out_path: str,
              columns: List[ColumnSpec],
              rows: Iterable[Sequence[Any]],
              language_driver: Optional[int] = None,
              overwrite: bool = True) -> int:
    """
    Write table data to a .dbf file and return the number of rows written.

    - columns: ColumnDescriptors or (name, type, length[, decimals]) tuples,
      e.g. ('NAME', 'C', 20), ('AGE', 'N', 3, 0), ('BORN', 'D')
    - rows: row-major sequences with one value per column, typed as the
      column expects (str, int/Decimal, bool, date, bytes, None)
    - overwrite: False fails if out_path already exists

    Raises FormatError / TypeMismatchError on values that do not fit.
    """
    descriptors = [c if isinstance(c, ColumnDescriptor) else make_column(*c) for c in columns]
    if not descriptors:
        raise ValueError("write_dbf needs at least one column")

    mode = OpenMode.CREATE if overwrite else OpenMode.CREATE_NEW
    count = 0
    with DbfFile(out_path, mode) as dbf:
        if language_driver is not None:
            dbf.header.language_driver = language_driver
        for col in descriptors:
            dbf.add_column(col)

        record = dbf.new_record()
        ncols = len(descriptors)
        for row in rows:
            if len(row) != ncols:
                raise ValueError(f"Row {count} has {len(row)} values but the table has {ncols} columns")
            record.clear()
            for i, value in enumerate(row):
                record.set(i, value)
            dbf.append(record)
            count += 1

    log.debug("dbf_written", path=out_path, columns=len(descriptors), rows=count)
    return count

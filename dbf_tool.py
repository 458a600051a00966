#!/usr/bin/env python3
"""
dbf_tool.py

CLI for inspecting DBF files and converting CSV <-> DBF.

Usage:
  python dbf_tool.py info        in.dbf
  python dbf_tool.py dbf_to_csv  in.dbf  out.csv [--cols col1,col2,...] [--include-deleted]
  python dbf_tool.py csv_to_dbf  in.csv  out.dbf [--codepage 0x57]

Exit codes:
  0 = success
  1 = runtime error (IO, format error, etc.)
  2 = incorrect usage (arg parsing)
"""
import argparse
import csv
import re
import sys
from decimal import Decimal
from typing import List, Optional, Tuple

from byte_utils import MAX_FIELD_LEN
from dbf_errors import DbfError
from dbf_logging import configure_logging, get_logger
from header_utils import CODEPAGES
from reader import DbfReader, read_dbf_to_csv
from writer import write_dbf

log = get_logger(__name__)

MAX_CHAR_WIDTH = 254
ANSI_DRIVER = 0x57       # cp1252


def info_cli(in_dbf: str) -> None:
    with DbfReader(in_dbf) as reader:
        header = reader.header
        print(f"File:          {in_dbf}")
        print(f"Version:       0x{header.version:02X}")
        print(f"Last update:   {header.last_update.isoformat()}")
        print(f"Records:       {header.record_count}")
        print(f"Header length: {header.header_length}")
        print(f"Record length: {header.record_length}")
        codec = CODEPAGES.get(header.language_driver, 'default')
        print(f"Language:      0x{header.language_driver:02X} ({codec})")
        for i, col in enumerate(header):
            dec = f",{col.decimals}" if col.decimals else ""
            print(f"  {i:3d} {col.name:<10} {col.type.value}({col.length}{dec}) offset {col.offset}")


NUMBER_RE = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)')


def infer_column(name: str, values: List[str], encoding: str = 'cp1252') -> Tuple[str, str, int, int]:
    """
    Basic heuristic: all integers -> N(width,0); all decimals -> N(width,dec);
    everything else -> C(width), width measured in `encoding` bytes.
    Column names are upper-cased and cut to 10 characters.
    Raises ValueError naming the CSV line of a value `encoding` cannot hold.
    """
    dbf_name = name.strip().upper()[:10] or "FIELD"
    non_empty = [v.strip() for v in values if v != '']
    if non_empty and all(NUMBER_RE.fullmatch(v) for v in non_empty):
        dec = max(len(v.partition('.')[2]) for v in non_empty)
        width = max(len(format(Decimal(v), f'.{dec}f')) for v in non_empty)
        if width <= MAX_FIELD_LEN:
            return dbf_name, 'N', width, dec

    width = 1
    for i, v in enumerate(values):
        try:
            width = max(width, len(v.encode(encoding)))
        except UnicodeEncodeError:
            # header is line 1
            raise ValueError(
                f"Column {name!r}, CSV line {i + 2}: {v!r} cannot be encoded as {encoding}"
            ) from None
    return dbf_name, 'C', min(width, MAX_CHAR_WIDTH), 0


def csv_to_dbf_cli(in_csv: str, out_dbf: str, language_driver: int = ANSI_DRIVER) -> int:
    """
    Read CSV fully into memory, infer column types and write a .dbf file.
    Returns the number of rows written.
    """
    encoding = CODEPAGES.get(language_driver)
    if encoding is None:
        raise ValueError(f"Unknown language driver 0x{language_driver:02X}")

    with open(in_csv, newline='', encoding='utf-8') as f:
        rows_reader = csv.reader(f)
        try:
            header = next(rows_reader)
        except StopIteration:
            raise ValueError(f"{in_csv} is empty; a header row is required") from None
        rows = list(rows_reader)

    ncols = len(header)
    for r in rows:
        if len(r) != ncols:
            raise ValueError(f"CSV row has {len(r)} columns but header has {ncols}")
    columns = [infer_column(header[i], [row[i] for row in rows], encoding) for i in range(ncols)]

    typed_rows = []
    for row in rows:
        typed = []
        for (name, col_type, width, dec), value in zip(columns, row):
            if value == '':
                typed.append(None)
            elif col_type == 'N':
                typed.append(Decimal(value.strip()))
            else:
                typed.append(value)
        typed_rows.append(typed)

    return write_dbf(out_dbf, columns, typed_rows, language_driver=language_driver)


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(prog='dbf_tool.py',
                                     description='Inspect DBF files and convert CSV <-> DBF')
    parser.add_argument('--log-level', default=None, help='Logging level (default from DBF_LOG_LEVEL)')
    sub = parser.add_subparsers(dest='cmd', required=True)

    p0 = sub.add_parser('info', help='Print the header and column layout')
    p0.add_argument('in_dbf', help='Input .dbf file path')

    p1 = sub.add_parser('dbf_to_csv', help='Convert DBF to CSV')
    p1.add_argument('in_dbf', help='Input .dbf file path')
    p1.add_argument('out_csv', help='Output CSV file path')
    p1.add_argument('--cols', help='Comma-separated list of columns to extract (optional)', default='')
    p1.add_argument('--include-deleted', action='store_true', help='Also export deleted records')

    p2 = sub.add_parser('csv_to_dbf', help='Convert CSV to DBF')
    p2.add_argument('in_csv', help='Input CSV path')
    p2.add_argument('out_dbf', help='Output .dbf file path')
    p2.add_argument('--codepage', type=lambda s: int(s, 0), default=ANSI_DRIVER,
                    help='Language driver id to write, e.g. 0x57 (cp1252) or 0xC9 (cp1251)')

    try:
        args = parser.parse_args(argv)
    except SystemExit:
        return 2

    configure_logging(level=args.log_level)

    try:
        if args.cmd == 'info':
            info_cli(args.in_dbf)
        elif args.cmd == 'dbf_to_csv':
            cols = [c for c in args.cols.split(',') if c] if args.cols else None
            n = read_dbf_to_csv(args.in_dbf, args.out_csv, select_columns=cols,
                                skip_deleted=not args.include_deleted)
            print(f"Wrote CSV {args.out_csv} with {n} rows")
        elif args.cmd == 'csv_to_dbf':
            n = csv_to_dbf_cli(args.in_csv, args.out_dbf, args.codepage)
            print(f"Wrote {args.out_dbf} with {n} rows")
        else:
            print("Unknown command", file=sys.stderr)
            return 2
        return 0
    except (DbfError, OSError, ValueError) as e:
        log.error("command_failed", cmd=args.cmd, error=str(e))
        print("Error:", e, file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())

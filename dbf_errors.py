# dbf_errors.py
"""
Error taxonomy for the DBF engine.

Every error derives from DbfError and from the builtin exception it most
resembles, so callers can catch either.
"""


class DbfError(Exception):
    """Base class for all DBF engine errors."""


class FormatError(DbfError, ValueError):
    """Malformed header, terminator, date or field content; inconsistent lengths."""


class RangeError(DbfError, IndexError):
    """Column ordinal or record index out of bounds, or unknown column name."""


class TypeMismatchError(DbfError, TypeError):
    """Accessor or value type does not match the declared column type."""


class StateError(DbfError, RuntimeError):
    """Layout mutation after records exist, or operating on a closed engine."""


class DbfIOError(DbfError, OSError):
    """Underlying stream failure or truncated read."""

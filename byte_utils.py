# byte_utils.py
"""
Binary packing/unpacking helpers for the DBF (dBASE) table format.

Endianness: all multi-byte values are **little-endian** (struct format prefix '<').

This module centralizes:
- format constants (preamble size, descriptor size, marker bytes)
- pack/unpack helpers for primitive types
- safe file read helpers (read_exact)
"""

from typing import BinaryIO
import struct

from dbf_errors import DbfIOError

# ---- Format constants ----
PREAMBLE_LEN = 32           # fixed file preamble
DESCRIPTOR_LEN = 32         # one field descriptor entry
MAX_NAME_LEN = 10           # usable name bytes (last byte is always NUL)
MAX_FIELD_LEN = 255

HEADER_TERMINATOR = 0x0D
EOF_MARKER = 0x1A
DELETED_MARKER = 0x2A       # '*'
ACTIVE_MARKER = 0x20        # ' '

# Preamble layout: version, YY, MM, DD, record count, header length,
# record length, 17 reserved, language driver, 2 reserved.
PREAMBLE_STRUCT = struct.Struct('<BBBBIHH17xB2x')
# Descriptor layout: name, type, 4 reserved, length, decimals, 14 reserved.
DESCRIPTOR_STRUCT = struct.Struct('<11sc4xBB14x')

UINT16_MAX = 0xFFFF
UINT32_MAX = 0xFFFFFFFF

# ---- Struct helpers (little-endian) ----
def pack_u16(x: int) -> bytes:
    return struct.pack('<H', x)

def unpack_u16(b: bytes) -> int:
    return struct.unpack('<H', b)[0]

def pack_u32(x: int) -> bytes:
    return struct.pack('<I', x)

def unpack_u32(b: bytes) -> int:
    return struct.unpack('<I', b)[0]

def pack_i32(x: int) -> bytes:
    return struct.pack('<i', x)

def unpack_i32(b: bytes) -> int:
    return struct.unpack('<i', b)[0]

# ---- Convenience / IO helpers ----
def read_exact(f: BinaryIO, n: int) -> bytes:
    """
    Read exactly n bytes from file-like object f.
    Raises DbfIOError if fewer than n bytes are available or the stream fails.
    """
    try:
        data = f.read(n)
    except OSError as e:
        raise DbfIOError(f"Read of {n} bytes failed: {e}") from e
    if data is None or len(data) != n:
        got = 0 if data is None else len(data)
        raise DbfIOError(f"Expected {n} bytes, got {got} bytes")
    return data

def write_all(f: BinaryIO, data: bytes) -> None:
    """Write data at the current position, wrapping stream failures."""
    try:
        f.write(data)
    except OSError as e:
        raise DbfIOError(f"Write of {len(data)} bytes failed: {e}") from e

def seek_to(f: BinaryIO, offset: int) -> None:
    try:
        f.seek(offset)
    except OSError as e:
        raise DbfIOError(f"Seek to {offset} failed: {e}") from e

# ---- Small self-tests when run as a script ----
if __name__ == '__main__':
    assert PREAMBLE_STRUCT.size == PREAMBLE_LEN
    assert DESCRIPTOR_STRUCT.size == DESCRIPTOR_LEN
    assert pack_u32(0x12345678) == b'\x78\x56\x34\x12'
    assert unpack_u16(pack_u16(0x0D41)) == 0x0D41
    assert unpack_i32(pack_i32(-42)) == -42

    import io
    bio = io.BytesIO(b'hello')
    assert read_exact(bio, 5) == b'hello'
    try:
        read_exact(io.BytesIO(b'abc'), 4)
        raise SystemExit("read_exact did not raise DbfIOError")
    except DbfIOError:
        pass

    print("byte_utils.py self-tests passed")

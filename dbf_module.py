"""
Read-only decoder for dBase (.DBF) table structure.

This module decodes the fixed 32-byte table header and the column
descriptors that follow it. Row values are not decoded here; memo side-car
files are handled by memo_module.
"""

import datetime
import logging
import os
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import BinaryIO, Optional, Tuple

from dbf_errors import (
    InvalidDate, IoFailure, UnsupportedFieldType, UnsupportedVersion
)


_LOGGER = logging.getLogger(__name__)

# Constants
DBF_HEADER_SIZE = 32
DBF_FIELD_DESCRIPTOR_SIZE = 32
DBF_FIELD_NAME_SIZE = 11
DBF_FIELD_TERMINATOR = 0x0D
DBF_FIELD_NAME_ENCODING = 'latin-1'
DBF_BASE_YEAR = 1900


class DBFVersion(IntEnum):
    """Version byte found at offset 0 of a table file."""
    DBASE = 0x03  # table without memo
    DBASE3_WITH_MEMO = 0x83
    DBASE4_WITH_MEMO = 0x8B
    FOXPRO_WITH_MEMO = 0xF5
    VISUAL_FOXPRO = 0x30  # Visual FoxPro table without memo


class FieldType(Enum):
    """Column type tags (byte 11 of a column descriptor)."""
    CHARACTER = 'C'
    NUMERIC = 'N'
    FLOAT = 'F'
    DATE = 'D'
    LOGICAL = 'L'
    MEMO = 'M'
    # FoxPro only
    INTEGER = 'I'
    CURRENCY = 'Y'
    DATETIME = 'T'
    DOUBLE = 'B'


# Types whose size and decimal bytes are kept on the column
SIZED_FIELD_TYPES = (FieldType.CHARACTER, FieldType.NUMERIC, FieldType.FLOAT)


# Data structures
@dataclass(frozen=True)
class DBFHeader:
    """Represents the 32-byte header of a DBF file."""
    version: DBFVersion
    last_update: datetime.date  # always 1900 + year byte
    record_count: int  # Number of rows, not checked against file size
    header_size: int  # Offset of the first row
    record_size: int  # Row length in bytes

    @staticmethod
    def expected_header_size(column_count: int) -> int:
        """Header size implied by a column count: header + descriptors + terminator."""
        return DBF_HEADER_SIZE + column_count * DBF_FIELD_DESCRIPTOR_SIZE + 1

    def max_column_count(self) -> int:
        """Number of descriptors that fit before the first row."""
        return max((self.header_size - 1) // DBF_FIELD_DESCRIPTOR_SIZE - 1, 0)


@dataclass(frozen=True)
class DBFColumn:
    """
    Represents a column/field descriptor.

    ``length`` is set for character, numeric and float columns;
    ``decimals`` only for numeric and float columns. Both are None for
    every other type.
    """
    name: str  # Field name (max 11 chars)
    field_type: FieldType
    length: Optional[int] = None
    decimals: Optional[int] = None


@dataclass(frozen=True)
class DBFTable:
    """Header and columns of a table, decoded together."""
    header: DBFHeader
    columns: Tuple[DBFColumn, ...]

    @property
    def version(self) -> DBFVersion:
        return self.header.version

    def has_memo_field(self) -> bool:
        """Check if any column refers to a memo store."""
        return any(column.field_type == FieldType.MEMO for column in self.columns)

    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def column(self, name: str) -> DBFColumn:
        """Find a column by name, ignoring case."""
        wanted = name.upper()
        for column in self.columns:
            if column.name.upper() == wanted:
                return column
        raise KeyError(name)


# Terminator scanning
def scan_until_terminator(data: bytes, delimiter: bytes) -> bytes:
    """
    Return the part of ``data`` before the first full occurrence of
    ``delimiter``, or all of ``data`` when the delimiter never occurs.
    """
    if not delimiter:
        raise ValueError("delimiter must not be empty")

    pos = bytes(data).find(delimiter)
    if pos < 0:
        return bytes(data)
    return bytes(data[:pos])


def read_until_terminator(source: BinaryIO, delimiter: bytes) -> bytes:
    """
    Read ``source`` one byte at a time until the last bytes read equal
    ``delimiter``.

    The delimiter is not part of the result. Running out of input is not an
    error: everything read so far is returned.
    """
    if not delimiter:
        raise ValueError("delimiter must not be empty")

    size = len(delimiter)
    output = bytearray()
    while True:
        try:
            byte = source.read(1)
        except OSError as e:
            raise IoFailure(e) from e
        if not byte:
            return bytes(output)

        output += byte
        if len(output) >= size and output[-size:] == delimiter:
            del output[-size:]
            return bytes(output)


# I/O helpers
def seek_source(source: BinaryIO, position: int) -> None:
    """Move the source cursor to an absolute position."""
    try:
        source.seek(position)
    except OSError as e:
        raise IoFailure(e, offset=position) from e


def read_exact(source: BinaryIO, size: int, position: Optional[int] = None) -> bytes:
    """
    Read exactly ``size`` bytes, optionally seeking to ``position`` first.

    A short read raises IoFailure wrapping an EOFError.
    """
    if position is not None:
        seek_source(source, position)
    try:
        buf = source.read(size)
    except OSError as e:
        raise IoFailure(e, offset=position) from e

    if len(buf) < size:
        error = EOFError(f"expected {size} bytes, got {len(buf)}")
        raise IoFailure(error, offset=position)
    return buf


# Header decoding
def decode_dbf_header(buf: bytes) -> DBFHeader:
    """
    Decode the first 32 bytes of a table file.

    The year byte is always taken as an offset from 1900, whatever the
    dialect, so a stored 26 reads back as 1926.
    """
    if len(buf) < DBF_HEADER_SIZE:
        error = EOFError(f"expected {DBF_HEADER_SIZE} header bytes, got {len(buf)}")
        raise IoFailure(error, offset=0)

    try:
        version = DBFVersion(buf[0])
    except ValueError:
        raise UnsupportedVersion(buf[0]) from None

    year = DBF_BASE_YEAR + buf[1]
    month = buf[2]
    day = buf[3]
    if not 1 <= month <= 12:
        raise InvalidDate(year, month, day)
    try:
        last_update = datetime.date(year, month, day)
    except ValueError:
        raise InvalidDate(year, month, day) from None

    record_count = int.from_bytes(buf[4:8], 'little')
    header_size = int.from_bytes(buf[8:10], 'little')
    record_size = int.from_bytes(buf[10:12], 'little')
    # Bytes 12-31 are reserved

    return DBFHeader(
        version=version,
        last_update=last_update,
        record_count=record_count,
        header_size=header_size,
        record_size=record_size,
    )


def read_dbf_header(source: BinaryIO) -> DBFHeader:
    """Read and decode the table header from the start of ``source``."""
    buf = read_exact(source, DBF_HEADER_SIZE, 0)
    header = decode_dbf_header(buf)
    _LOGGER.debug(
        "DBF header: version 0x%02X, updated %s, %d rows, header size %d, row size %d",
        header.version, header.last_update, header.record_count,
        header.header_size, header.record_size,
    )
    return header


# Schema decoding
def decode_dbf_column(buf: bytes, offset: Optional[int] = None) -> DBFColumn:
    """Decode one 32-byte column descriptor."""
    name = scan_until_terminator(buf[:DBF_FIELD_NAME_SIZE], b'\x00')
    name = name.decode(DBF_FIELD_NAME_ENCODING)

    tag = buf[11]
    try:
        field_type = FieldType(chr(tag))
    except ValueError:
        raise UnsupportedFieldType(tag, name, offset) from None

    # Bytes 12-15 are the field displacement, not used
    length = buf[16]
    decimals = buf[17]

    if field_type == FieldType.CHARACTER:
        return DBFColumn(name=name, field_type=field_type, length=length)
    if field_type in SIZED_FIELD_TYPES:
        return DBFColumn(name=name, field_type=field_type, length=length, decimals=decimals)
    return DBFColumn(name=name, field_type=field_type)


def read_dbf_columns(source: BinaryIO, header: DBFHeader) -> Tuple[DBFColumn, ...]:
    """
    Read the column descriptors following the header.

    Stops at the 0x0D terminator or once the number of descriptors implied
    by ``header.header_size`` has been read, whichever comes first.
    """
    max_columns = header.max_column_count()
    columns = []
    position = DBF_HEADER_SIZE
    seek_source(source, position)

    while len(columns) < max_columns:
        # Peek 1 byte
        try:
            peek_byte = source.read(1)
        except OSError as e:
            raise IoFailure(e, offset=position) from e
        if not peek_byte or peek_byte[0] == DBF_FIELD_TERMINATOR:
            break

        rest = read_exact(source, DBF_FIELD_DESCRIPTOR_SIZE - 1)
        columns.append(decode_dbf_column(peek_byte + rest, position))
        position += DBF_FIELD_DESCRIPTOR_SIZE

    _LOGGER.debug("Read %d column descriptors (at most %d expected)", len(columns), max_columns)
    if header.header_size != DBFHeader.expected_header_size(len(columns)):
        _LOGGER.debug(
            "Header size %d does not match %d columns",
            header.header_size, len(columns),
        )
    return tuple(columns)


def read_dbf_table(source: BinaryIO) -> DBFTable:
    """Decode the header and column descriptors of a table."""
    header = read_dbf_header(source)
    columns = read_dbf_columns(source, header)
    return DBFTable(header=header, columns=columns)


def dbf_table_open(filename: str) -> DBFTable:
    """
    Read the structure of a DBF file on disk.

    Args:
        filename: The path to the DBF file (with or without extension)

    Returns:
        The decoded header and columns; the file is closed again
    """
    if not filename.upper().endswith('.DBF') and not os.path.exists(filename):
        filename = filename + '.DBF'

    try:
        with open(filename, 'rb') as f:
            return read_dbf_table(f)
    except OSError as e:
        raise IoFailure(e) from e

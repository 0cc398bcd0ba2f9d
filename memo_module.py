"""
Memo File Module

This module reads the memo side-car files that hold the contents of memo
columns. Three layouts are supported:

- dBase III (.DBT): 512-byte blocks, each record ends with 0x1A 0x1A
- dBase IV/5 (.DBT): little-endian header with a block size, each record
  starts with a type tag and a total length that includes the 8-byte
  record header
- FoxPro/Visual FoxPro (.FPT): big-endian header with a block size, each
  record starts with a type tag and the payload length

The caller picks the reader that matches its table; nothing here guesses
the layout from the file contents.
"""

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Union

from dbf_errors import EncodingError, IoFailure, LengthUnderflow
from dbf_module import read_exact, read_until_terminator, seek_source


_LOGGER = logging.getLogger(__name__)

# Constants
DBF_MEMO_BLOCK_SIZE = 512
DBF_MEMO_TERMINATOR = b'\x1A\x1A'
DBF_MEMO_RECORD_HEADER_SIZE = 8
DBF_MEMO_TEXT_ENCODING = 'utf-8'


class MemoFormat(Enum):
    """Memo file layouts."""
    DBASE3 = 'dbase3'
    DBASE4 = 'dbase4'
    FOXPRO = 'foxpro'


@dataclass(frozen=True)
class MemoHeader:
    """Header of a memo file."""
    memo_format: MemoFormat
    next_block: int  # next free block, informational only
    block_size: int
    version: Optional[int] = None  # byte 16 of dBase memo files


# Payload projections
def memo_as_bytes(payload: bytes) -> bytes:
    """Return a memo payload as raw bytes."""
    return bytes(payload)


def memo_as_text(payload: bytes, encoding: str = DBF_MEMO_TEXT_ENCODING) -> str:
    """Decode a memo payload as text, raising EncodingError on bad input."""
    try:
        return bytes(payload).decode(encoding)
    except UnicodeDecodeError as e:
        raise EncodingError(e) from e


class DBase3MemoReader:
    """Reader for dBase III memo files."""

    def __init__(self, source: BinaryIO, header: MemoHeader):
        self.source = source
        self.header = header

    @classmethod
    def open(cls, source: BinaryIO) -> 'DBase3MemoReader':
        next_block = struct.unpack("<L", read_exact(source, 4, 0))[0]
        version = read_exact(source, 1, 16)[0]
        header = MemoHeader(
            memo_format=MemoFormat.DBASE3,
            next_block=next_block,
            block_size=DBF_MEMO_BLOCK_SIZE,
            version=version,
        )
        _LOGGER.debug("dBase III memo: next block %d, version %d", next_block, version)
        return cls(source, header)

    @property
    def block_size(self) -> int:
        return self.header.block_size

    def next_available_block(self) -> int:
        return self.header.next_block

    def read_memo(self, block_index: int) -> bytes:
        """Read the record at ``block_index`` up to its 0x1A 0x1A terminator."""
        position = block_index * self.header.block_size
        _LOGGER.debug("Reading dBase III memo block %d at offset %d", block_index, position)
        seek_source(self.source, position)
        return read_until_terminator(self.source, DBF_MEMO_TERMINATOR)

    def read_memo_text(self, block_index: int, encoding: str = DBF_MEMO_TEXT_ENCODING) -> str:
        return memo_as_text(self.read_memo(block_index), encoding)


class DBase4MemoReader:
    """
    Reader for dBase IV and dBase 5 memo files.

    Header layout (little endian):
    - bytes 0-3: next free block
    - byte 16: version
    - bytes 20-21: block size, 512 when zero

    Each record starts with a 4-byte type tag and a 4-byte total length
    counting those 8 bytes. The payload is read by length, so 0x1A bytes
    inside it are data.
    """

    def __init__(self, source: BinaryIO, header: MemoHeader):
        self.source = source
        self.header = header

    @classmethod
    def open(cls, source: BinaryIO) -> 'DBase4MemoReader':
        buf = read_exact(source, 22, 0)
        next_block = struct.unpack_from("<L", buf, 0)[0]
        version = buf[16]
        block_size = struct.unpack_from("<H", buf, 20)[0]
        if block_size == 0:
            block_size = DBF_MEMO_BLOCK_SIZE

        header = MemoHeader(
            memo_format=MemoFormat.DBASE4,
            next_block=next_block,
            block_size=block_size,
            version=version,
        )
        _LOGGER.debug(
            "dBase IV memo: next block %d, block size %d, version %d",
            next_block, block_size, version,
        )
        return cls(source, header)

    @property
    def block_size(self) -> int:
        return self.header.block_size

    def next_available_block(self) -> int:
        return self.header.next_block

    def read_memo(self, block_index: int) -> bytes:
        position = block_index * self.header.block_size
        _LOGGER.debug("Reading dBase IV memo block %d at offset %d", block_index, position)
        record_header = read_exact(self.source, DBF_MEMO_RECORD_HEADER_SIZE, position)
        # Bytes 0-3 are the record type
        total_length = struct.unpack_from("<L", record_header, 4)[0]
        if total_length < DBF_MEMO_RECORD_HEADER_SIZE:
            raise LengthUnderflow(block_index, total_length, position + 4)

        return _read_payload(self.source, total_length - DBF_MEMO_RECORD_HEADER_SIZE, position)

    def read_memo_text(self, block_index: int, encoding: str = DBF_MEMO_TEXT_ENCODING) -> str:
        return memo_as_text(self.read_memo(block_index), encoding)


class FoxProMemoReader:
    """
    Reader for FoxPro and Visual FoxPro memo files.

    Header layout (big endian):
    - bytes 0-3: next free block
    - bytes 6-7: block size

    Each record starts with a 4-byte type tag and a 4-byte payload length.
    """

    def __init__(self, source: BinaryIO, header: MemoHeader):
        self.source = source
        self.header = header

    @classmethod
    def open(cls, source: BinaryIO) -> 'FoxProMemoReader':
        buf = read_exact(source, 8, 0)
        next_block = struct.unpack_from(">L", buf, 0)[0]
        block_size = struct.unpack_from(">H", buf, 6)[0]

        header = MemoHeader(
            memo_format=MemoFormat.FOXPRO,
            next_block=next_block,
            block_size=block_size,
        )
        _LOGGER.debug("FoxPro memo: next block %d, block size %d", next_block, block_size)
        return cls(source, header)

    @property
    def block_size(self) -> int:
        return self.header.block_size

    def next_available_block(self) -> int:
        return self.header.next_block

    def read_memo(self, block_index: int) -> bytes:
        position = block_index * self.header.block_size
        _LOGGER.debug("Reading FoxPro memo block %d at offset %d", block_index, position)
        record_header = read_exact(self.source, DBF_MEMO_RECORD_HEADER_SIZE, position)
        # Bytes 0-3 are the record type
        length = struct.unpack_from(">L", record_header, 4)[0]
        return _read_payload(self.source, length, position)

    def read_memo_text(self, block_index: int, encoding: str = DBF_MEMO_TEXT_ENCODING) -> str:
        return memo_as_text(self.read_memo(block_index), encoding)


MemoReader = Union[DBase3MemoReader, DBase4MemoReader, FoxProMemoReader]

MEMO_READERS = {
    MemoFormat.DBASE3: DBase3MemoReader,
    MemoFormat.DBASE4: DBase4MemoReader,
    MemoFormat.FOXPRO: FoxProMemoReader,
}


def open_memo_reader(memo_format: MemoFormat, source: BinaryIO) -> MemoReader:
    """Open ``source`` with the reader for the given memo layout."""
    return MEMO_READERS[MemoFormat(memo_format)].open(source)


def _read_payload(source: BinaryIO, length: int, position: int) -> bytes:
    """Read up to ``length`` payload bytes following a record header."""
    try:
        data = source.read(length)
    except OSError as e:
        raise IoFailure(e, offset=position + DBF_MEMO_RECORD_HEADER_SIZE) from e
    if len(data) < length:
        _LOGGER.debug(
            "Memo record at offset %d is short: %d of %d bytes",
            position, len(data), length,
        )
    return data

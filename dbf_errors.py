"""
Error types raised by the DBF table and memo decoders.

Every decode step is all-or-nothing: when one of these is raised, nothing
was returned and the caller should discard the attempted operation.
"""

from typing import Optional


class DBFError(Exception):
    """Base class for all DBF decoding errors."""


class FormatError(DBFError):
    """The bytes read do not follow the expected file layout."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class UnsupportedVersion(FormatError):
    """Table version byte is not one of the known dialects."""

    def __init__(self, code: int):
        self.code = code
        super().__init__(f"Unsupported DBF version byte 0x{code:02X}", offset=0)


class InvalidDate(FormatError):
    """Last update date in the table header is not a calendar date."""

    def __init__(self, year: int, month: int, day: int):
        self.year = year
        self.month = month
        self.day = day
        super().__init__(f"Invalid last update date {year}.{month}.{day}", offset=1)


class UnsupportedFieldType(FormatError):
    """Column descriptor carries an unknown type tag."""

    def __init__(self, tag: int, column_name: str = '', offset: Optional[int] = None):
        self.tag = tag
        self.column_name = column_name
        message = f"Unsupported field type 0x{tag:02X}"
        if 0x20 <= tag < 0x7F:
            message += f" ('{chr(tag)}')"
        if column_name:
            message += f" for column {column_name}"
        super().__init__(message, offset=offset)


class LengthUnderflow(FormatError):
    """Memo record length is smaller than its own 8-byte record header."""

    def __init__(self, block_index: int, total_length: int, offset: Optional[int] = None):
        self.block_index = block_index
        self.total_length = total_length
        super().__init__(
            f"Memo block {block_index} declares total length {total_length}, "
            f"less than the 8-byte record header",
            offset=offset,
        )


class IoFailure(DBFError):
    """
    The underlying byte source failed.

    The original exception is kept unchanged in ``error`` (and chained as
    ``__cause__``). A short read of a fixed-size structure is reported with
    an ``EOFError``.
    """

    def __init__(self, error: BaseException, offset: Optional[int] = None):
        self.error = error
        self.offset = offset
        message = f"I/O error: {error}"
        if offset is not None:
            message += f" (at offset {offset})"
        super().__init__(message)


class EncodingError(DBFError):
    """Memo payload could not be decoded as text."""

    def __init__(self, error: UnicodeDecodeError):
        self.error = error
        super().__init__(f"Memo payload is not valid {error.encoding} text: {error.reason}")

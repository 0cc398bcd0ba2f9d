"""
Test file for the terminator scanning helpers shared by column names and
dBase III memo records.
"""

import errno
import io
import unittest

from dbf_errors import IoFailure
from dbf_module import read_until_terminator, scan_until_terminator


class BrokenSource(io.RawIOBase):
    """A readable source that fails after a few bytes."""

    def __init__(self, data):
        self.data = data
        self.pos = 0

    def readable(self):
        return True

    def read(self, size=-1):
        if self.pos >= len(self.data):
            raise OSError(errno.EIO, "device error")
        chunk = self.data[self.pos:self.pos + size]
        self.pos += len(chunk)
        return chunk


class TestScanUntilTerminator(unittest.TestCase):
    """Test cases for scanning an in-memory buffer."""

    def test_stops_at_delimiter(self):
        self.assertEqual(scan_until_terminator(b'\x01\x02\x03\x1a\x1b\x04', b'\x1a\x1b'), b'\x01\x02\x03')

    def test_partial_match_is_kept(self):
        data = bytes([1, 2, 3, 4, 5, 0x1a, 6, 7, 0x1a, 0x1b])
        self.assertEqual(scan_until_terminator(data, b'\x1a\x1b'), bytes([1, 2, 3, 4, 5, 0x1a, 6, 7]))

    def test_missing_delimiter(self):
        data = bytes([1, 2, 3, 4, 5, 0x1a])
        self.assertEqual(scan_until_terminator(data, b'\x1a\x1b'), data)

    def test_single_byte_delimiter(self):
        self.assertEqual(scan_until_terminator(b'NAME\x00\x00\x00', b'\x00'), b'NAME')
        self.assertEqual(scan_until_terminator(b'\x00NAME', b'\x00'), b'')
        self.assertEqual(scan_until_terminator(b'', b'\x00'), b'')

    def test_accepts_bytearray(self):
        result = scan_until_terminator(bytearray(b'AB\x00C'), b'\x00')
        self.assertEqual(result, b'AB')
        self.assertIsInstance(result, bytes)

    def test_empty_delimiter(self):
        with self.assertRaises(ValueError):
            scan_until_terminator(b'abc', b'')


class TestReadUntilTerminator(unittest.TestCase):
    """Test cases for scanning a byte source."""

    def test_stops_at_delimiter(self):
        source = io.BytesIO(bytes([1, 2, 3, 4, 5, 0x1a, 0x1b]))
        self.assertEqual(read_until_terminator(source, b'\x1a\x1b'), bytes([1, 2, 3, 4, 5]))

    def test_partial_match_is_kept(self):
        """A lone first byte of the delimiter is data."""
        source = io.BytesIO(bytes([1, 2, 3, 4, 5, 0x1a, 6, 7, 0x1a, 0x1b]))
        self.assertEqual(read_until_terminator(source, b'\x1a\x1b'), bytes([1, 2, 3, 4, 5, 0x1a, 6, 7]))

    def test_repeated_first_byte(self):
        """0x1A 0x1A 0x1B matches on the last two bytes."""
        source = io.BytesIO(bytes([9, 0x1a, 0x1a, 0x1b]))
        self.assertEqual(read_until_terminator(source, b'\x1a\x1b'), bytes([9, 0x1a]))

    def test_missing_delimiter(self):
        source = io.BytesIO(bytes([1, 2, 3, 4, 5, 0x1a]))
        self.assertEqual(read_until_terminator(source, b'\x1a\x1b'), bytes([1, 2, 3, 4, 5, 0x1a]))

    def test_empty_source(self):
        self.assertEqual(read_until_terminator(io.BytesIO(b''), b'\x1a\x1a'), b'')

    def test_stops_right_after_delimiter(self):
        source = io.BytesIO(b'Hola\x1a\x1aMore\x1a\x1a')
        self.assertEqual(read_until_terminator(source, b'\x1a\x1a'), b'Hola')
        self.assertEqual(source.tell(), 6)
        self.assertEqual(read_until_terminator(source, b'\x1a\x1a'), b'More')

    def test_both_forms_agree(self):
        for data in (b'abc\x1a\x1adef', b'\x1a\x1a', b'a\x1ab\x1a', b'a\x1a\x1a\x1a'):
            with self.subTest(data=data):
                self.assertEqual(
                    read_until_terminator(io.BytesIO(data), b'\x1a\x1a'),
                    scan_until_terminator(data, b'\x1a\x1a'),
                )

    def test_source_error(self):
        with self.assertRaises(IoFailure) as ctx:
            read_until_terminator(BrokenSource(b'abc'), b'\x1a\x1a')
        self.assertIsInstance(ctx.exception.error, OSError)
        self.assertEqual(ctx.exception.error.errno, errno.EIO)

    def test_empty_delimiter(self):
        with self.assertRaises(ValueError):
            read_until_terminator(io.BytesIO(b'abc'), b'')


if __name__ == '__main__':
    unittest.main()

"""
Raw syncgps record layout and structural validation.

A record is 22 bytes latched by the DOR card: SOH, the GPS calendar time as
'ddd:hh:mm:ss', one quality byte and the 8-byte DOR clock counter.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

RECORD_LENGTH = 22
SOH = 0x01
COLON = ord(':')

QUALITY_OFFSET = 13
TICK_OFFSET = QUALITY_OFFSET + 1

# Delimiters the device always writes at fixed positions
DELIMITERS = {
    0: SOH,
    4: COLON,
    7: COLON,
    10: COLON,
}

# Calendar digit fields (start, width)
DAY_FIELD = (1, 3)
HOUR_FIELD = (5, 2)
MINUTE_FIELD = (8, 2)
SECOND_FIELD = (11, 2)
CALENDAR_FIELDS = (DAY_FIELD, HOUR_FIELD, MINUTE_FIELD, SECOND_FIELD)

# Same layout as a numpy structured dtype, used for decoding and capture files
RECORD_DTYPE = np.dtype([
    ('soh', 'u1'),
    ('day', 'S3'),
    ('sep_day', 'S1'),
    ('hour', 'S2'),
    ('sep_hour', 'S1'),
    ('minute', 'S2'),
    ('sep_minute', 'S1'),
    ('second', 'S2'),
    ('quality', 'u1'),
    ('ticks', '>u8'),
])


class StructuralFormatError(ValueError):
    """Record does not have the expected byte layout."""

    def __init__(self, mismatches: List[Tuple[int, Optional[int], str]],
                 record: bytes = b'', length: Optional[int] = None):
        """
        Args:
            mismatches: (offset, actual byte or None, expected) triples
            record: The offending record bytes
            length: Actual record length when it was wrong
        """
        self.mismatches = list(mismatches)
        self.record = bytes(record)
        self.length = length

        if length is not None:
            msg = f"Bad record length: wanted {RECORD_LENGTH}, got {length}"
        else:
            parts = [
                f"offset {offset}: 0x{actual:02x} (expected {expected})"
                for offset, actual, expected in self.mismatches
            ]
            msg = "Bad time string/timestamp format; " + ", ".join(parts)
        super().__init__(msg)

    @property
    def offsets(self) -> List[int]:
        return [offset for offset, _, _ in self.mismatches]


class RecordValidator:
    """Checks delimiters and calendar digits before a record is decoded."""

    def __init__(self, check_digits: bool = True):
        """
        Args:
            check_digits: Also require ASCII digits in the calendar fields
        """
        self.check_digits = check_digits

    def check(self, record: bytes) -> Optional[StructuralFormatError]:
        """
        Inspect a record without raising.

        Args:
            record: Raw record bytes

        Returns:
            StructuralFormatError describing every mismatch, or None if valid
        """
        record = bytes(record)

        if len(record) != RECORD_LENGTH:
            return StructuralFormatError([], record, length=len(record))

        mismatches = []
        for offset, expected in DELIMITERS.items():
            if record[offset] != expected:
                mismatches.append((offset, record[offset], f"0x{expected:02x}"))

        if self.check_digits:
            for start, width in CALENDAR_FIELDS:
                for offset in range(start, start + width):
                    if not 0x30 <= record[offset] <= 0x39:
                        mismatches.append((offset, record[offset], "digit"))

        if mismatches:
            mismatches.sort()
            return StructuralFormatError(mismatches, record)
        return None

    def validate(self, record: bytes) -> bytes:
        """
        Validate a record, raising on mismatch.

        Returns:
            The record as immutable bytes

        Raises:
            StructuralFormatError: If the layout check fails
        """
        error = self.check(record)
        if error is not None:
            raise error
        return bytes(record)

    def is_valid(self, record: bytes) -> bool:
        return self.check(record) is None

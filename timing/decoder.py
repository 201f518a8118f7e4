"""
Decoding of validated syncgps records into GPS calendar seconds,
DOR clock ticks and time quality.
"""

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .record import (
    DAY_FIELD, HOUR_FIELD, MINUTE_FIELD, SECOND_FIELD,
    QUALITY_OFFSET, RECORD_DTYPE,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
TICK_MASK = (1 << 64) - 1


class TimeQuality(Enum):
    """GPS time quality indicator reported by the receiver."""

    EXACT = (' ', "exclnt.,<1us")
    VERY_GOOD = ('.', "v.good,<10us")
    GOOD = ('*', "good,<100us")
    FAIR = ('#', "fair,<1ms")
    POOR = ('?', "poor,>1ms")
    UNKNOWN = (None, "UNKNOWN!")

    def __init__(self, symbol, description):
        self.symbol = symbol
        self.description = description

    @classmethod
    def from_byte(cls, value: int) -> 'TimeQuality':
        """Classify a quality byte; anything unrecognised is UNKNOWN."""
        return _QUALITY_BY_BYTE.get(value, cls.UNKNOWN)

    @property
    def is_known(self) -> bool:
        return self is not TimeQuality.UNKNOWN


_QUALITY_BY_BYTE = {
    ord(q.symbol): q for q in TimeQuality if q.symbol is not None
}


@dataclass(frozen=True)
class DecodedSample:
    """One decoded GPS / DOR latched time pair."""

    calendar_seconds: int
    calendar_string: str
    tick_counter: int
    quality: TimeQuality
    quality_byte: int

    @property
    def is_rollover(self) -> bool:
        """True at day 001 00:00:00, where the calendar seconds wrap to zero."""
        return self.calendar_seconds == 0


def _digits(record: bytes, field) -> int:
    start, width = field
    value = 0
    for b in record[start:start + width]:
        value = value * 10 + (b - 0x30)
    return value


def calendar_to_seconds(record: bytes) -> int:
    """
    Convert the 'ddd:hh:mm:ss' field to seconds since Jan 0.

    Plain digit arithmetic; no leap seconds or time zones.

    Args:
        record: Raw record bytes (calendar text at offsets 1-12)

    Returns:
        Seconds since day zero of the current year
    """
    return ((_digits(record, DAY_FIELD) - 1) * SECONDS_PER_DAY
            + _digits(record, HOUR_FIELD) * 3600
            + _digits(record, MINUTE_FIELD) * 60
            + _digits(record, SECOND_FIELD))


def pack_ticks(tick_bytes: bytes) -> int:
    """
    Big-endian pack tick bytes into an unsigned 64-bit counter.

    Each byte shifts the accumulator left 8 bits; only the low 64 bits
    are kept.
    """
    t = 0
    for b in tick_bytes:
        t = ((t << 8) | b) & TICK_MASK
    return t


class TimestampDecoder:
    """Decodes structurally valid records into DecodedSample values."""

    def decode(self, record: bytes) -> DecodedSample:
        """
        Decode a record.

        Args:
            record: 22-byte record that passed RecordValidator

        Returns:
            DecodedSample
        """
        record = bytes(record)
        fields = np.frombuffer(record, dtype=RECORD_DTYPE, count=1)[0]

        quality_byte = int(fields['quality'])
        sample = DecodedSample(
            calendar_seconds=calendar_to_seconds(record),
            calendar_string=record[DAY_FIELD[0]:QUALITY_OFFSET].decode('ascii', errors='replace'),
            tick_counter=int(fields['ticks']),
            quality=TimeQuality.from_byte(quality_byte),
            quality_byte=quality_byte,
        )

        logger.debug(f"Decoded {sample.calendar_string} -> {sample.calendar_seconds}s, "
                     f"ticks={sample.tick_counter}, quality={sample.quality.name}")
        return sample

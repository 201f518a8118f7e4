"""
Validation core for syncgps records.
Structural checks, decoding, and GPS / DOR delta checking.
"""

from .record import RecordValidator, StructuralFormatError, RECORD_LENGTH, RECORD_DTYPE
from .decoder import TimestampDecoder, DecodedSample, TimeQuality, calendar_to_seconds, pack_ticks
from .delta import (
    DeltaChecker,
    DeltaCheckerState,
    DeltaOutcome,
    CheckPolicy,
    Verdict,
    TickDeltaViolation,
    CalendarDeltaViolation,
    EXPECTED_TICK_DELTA,
)
from .evaluator import SampleEvaluator, SampleResult

__all__ = [
    'RecordValidator', 'StructuralFormatError', 'RECORD_LENGTH', 'RECORD_DTYPE',
    'TimestampDecoder', 'DecodedSample', 'TimeQuality', 'calendar_to_seconds', 'pack_ticks',
    'DeltaChecker', 'DeltaCheckerState', 'DeltaOutcome', 'CheckPolicy', 'Verdict',
    'TickDeltaViolation', 'CalendarDeltaViolation', 'EXPECTED_TICK_DELTA',
    'SampleEvaluator', 'SampleResult',
]

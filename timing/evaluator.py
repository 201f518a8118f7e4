"""
Per-record evaluation: validate, decode, then delta-check.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple

from .record import RecordValidator, StructuralFormatError
from .decoder import TimestampDecoder, DecodedSample, TimeQuality
from .delta import DeltaChecker, DeltaOutcome, CheckPolicy, Verdict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleResult:
    """Everything a reporter needs to render one record."""

    record: bytes
    sample: Optional[DecodedSample] = None
    outcome: Optional[DeltaOutcome] = None
    format_error: Optional[StructuralFormatError] = None

    @property
    def accepted(self) -> bool:
        return self.format_error is None

    @property
    def calendar_seconds(self) -> Optional[int]:
        return self.sample.calendar_seconds if self.sample else None

    @property
    def calendar_string(self) -> Optional[str]:
        return self.sample.calendar_string if self.sample else None

    @property
    def tick_counter(self) -> Optional[int]:
        return self.sample.tick_counter if self.sample else None

    @property
    def quality(self) -> Optional[TimeQuality]:
        return self.sample.quality if self.sample else None

    @property
    def tick_delta(self) -> Optional[int]:
        return self.outcome.tick_delta if self.outcome else None

    @property
    def calendar_delta(self) -> Optional[int]:
        return self.outcome.calendar_delta if self.outcome else None

    @property
    def tick_verdict(self) -> Verdict:
        return self.outcome.tick_verdict if self.outcome else Verdict.NOT_CHECKED

    @property
    def calendar_verdict(self) -> Verdict:
        return self.outcome.calendar_verdict if self.outcome else Verdict.NOT_CHECKED

    @property
    def violations(self) -> Tuple:
        return self.outcome.violations if self.outcome else ()

    @property
    def termination_requested(self) -> bool:
        return bool(self.outcome and self.outcome.termination_requested)


class SampleEvaluator:
    """Runs RecordValidator -> TimestampDecoder -> DeltaChecker for each record."""

    def __init__(self, policy: Optional[CheckPolicy] = None,
                 checker: Optional[DeltaChecker] = None,
                 validator: Optional[RecordValidator] = None,
                 decoder: Optional[TimestampDecoder] = None):
        self.checker = checker or DeltaChecker(policy)
        self.validator = validator or RecordValidator()
        self.decoder = decoder or TimestampDecoder()

    @property
    def policy(self) -> CheckPolicy:
        return self.checker.policy

    def evaluate(self, record: bytes) -> SampleResult:
        """
        Evaluate one raw record.

        A record that fails validation is returned with its format error and
        is not counted as a sample.

        Args:
            record: Raw record bytes

        Returns:
            SampleResult
        """
        record = bytes(record)
        try:
            self.validator.validate(record)
        except StructuralFormatError as e:
            logger.debug(f"Rejected record: {e}")
            return SampleResult(record=record, format_error=e)

        sample = self.decoder.decode(record)
        outcome = self.checker.check(sample)
        return SampleResult(record=record, sample=sample, outcome=outcome)

    def evaluate_many(self, records: Iterable[bytes]) -> Iterator[SampleResult]:
        """Evaluate records in order, stopping after a termination request."""
        for record in records:
            result = self.evaluate(record)
            yield result
            if result.termination_requested:
                break

    @property
    def saw_bad_delta(self) -> bool:
        return self.checker.saw_bad_delta

    def session_summary(self) -> dict:
        return {
            'samples': self.checker.sample_count,
            'saw_bad_delta': self.checker.saw_bad_delta,
        }

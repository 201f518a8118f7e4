"""
Consecutive-sample delta checks for GPS / DOR time pairs.

The DOR clock is expected to advance by exactly EXPECTED_TICK_DELTA ticks
between latched GPS seconds, and the GPS calendar time by exactly one second.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from .decoder import DecodedSample, TICK_MASK

logger = logging.getLogger(__name__)

# 20 MHz DOR clock, one GPS second per sample
EXPECTED_TICK_DELTA = 20_000_000
DEFAULT_SKIP_COUNT = 15


class Verdict(Enum):
    NOT_CHECKED = 'n/a'
    OK = 'ok'
    EXEMPT = 'exempt'
    VIOLATION = 'violation'


@dataclass(frozen=True)
class CheckPolicy:
    """Tolerance and enforcement switches for the delta checks."""

    skip_count: int = DEFAULT_SKIP_COUNT
    enforce_tick_delta: bool = False
    flag_tick_delta: bool = False
    flag_calendar_delta: bool = False
    expected_tick_delta: int = EXPECTED_TICK_DELTA

    @property
    def checks_ticks(self) -> bool:
        return self.flag_tick_delta or self.enforce_tick_delta


@dataclass(frozen=True)
class TickDeltaViolation:
    delta: int
    expected: int
    fatal: bool

    @property
    def message(self) -> str:
        return f"bad DOR time difference dt={self.delta}, wanted {self.expected}."


@dataclass(frozen=True)
class CalendarDeltaViolation:
    previous: int
    current: int

    @property
    def delta(self) -> int:
        return self.current - self.previous

    @property
    def message(self) -> str:
        return f"bad GPS time difference!  last_t={self.previous}, this_t={self.current}."


@dataclass(frozen=True)
class DeltaCheckerState:
    """Per-session checker state. Replaced, never mutated in place."""

    previous_tick: Optional[int] = None
    previous_calendar_seconds: Optional[int] = None
    sample_index: int = 0
    saw_bad_delta: bool = False

    @property
    def has_previous(self) -> bool:
        return self.previous_tick is not None


@dataclass(frozen=True)
class DeltaOutcome:
    """
    Deltas and verdicts for one accepted sample.

    Deltas are set whenever a previous sample exists, including inside the
    skip window; only the verdicts are suppressed there (NOT_CHECKED).
    """

    sample_index: int
    tick_delta: Optional[int] = None
    calendar_delta: Optional[int] = None
    tick_verdict: Verdict = Verdict.NOT_CHECKED
    calendar_verdict: Verdict = Verdict.NOT_CHECKED
    tick_violation: Optional[TickDeltaViolation] = None
    calendar_violation: Optional[CalendarDeltaViolation] = None
    termination_requested: bool = False
    saw_bad_delta: bool = False

    @property
    def violations(self) -> Tuple:
        return tuple(v for v in (self.tick_violation, self.calendar_violation) if v is not None)


def advance(state: DeltaCheckerState, sample: DecodedSample,
            policy: CheckPolicy) -> Tuple[DeltaOutcome, DeltaCheckerState]:
    """
    Evaluate one sample against the previous one.

    Args:
        state: Current checker state
        sample: Newly decoded sample
        policy: Check policy

    Returns:
        (outcome, new_state). The new state always records the sample.
    """
    index = state.sample_index
    saw_bad = state.saw_bad_delta

    tick_delta = None
    calendar_delta = None
    tick_verdict = Verdict.NOT_CHECKED
    calendar_verdict = Verdict.NOT_CHECKED
    tick_violation = None
    calendar_violation = None
    terminate = False

    if state.has_previous:
        # Unsigned 64-bit subtraction, wraps if the counter went backwards
        tick_delta = (sample.tick_counter - state.previous_tick) & TICK_MASK
        calendar_delta = sample.calendar_seconds - state.previous_calendar_seconds

        if index > policy.skip_count:
            if policy.checks_ticks:
                if tick_delta == policy.expected_tick_delta:
                    tick_verdict = Verdict.OK
                else:
                    tick_verdict = Verdict.VIOLATION
                    tick_violation = TickDeltaViolation(
                        delta=tick_delta,
                        expected=policy.expected_tick_delta,
                        fatal=policy.enforce_tick_delta,
                    )
                    terminate = policy.enforce_tick_delta
                    saw_bad = True

            if policy.flag_calendar_delta:
                if sample.is_rollover:
                    # Jan 0 rollover
                    calendar_verdict = Verdict.EXEMPT
                elif calendar_delta == 1:
                    calendar_verdict = Verdict.OK
                else:
                    calendar_verdict = Verdict.VIOLATION
                    calendar_violation = CalendarDeltaViolation(
                        previous=state.previous_calendar_seconds,
                        current=sample.calendar_seconds,
                    )
                    saw_bad = True

    outcome = DeltaOutcome(
        sample_index=index,
        tick_delta=tick_delta,
        calendar_delta=calendar_delta,
        tick_verdict=tick_verdict,
        calendar_verdict=calendar_verdict,
        tick_violation=tick_violation,
        calendar_violation=calendar_violation,
        termination_requested=terminate,
        saw_bad_delta=saw_bad,
    )
    new_state = replace(
        state,
        previous_tick=sample.tick_counter,
        previous_calendar_seconds=sample.calendar_seconds,
        sample_index=index + 1,
        saw_bad_delta=saw_bad,
    )
    return outcome, new_state


class DeltaChecker:
    """Tracks the previous accepted sample and checks each new one against it."""

    def __init__(self, policy: Optional[CheckPolicy] = None,
                 state: Optional[DeltaCheckerState] = None):
        self.policy = policy or CheckPolicy()
        self.state = state or DeltaCheckerState()

    def check(self, sample: DecodedSample) -> DeltaOutcome:
        """
        Check a sample and record it as the new previous sample.

        Args:
            sample: Newly decoded sample

        Returns:
            DeltaOutcome for this sample
        """
        outcome, new_state = advance(self.state, sample, self.policy)
        self.state = new_state

        logger.debug(f"Sample {outcome.sample_index}: dt={outcome.tick_delta} "
                     f"({outcome.tick_verdict.value}), gps dt={outcome.calendar_delta} "
                     f"({outcome.calendar_verdict.value})")
        return outcome

    def reset(self):
        """Start a new session."""
        self.state = DeltaCheckerState()

    @property
    def saw_bad_delta(self) -> bool:
        return self.state.saw_bad_delta

    @property
    def sample_count(self) -> int:
        return self.state.sample_index

"""
Console and CSV reporting of evaluated samples.
"""

import csv
import logging
from pathlib import Path
from typing import List, Optional, TextIO

from timing.evaluator import SampleResult
from timing.record import StructuralFormatError

logger = logging.getLogger(__name__)

CSV_FIELDS = [
    'sample_index', 'gps_time', 'gps_seconds', 'quality', 'ticks',
    'dt_ticks', 'dt_gps', 'dt_verdict', 'gps_verdict', 'terminate',
]


def quality_text(result: SampleResult) -> str:
    quality = result.quality
    if quality is None or not quality.is_known:
        return " UNKNOWN!"
    return f"('{quality.symbol}' {quality.description})"


def format_sample(result: SampleResult, card: int, show_diff: bool = False) -> str:
    """
    Render one accepted sample as a console line.

    Example:
        GPS 123:04:05:06 TQUAL(' ' exclnt.,<1us) DOR(0) 00000000012a05f2 dt=20000000 ticks

    Args:
        result: Evaluated sample
        card: DOR card number
        show_diff: Append the tick delta once one is available
    """
    line = f"GPS {result.calendar_string} TQUAL{quality_text(result)} DOR({card}) {result.tick_counter:016x}"
    if show_diff and result.tick_delta is not None:
        line += f" dt={result.tick_delta} ticks"
    if result.outcome is not None and result.outcome.tick_violation is not None:
        line += " BAD DT!!"
    return line


def format_structural_error(error: StructuralFormatError) -> List[str]:
    """Dump every byte of a malformed record."""
    lines = ["Bad time string/timestamp format; got:"]
    for i, b in enumerate(error.record):
        lines.append(f"Position {i} byte 0x{b:02x}")
    return lines


def report_violations(result: SampleResult, source: str):
    """Log per-sample delta errors, prefixed with the device path."""
    outcome = result.outcome
    if outcome is None:
        return
    if outcome.tick_violation is not None and outcome.tick_violation.fatal:
        logger.error(f"{source}: {outcome.tick_violation.message}")
    if outcome.calendar_violation is not None:
        logger.error(f"{source}: {outcome.calendar_violation.message}")


def csv_row(result: SampleResult) -> dict:
    outcome = result.outcome
    return {
        'sample_index': outcome.sample_index if outcome else '',
        'gps_time': result.calendar_string,
        'gps_seconds': result.calendar_seconds,
        'quality': result.quality.name if result.quality else '',
        'ticks': result.tick_counter,
        'dt_ticks': '' if result.tick_delta is None else result.tick_delta,
        'dt_gps': '' if result.calendar_delta is None else result.calendar_delta,
        'dt_verdict': result.tick_verdict.value,
        'gps_verdict': result.calendar_verdict.value,
        'terminate': int(result.termination_requested),
    }


class SampleReporter:
    """Writes sample lines to a stream and optionally to a CSV file."""

    def __init__(self, card: int, source: str, show_diff: bool = False,
                 out: Optional[TextIO] = None, csv_file: Optional[str] = None):
        self.card = card
        self.source = source
        self.show_diff = show_diff
        self.out = out
        self.csv_file = csv_file
        self._csv_handle = None
        self._writer = None

    def open(self):
        if self.csv_file:
            path = Path(self.csv_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._csv_handle = open(path, 'w', newline='')
            self._writer = csv.DictWriter(self._csv_handle, fieldnames=CSV_FIELDS)
            self._writer.writeheader()
            logger.info(f"Writing samples to {path}")

    def close(self):
        if self._csv_handle:
            self._csv_handle.close()
            self._csv_handle = None
            self._writer = None

    def _print(self, line: str):
        print(line, file=self.out, flush=True)

    def report(self, result: SampleResult):
        if result.format_error is not None:
            if result.format_error.length is not None:
                logger.error(f"{self.source}: {result.format_error}")
            else:
                for line in format_structural_error(result.format_error):
                    logger.error(line)
            return

        self._print(format_sample(result, self.card, self.show_diff))
        report_violations(result, self.source)

        if self._writer:
            self._writer.writerow(csv_row(result))

    def summarize(self, saw_bad_delta: bool, terminated: bool):
        if terminated and saw_bad_delta:
            logger.warning(f"{self.source}: had a bad delta-T value!")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

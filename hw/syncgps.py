"""
DOR card syncgps reader.
Reads GPS / DOR latched time pairs from the domhub driver's proc file.
"""

import os
import re
import time
import logging
from typing import Callable, Iterator, Optional, Union

from timing.record import RECORD_LENGTH

logger = logging.getLogger(__name__)

PROC_TEMPLATE = '/proc/driver/domhub/card{card}/syncgps'
MAX_CARD = 7
MAX_RETRIES = 3
MAX_FLUSH = 11

DRIVER_HINT = "You may need a new driver revision: try V02-02-11 or higher."


class AcquisitionError(Exception):
    """Reading records from the device failed."""


class DeviceOpenError(AcquisitionError):
    pass


class ShortReadError(AcquisitionError):
    pass


class NoDataError(AcquisitionError):
    pass


def card_from_path(path: str) -> Optional[int]:
    """First run of digits in a proc path, or None if there is none."""
    match = re.search(r'\d+', path)
    return int(match.group()) if match else None


def resolve_device(device: Union[str, int]) -> tuple:
    """
    Resolve a card number or proc file path.

    Args:
        device: Card number ('3' or 3) or full syncgps file path

    Returns:
        (path, card)

    Raises:
        ValueError: If the card number is missing or out of range
    """
    device = str(device)
    if device.isdigit():
        card = int(device)
        path = PROC_TEMPLATE.format(card=card)
    else:
        path = device
        card = card_from_path(path)

    if card is None or not 0 <= card <= MAX_CARD:
        raise ValueError(f"Bad card value in proc file '{path}'.")

    return path, card


class SyncGPSDevice:
    """syncgps proc file of one DOR card."""

    def __init__(self, device: Union[str, int], wait: float = 1.0,
                 max_retries: int = MAX_RETRIES,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize device reader.

        Args:
            device: Card number or syncgps file path
            wait: Seconds to wait after an empty read
            max_retries: Empty reads tolerated before giving up
            sleep: Sleep function used between empty reads
        """
        self.path, self.card = resolve_device(device)
        self.wait = wait
        self.max_retries = max_retries
        self._sleep = sleep
        self.records_read = 0

    def read_record(self) -> bytes:
        """
        Read one record. The driver needs an open/close per read.

        Returns:
            RECORD_LENGTH bytes, or b'' if no record is buffered yet

        Raises:
            DeviceOpenError: If the proc file cannot be opened
            ShortReadError: If a partial record was returned
        """
        try:
            fd = os.open(self.path, os.O_RDONLY)
        except OSError as e:
            logger.error(f"Can't open file {self.path}: {e.strerror}")
            logger.error(DRIVER_HINT)
            raise DeviceOpenError(f"Can't open file {self.path}: {e.strerror}") from e

        try:
            data = os.read(fd, RECORD_LENGTH)
        finally:
            os.close(fd)

        if data and len(data) != RECORD_LENGTH:
            raise ShortReadError(
                f"Didn't read enough bytes from {self.path}.  "
                f"Wanted {RECORD_LENGTH}, got {len(data)}."
            )
        if data:
            self.records_read += 1
        return data

    def flush(self, max_flush: int = MAX_FLUSH) -> int:
        """
        Discard buffered records.

        Args:
            max_flush: Reads beyond the first before giving up

        Returns:
            Number of records discarded
        """
        discarded = 0
        attempts = 0
        while True:
            data = self.read_record()
            if not data:
                break
            discarded += 1
            if attempts >= max_flush:
                break
            attempts += 1

        logger.info(f"Flushed {discarded} buffered record(s) from {self.path}")
        return discarded

    def poll(self, token=None) -> Iterator[bytes]:
        """
        Yield records as they become available.

        Sleeps `wait` seconds after each empty read. A successful read resets
        the retry count.

        Args:
            token: Optional CancellationToken, checked before every read

        Raises:
            NoDataError: If the retry budget is exhausted
        """
        retries = 0
        while token is None or not token.cancelled:
            data = self.read_record()
            if not data:
                self._sleep(self.wait)
                if retries > self.max_retries:
                    raise NoDataError("No GPS data available, check hardware/firmware setup.")
                retries += 1
                logger.debug(f"No record available from {self.path} (retry {retries})")
                continue

            retries = 0
            yield data

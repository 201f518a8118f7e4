"""
Cooperative cancellation for the polling loop.
Signal handlers only set a flag; the loop checks it between records.
"""

import signal
import logging

logger = logging.getLogger(__name__)

# SIGKILL cannot be caught
CANCEL_SIGNALS = tuple(
    getattr(signal, name) for name in ('SIGINT', 'SIGQUIT', 'SIGTERM')
    if hasattr(signal, name)
)


class CancellationToken:
    """Flag tripped by a termination request or a signal."""

    def __init__(self):
        self._cancelled = False
        self.reason = None

    def cancel(self, reason: str = 'cancelled'):
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason
            logger.debug(f"Cancellation requested: {reason}")

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def install_signal_handlers(token: CancellationToken) -> dict:
    """
    Route termination signals to the token.

    Returns:
        Previous handlers, keyed by signal number
    """
    previous = {}

    def _handler(signum, frame):
        token.cancel(signal.Signals(signum).name)

    for sig in CANCEL_SIGNALS:
        previous[sig] = signal.signal(sig, _handler)
    return previous


def restore_signal_handlers(previous: dict):
    for sig, handler in previous.items():
        signal.signal(sig, handler)

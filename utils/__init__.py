"""
Utility functions for logging, configuration, cancellation and reporting.
"""

from .logging_config import setup_logging
from .config import ReaderConfig
from .cancel import CancellationToken, install_signal_handlers, restore_signal_handlers
from .report import SampleReporter, format_sample

__all__ = [
    'setup_logging', 'ReaderConfig',
    'CancellationToken', 'install_signal_handlers', 'restore_signal_handlers',
    'SampleReporter', 'format_sample',
]

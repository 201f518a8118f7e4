"""
Hardware access for DOR cards.
Reads syncgps time pairs from the domhub driver proc files.
"""

from .syncgps import (
    SyncGPSDevice,
    AcquisitionError,
    DeviceOpenError,
    ShortReadError,
    NoDataError,
    resolve_device,
)

__all__ = ['SyncGPSDevice', 'AcquisitionError', 'DeviceOpenError', 'ShortReadError',
           'NoDataError', 'resolve_device']

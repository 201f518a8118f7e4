"""Shared record builders for the readgps tests."""

import pytest


def build_record(day=1, hour=0, minute=0, second=0, quality=b' ', ticks=0):
    return (b'\x01'
            + f"{day:03d}:{hour:02d}:{minute:02d}:{second:02d}".encode('ascii')
            + quality
            + ticks.to_bytes(8, 'big'))


def record_at(seconds, ticks, quality=b' '):
    """Record whose calendar field encodes `seconds` since Jan 0."""
    day, rest = divmod(seconds, 86400)
    hour, rest = divmod(rest, 3600)
    minute, second = divmod(rest, 60)
    return build_record(day + 1, hour, minute, second, quality, ticks)


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def make_record_at():
    return record_at


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ('READGPS_DEVICE', 'READGPS_WAIT', 'READGPS_SKIP', 'READGPS_FLAG_DT',
                 'READGPS_REQUIRE_DT', 'READGPS_FLAG_GPS', 'READGPS_LOG_LEVEL',
                 'READGPS_LOG_FILE'):
        monkeypatch.delenv(name, raising=False)

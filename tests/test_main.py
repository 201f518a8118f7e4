"""CLI modes with the device reads scripted."""

import logging
import signal

import pytest

import main
from utils import logging_config
from hw.syncgps import SyncGPSDevice
from timing import EXPECTED_TICK_DELTA

DT = EXPECTED_TICK_DELTA


@pytest.fixture(autouse=True)
def keep_pytest_logging(monkeypatch):
    # setup_logging would replace the caplog handler
    monkeypatch.setattr(main, 'setup_logging', lambda *args, **kwargs: None)


@pytest.fixture
def scripted_device(monkeypatch):
    def install(records, when_drained=None):
        queue = list(records)

        def read_record(self):
            if queue:
                return queue.pop(0)
            if when_drained is not None:
                when_drained()
            return b''

        monkeypatch.setattr(SyncGPSDevice, 'read_record', read_record)
        monkeypatch.setattr(main.SyncGPSDevice, '__init__', _no_sleep_init)
    return install


_original_init = SyncGPSDevice.__init__


def _no_sleep_init(self, device, wait=1.0, **kwargs):
    _original_init(self, device, wait=wait, sleep=lambda s: None)


def test_run_oneshot(scripted_device, capsys, make_record):
    scripted_device([make_record(42, 1, 2, 3, b'#', 255), make_record()])

    assert main.main(['run', '3', '-o']) == 0

    out = capsys.readouterr().out
    assert out == "GPS 042:01:02:03 TQUAL('#' fair,<1ms) DOR(3) 00000000000000ff\n"


def test_run_enforced_dt_stops_session(scripted_device, capsys, caplog, make_record_at):
    ticks = [0, DT, 2 * DT, 3 * DT + 1, 4 * DT + 1]
    scripted_device([make_record_at(100 + i, t) for i, t in enumerate(ticks)])

    with caplog.at_level(logging.WARNING):
        status = main.main(['run', '1', '-c', '-d', '-i', '1'])

    assert status == 1
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 4
    assert lines[-1].endswith(f"dt={DT + 1} ticks BAD DT!!")
    assert f"bad DOR time difference dt={DT + 1}, wanted {DT}." in caplog.text
    assert 'had a bad delta-T value!' in caplog.text


def test_run_no_data(scripted_device, caplog):
    scripted_device([])

    with caplog.at_level(logging.ERROR):
        assert main.main(['run', '2']) == 1

    assert 'No GPS data available' in caplog.text


def test_run_format_error_continues(scripted_device, capsys, caplog, make_record_at):
    bad = b'\x00' + make_record_at(101, DT)[1:]
    scripted_device([make_record_at(100, 0), bad, make_record_at(101, DT)])

    with caplog.at_level(logging.ERROR):
        main.main(['run', '0', '-f', '-i', '0', '-d'])

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[1].endswith(f"dt={DT} ticks")
    assert 'Position 0 byte 0x00' in caplog.text


def test_run_abort_on_format_error(scripted_device, capsys, make_record_at):
    scripted_device([b'\x00' * 22, make_record_at(100, 0)])

    assert main.main(['run', '0', '--abort-on-format-error']) == 1
    assert capsys.readouterr().out == ''


def test_run_bad_card(caplog):
    with caplog.at_level(logging.ERROR):
        assert main.main(['run', '9']) == 1
    assert 'Bad card value' in caplog.text


def test_run_without_device(caplog):
    with caplog.at_level(logging.ERROR):
        assert main.main(['run']) == 1
    assert 'No device given' in caplog.text


def test_capture_then_process(scripted_device, tmp_path, capsys, make_record_at):
    records = [make_record_at(200 + i, i * DT) for i in range(4)]
    records.append(make_record_at(205, 4 * DT))
    scripted_device(records)
    capture = tmp_path / 'capture.bin'

    assert main.main(['capture', '5', '-n', '5', '-o', str(capture)]) == 0
    assert capture.read_bytes() == b''.join(records)
    capsys.readouterr()

    csv_path = tmp_path / 'samples.csv'
    status = main.main(['process', str(capture), '-g', '-f', '-i', '0', '--card', '5',
                        '--csv', str(csv_path)])

    assert status == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith('GPS 001:00:03:20 ')
    assert 'DOR(5)' in out[0]
    assert out[-1] == '✓ Checked 5 samples (bad delta-T seen)'
    assert csv_path.exists()


def test_process_ignores_partial_record(tmp_path, capsys, make_record_at):
    capture = tmp_path / 'capture.bin'
    capture.write_bytes(make_record_at(1, 0) + make_record_at(2, DT)[:10])

    assert main.main(['process', str(capture)]) == 0
    assert capsys.readouterr().out.splitlines()[-1] == '✓ Checked 1 samples'


def test_process_missing_file(tmp_path):
    assert main.main(['process', str(tmp_path / 'nope.bin')]) == 1


def test_decode(capsys, make_record):
    record = make_record(365, 23, 59, 59, b'.', DT)

    assert main.main(['decode', record.hex()]) == 0

    out = capsys.readouterr().out
    assert 'GPS time:     365:23:59:59' in out
    assert 'GPS seconds:  31535999' in out
    assert 'Quality:      VERY_GOOD (v.good,<10us)' in out
    assert f'DOR ticks:    {DT} (0x0000000001312d00)' in out


def test_decode_rejects_bad_record(caplog):
    with caplog.at_level(logging.ERROR):
        assert main.main(['decode', '00' * 22]) == 1
    assert 'Bad time string' in caplog.text


def test_no_mode(capsys):
    assert main.main([]) == 1


def test_signal_after_bad_dt_warns(scripted_device, capsys, caplog, make_record_at):
    scripted_device([make_record_at(100, 0), make_record_at(101, DT + 7)],
                    when_drained=lambda: signal.raise_signal(signal.SIGINT))

    with caplog.at_level(logging.WARNING):
        status = main.main(['run', '1', '-f', '-i', '0'])

    assert status == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[1].endswith('BAD DT!!')
    assert '/proc/driver/domhub/card1/syncgps: had a bad delta-T value!' in caplog.text


def test_signal_without_bad_dt_is_quiet(scripted_device, caplog, make_record_at):
    scripted_device([make_record_at(100, 0), make_record_at(101, DT)],
                    when_drained=lambda: signal.raise_signal(signal.SIGINT))

    with caplog.at_level(logging.WARNING):
        assert main.main(['run', '1', '-f', '-i', '0']) == 0

    assert 'had a bad delta-T value' not in caplog.text


def test_run_flush_discards_buffered_records(scripted_device, capsys, make_record):
    scripted_device([make_record(10), make_record(11), b'', make_record(12, 1, 2, 3)])

    assert main.main(['run', '4', '-s', '-o']) == 0

    out = capsys.readouterr().out.splitlines()
    assert len(out) == 1
    assert out[0].startswith('GPS 012:01:02:03 ')


@pytest.mark.parametrize('name, value', [('READGPS_WAIT', 'fast'), ('READGPS_SKIP', 'many')])
def test_bad_env_value_is_usage_error(monkeypatch, caplog, name, value):
    monkeypatch.setenv(name, value)

    with caplog.at_level(logging.ERROR):
        assert main.main(['run', '0']) == 1

    assert 'Bad configuration' in caplog.text


@pytest.mark.parametrize('mode_args', [['run', '0'], ['process', 'x.bin'], ['decode', '00']])
def test_bad_log_level_is_usage_error(monkeypatch, caplog, mode_args):
    monkeypatch.setattr(main, 'setup_logging', logging_config.setup_logging)
    monkeypatch.setenv('READGPS_LOG_LEVEL', 'LOUD')

    with caplog.at_level(logging.ERROR):
        assert main.main(mode_args) == 1

    assert 'Unknown log level: LOUD' in caplog.text


def test_decode_uses_env_log_level(monkeypatch, capsys, make_record):
    levels = []
    monkeypatch.setattr(main, 'setup_logging', lambda level, log_file=None: levels.append(level))
    monkeypatch.setenv('READGPS_LOG_LEVEL', 'DEBUG')

    assert main.main(['decode', make_record().hex()]) == 0
    assert levels == ['DEBUG']


@pytest.mark.parametrize('count', ['0', '-3'])
def test_capture_rejects_non_positive_count(scripted_device, tmp_path, caplog,
                                            make_record, count):
    scripted_device([make_record()])
    capture = tmp_path / 'capture.bin'

    with caplog.at_level(logging.ERROR):
        assert main.main(['capture', '0', '-n', count, '-o', str(capture)]) == 1

    assert not capture.exists()
    assert 'Record count must be at least 1' in caplog.text

#!/usr/bin/env python3
"""
readgps - DOR card GPS / clock tick checker
Reads and parses GPS / DOR latched time pairs. CLI with 4 modes: run, capture, process, decode
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np

from hw import SyncGPSDevice, AcquisitionError, DeviceOpenError
from timing import SampleEvaluator, RECORD_DTYPE, RECORD_LENGTH
from utils import (
    setup_logging, ReaderConfig, SampleReporter,
    CancellationToken, install_signal_handlers, restore_signal_handlers,
)

logger = logging.getLogger('readgps')


def _load_config(args):
    """Environment defaults plus CLI overrides, with logging configured."""
    try:
        config = ReaderConfig.from_env().apply_args(args)
        setup_logging(config.log_level, config.log_file)
    except ValueError as e:
        logger.error(f"Bad configuration: {e}")
        return None
    return config


def _open_device(config: ReaderConfig):
    if not config.device:
        logger.error("No device given (card number or syncgps proc file, or set READGPS_DEVICE)")
        return None
    try:
        return SyncGPSDevice(config.device, wait=config.wait)
    except ValueError as e:
        logger.error(str(e))
        return None


def mode_run(args):
    """
    Run mode: poll the syncgps file and check every time pair.
    """
    config = _load_config(args)
    if config is None:
        return 1

    device = _open_device(config)
    if device is None:
        return 1

    evaluator = SampleEvaluator(config.policy)
    token = CancellationToken()
    previous_handlers = install_signal_handlers(token)
    status = 0

    logger.info(f"Reading {device.path} (card {device.card}), skipping first "
                f"{config.skip_count} delta checks")

    try:
        with SampleReporter(device.card, device.path, show_diff=config.show_diff,
                            csv_file=config.csv_file) as reporter:
            if config.flush:
                device.flush()

            for record in device.poll(token):
                result = evaluator.evaluate(record)
                reporter.report(result)

                if result.format_error is not None and config.abort_on_format_error:
                    status = 1
                    break
                if result.termination_requested:
                    token.cancel('bad DOR time difference')
                    status = 1
                if config.oneshot or token.cancelled:
                    break

            reporter.summarize(evaluator.saw_bad_delta, token.cancelled)

    except DeviceOpenError:
        status = 1
    except AcquisitionError as e:
        logger.error(f"ERROR - {e}")
        status = 1
    finally:
        restore_signal_handlers(previous_handlers)

    logger.info(f"Session ended: {evaluator.session_summary()}")
    return status


def mode_capture(args):
    """
    Capture mode: save raw syncgps records to a binary file for offline checks.
    """
    config = _load_config(args)
    if config is None:
        return 1

    if args.count < 1:
        logger.error(f"Record count must be at least 1, got {args.count}")
        return 1

    device = _open_device(config)
    if device is None:
        return 1

    output_file = args.output if args.output else f"syncgps_card{device.card}_{int(time.time())}.bin"
    token = CancellationToken()
    previous_handlers = install_signal_handlers(token)
    captured = 0

    print(f"Capturing {args.count} records from {device.path}...")

    try:
        if config.flush:
            device.flush()

        with open(output_file, 'ab') as f:
            for record in device.poll(token):
                f.write(record)
                captured += 1
                if captured >= args.count:
                    break

    except DeviceOpenError:
        return 1
    except AcquisitionError as e:
        logger.error(f"ERROR - {e}")
        return 1
    finally:
        restore_signal_handlers(previous_handlers)

    print(f"✓ Saved {captured} records to {output_file}")
    return 0


def load_capture(path) -> list:
    """
    Load raw records from a capture file.

    Returns:
        List of RECORD_LENGTH-byte records
    """
    data = Path(path).read_bytes()
    n_records, extra = divmod(len(data), RECORD_LENGTH)
    if extra:
        logger.warning(f"{path}: ignoring {extra} trailing byte(s) of a partial record")
    if n_records == 0:
        return []

    records = np.frombuffer(data, dtype=RECORD_DTYPE, count=n_records)
    return [r.tobytes() for r in records]


def mode_process(args):
    """
    Process mode: check a capture file offline with the same policy as run mode.
    """
    config = _load_config(args)
    if config is None:
        return 1

    try:
        records = load_capture(args.input)
    except OSError as e:
        logger.error(f"Failed to load capture file: {e}")
        return 1

    logger.info(f"Loaded {len(records)} records from {args.input}")

    evaluator = SampleEvaluator(config.policy)
    status = 0
    terminated = False

    with SampleReporter(args.card, args.input, show_diff=config.show_diff,
                        csv_file=config.csv_file) as reporter:
        for result in evaluator.evaluate_many(records):
            reporter.report(result)
            if result.format_error is not None and config.abort_on_format_error:
                status = 1
                break
            if result.termination_requested:
                terminated = True
                status = 1

        reporter.summarize(evaluator.saw_bad_delta, terminated)

    summary = evaluator.session_summary()
    print(f"✓ Checked {summary['samples']} samples"
          f"{' (bad delta-T seen)' if summary['saw_bad_delta'] else ''}")
    return status


def mode_decode(args):
    """
    Decode mode: decode one hex-encoded record.
    """
    if _load_config(args) is None:
        return 1

    try:
        record = bytes.fromhex(args.record)
    except ValueError as e:
        logger.error(f"Invalid hex record: {e}")
        return 1

    result = SampleEvaluator().evaluate(record)
    if result.format_error is not None:
        logger.error(str(result.format_error))
        return 1

    sample = result.sample
    print(f"GPS time:     {sample.calendar_string}")
    print(f"GPS seconds:  {sample.calendar_seconds}")
    print(f"Quality:      {sample.quality.name} ({sample.quality.description})")
    print(f"DOR ticks:    {sample.tick_counter} (0x{sample.tick_counter:016x})")
    return 0


def _add_common_args(parser):
    parser.add_argument('-d', '--show-diff', dest='show_diff', action='store_true',
                        help='Show difference in DOR clock ticks')
    parser.add_argument('-i', '--skip', dest='skip_count', type=int,
                        help='Ignore first <n> time strings when checking delta-t values (default: 15)')
    parser.add_argument('-f', '--flag-dt', dest='flag_tick_delta', action='store_true',
                        help='Flag deviations from 20M ticks of delta time')
    parser.add_argument('-c', '--require-dt', dest='enforce_tick_delta', action='store_true',
                        help='REQUIRE 20M clock tick time difference (stop on deviation)')
    parser.add_argument('-g', '--flag-gps', dest='flag_calendar_delta', action='store_true',
                        help='Flag deviations from 1 sec in GPS times')
    parser.add_argument('--csv', dest='csv_file', help='Also write samples to a CSV file')
    parser.add_argument('--abort-on-format-error', action='store_true',
                        help='Stop at the first malformed record')
    _add_log_args(parser)


def _add_log_args(parser):
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    parser.add_argument('--log-file', help='Log file path')


def build_parser():
    parser = argparse.ArgumentParser(
        prog='readgps',
        description='Read and check GPS / DOR latched time pairs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='E.g., readgps run /proc/driver/domhub/card0/syncgps',
    )

    subparsers = parser.add_subparsers(dest='mode', help='Operation mode')

    # === RUN MODE ===
    run_parser = subparsers.add_parser('run', help='Poll a card and check time pairs')
    run_parser.add_argument('device', nargs='?',
                            help='Card number or syncgps proc file')
    run_parser.add_argument('-o', '--oneshot', action='store_true',
                            help='One-shot (single readout)')
    run_parser.add_argument('-w', '--wait', type=float,
                            help='Wait n seconds between readout retries (default: 1)')
    run_parser.add_argument('-s', '--flush', action='store_true',
                            help='Flush DOR buffer at launch')
    _add_common_args(run_parser)

    # === CAPTURE MODE ===
    capture_parser = subparsers.add_parser('capture', help='Save raw records to a file')
    capture_parser.add_argument('device', nargs='?',
                                help='Card number or syncgps proc file')
    capture_parser.add_argument('-n', '--count', type=int, required=True,
                                help='Number of records to capture')
    capture_parser.add_argument('-o', '--output', help='Output file name')
    capture_parser.add_argument('-w', '--wait', type=float,
                                help='Wait n seconds between readout retries (default: 1)')
    capture_parser.add_argument('-s', '--flush', action='store_true',
                                help='Flush DOR buffer at launch')
    _add_log_args(capture_parser)

    # === PROCESS MODE ===
    process_parser = subparsers.add_parser('process', help='Check a capture file offline')
    process_parser.add_argument('input', help='Capture file written by the capture mode')
    process_parser.add_argument('--card', type=int, default=0,
                                help='Card number shown in the report (default: 0)')
    _add_common_args(process_parser)

    # === DECODE MODE ===
    decode_parser = subparsers.add_parser('decode', help='Decode one hex-encoded record')
    decode_parser.add_argument('record', help='44 hex digits')
    _add_log_args(decode_parser)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.mode:
        parser.print_help()
        return 1

    if args.mode == 'run':
        return mode_run(args)
    elif args.mode == 'capture':
        return mode_capture(args)
    elif args.mode == 'process':
        return mode_process(args)
    elif args.mode == 'decode':
        return mode_decode(args)
    else:
        print(f"Unknown mode: {args.mode}")
        return 1


if __name__ == '__main__':
    sys.exit(main())

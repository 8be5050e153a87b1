"""Tests for LogCollector batch assembly."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from errorsurface.config import ErrorSurfaceConfig
from errorsurface.ingest.collector import LogCollector
from errorsurface.sources.journal import RawJournalRecord
from errorsurface.sources.kernel import RawKernelRecord, diagnostic_record

NOW = datetime.now(timezone.utc).replace(microsecond=0)


def _journal(message, seconds_ago, priority=3, unit="sshd.service"):
    ts = NOW - timedelta(seconds=seconds_ago)
    return RawJournalRecord(
        realtime_usec=int(ts.timestamp()) * 1_000_000,
        priority=priority,
        message=message,
        systemd_unit=unit,
    )


def _kernel(message, seconds_ago, level="err"):
    return RawKernelRecord(timestamp=NOW - timedelta(seconds=seconds_ago), message=message, level=level)


def _reader(records, last_error=None):
    reader = MagicMock()
    reader.read.return_value = records
    reader.last_error = last_error
    return reader


@pytest.fixture
def journal_reader():
    return _reader([
        _journal("Failed password for root from 192.168.1.100", 10),
        _journal("Service started successfully", 30, priority=4),
    ])


@pytest.fixture
def kernel_reader():
    return _reader([_kernel("Out of memory: Killed process 4242", 20)])


class TestCollectAll:
    def test_merges_sorts_and_classifies(self, journal_reader, kernel_reader):
        collector = LogCollector(journal_reader=journal_reader, kernel_reader=kernel_reader)
        events = collector.collect_all(lookback_days=7)

        assert [e.message for e in events] == [
            "Failed password for root from 192.168.1.100",
            "Out of memory: Killed process 4242",
            "Service started successfully",
        ]
        assert [e.source for e in events] == ["journal", "kernel", "journal"]
        assert events[0].threats[0].category == "Authentication"
        assert events[1].threats[0].category == "Resources"
        assert events[2].threats == []

    def test_since_from_lookback(self, journal_reader, kernel_reader):
        collector = LogCollector(journal_reader=journal_reader, kernel_reader=kernel_reader)
        collector.collect_all(lookback_days=3)

        since = journal_reader.read.call_args.args[0]
        expected = datetime.now(timezone.utc) - timedelta(days=3)
        assert abs((since - expected).total_seconds()) < 5
        assert kernel_reader.read.call_args.args[0] == since

    def test_full_scan_journal_cap(self, journal_reader, kernel_reader):
        config = ErrorSurfaceConfig(journal_max_entries=123, _env_file=None)
        collector = LogCollector(journal_reader=journal_reader, kernel_reader=kernel_reader, config=config)
        collector.collect_all()
        assert journal_reader.read.call_args.kwargs["max_entries"] == 123

    def test_default_lookback_from_config(self, journal_reader, kernel_reader):
        config = ErrorSurfaceConfig(lookback_days=2, _env_file=None)
        collector = LogCollector(journal_reader=journal_reader, kernel_reader=kernel_reader, config=config)
        collector.collect_all()

        since = journal_reader.read.call_args.args[0]
        expected = datetime.now(timezone.utc) - timedelta(days=2)
        assert abs((since - expected).total_seconds()) < 5


class TestCollectLive:
    def test_window_and_live_cap(self, journal_reader, kernel_reader):
        collector = LogCollector(journal_reader=journal_reader, kernel_reader=kernel_reader)
        events = collector.collect_live(window_minutes=15)

        since = journal_reader.read.call_args.args[0]
        expected = datetime.now(timezone.utc) - timedelta(minutes=15)
        assert abs((since - expected).total_seconds()) < 5
        assert journal_reader.read.call_args.kwargs["max_entries"] == 5000
        assert len(events) == 3


class TestSourceErrors:
    def test_errors_collected_and_pipeline_continues(self, journal_reader):
        diag = diagnostic_record("[dmesg timeout] Failed to collect kernel logs")
        kernel = _reader([diag], last_error=diag.message)
        collector = LogCollector(journal_reader=journal_reader, kernel_reader=kernel)

        events = collector.collect_all()

        assert collector.last_errors == [diag.message]
        assert any(e.unit == "kernel-log-collector" for e in events)
        assert len(events) == 3

    def test_errors_reset_each_pass(self, journal_reader):
        kernel = _reader([], last_error="dmesg broke")
        collector = LogCollector(journal_reader=journal_reader, kernel_reader=kernel)
        collector.collect_all()
        kernel.last_error = None
        collector.collect_all()
        assert collector.last_errors == []

    def test_both_sources_down(self):
        collector = LogCollector(
            journal_reader=_reader([], last_error="journalctl not found"),
            kernel_reader=_reader([], last_error="dmesg unavailable"),
        )
        assert collector.collect_all() == []
        assert collector.last_errors == ["journalctl not found", "dmesg unavailable"]


class TestDefaults:
    def test_builds_readers_from_config(self):
        config = ErrorSurfaceConfig(
            journal_command="/opt/journalctl", kernel_log_command="/opt/dmesg",
            kernel_log_use_sudo=False, _env_file=None,
        )
        collector = LogCollector(config=config)
        assert collector._journal.build_args(NOW)[0] == "/opt/journalctl"
        assert collector._kernel.build_args()[0] == "/opt/dmesg"

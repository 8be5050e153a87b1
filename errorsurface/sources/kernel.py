"""Kernel ring buffer reader.

Runs ``dmesg`` restricted to emerg..warn with ISO timestamps. Reading the ring
buffer usually needs root, so an unprivileged process goes through
``sudo -n`` (non-interactive: it fails rather than prompting). A kernel
source that cannot be read is reported as a single diagnostic record so the
degraded state is visible next to the real events.
"""

import os
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..models.entities import TRANSPORT_COLLECTOR
from ..utils.logging import get_logger

logger = get_logger("sources.kernel")

DMESG_LEVELS = "emerg,alert,crit,err,warn"

LEVEL_PRIORITIES = {
    "emerg": 0,
    "emergency": 0,
    "alert": 1,
    "crit": 2,
    "critical": 2,
    "err": 3,
    "error": 3,
    "warn": 4,
    "warning": 4,
}
DEFAULT_PRIORITY = 3

DIAGNOSTIC_UNIT = "kernel-log-collector"

ISO_LINE_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[.,]\d+[+-]\d{2}:?\d{2})\s+(.+)$"
)
LEVEL_TAG_RE = re.compile(r"^\[\s*(\w+)\s*\]\s*(.*)$")


@dataclass
class RawKernelRecord:
    """One kernel log line (or a collector diagnostic), before normalization."""

    timestamp: datetime
    message: str
    level: str = ""
    unit: str = ""
    transport: str = ""

    @property
    def priority(self) -> int:
        return LEVEL_PRIORITIES.get(self.level, DEFAULT_PRIORITY)


def parse_iso_timestamp(text: str) -> Optional[datetime]:
    try:
        return datetime.strptime(text.replace(",", "."), "%Y-%m-%dT%H:%M:%S.%f%z")
    except ValueError:
        return None


def parse_dmesg_line(line: str, since: datetime) -> Optional[RawKernelRecord]:
    """Parse one ``dmesg --time-format=iso`` line.

    Returns None when the line has no parseable timestamp or predates
    ``since``. A leading bracketed tag is always stripped from the message;
    it sets the priority when it names a level and leaves the default (err)
    otherwise, so ``[drm] GPU hang`` becomes an err-level ``GPU hang``.
    """
    match = ISO_LINE_RE.match(line.strip())
    if not match:
        return None
    timestamp = parse_iso_timestamp(match.group(1))
    if timestamp is None or timestamp < since:
        return None

    rest = match.group(2)
    level = ""
    message = rest
    tag = LEVEL_TAG_RE.match(rest)
    if tag:
        level = tag.group(1).lower()
        message = tag.group(2)

    return RawKernelRecord(timestamp=timestamp.astimezone(timezone.utc), message=message, level=level)


def diagnostic_record(message: str) -> RawKernelRecord:
    return RawKernelRecord(
        timestamp=datetime.now(timezone.utc),
        message=message,
        level="warn",
        unit=DIAGNOSTIC_UNIT,
        transport=TRANSPORT_COLLECTOR,
    )


class KernelLogReader:
    """Collects emerg..warn kernel messages newer than a given instant."""

    def __init__(self, command: str = "dmesg", use_sudo: bool = True, timeout: int = 15):
        self._command = command
        self._use_sudo = use_sudo
        self._timeout = timeout
        self.last_error: Optional[str] = None

    def build_args(self) -> list[str]:
        args = [self._command, f"--level={DMESG_LEVELS}", "--time-format=iso"]
        if self._use_sudo and os.geteuid() != 0:
            return ["sudo", "-n", *args]
        return args

    def read(self, since: datetime) -> list[RawKernelRecord]:
        """Return parsed kernel records, or one diagnostic record if dmesg failed."""
        self.last_error = None
        args = self.build_args()
        try:
            result = self._run_cmd(args)
        except subprocess.TimeoutExpired:
            return self._degraded(
                f"[dmesg timeout] Failed to collect kernel logs within {self._timeout}s. "
                "Run with sudo or add the user to the 'adm' group."
            )
        except OSError as e:
            return self._degraded(f"[dmesg unavailable] {args[0]}: {e.strerror or e}")

        if result.returncode != 0:
            stderr = (result.stderr or "").strip() or f"exit code {result.returncode}"
            return self._degraded(
                f"[dmesg unavailable] {stderr}. Add to 'adm' group: sudo usermod -aG adm $USER"
            )

        records = []
        for line in result.stdout.splitlines():
            record = parse_dmesg_line(line, since)
            if record is not None:
                records.append(record)
        logger.debug("kernel_log_read", collected=len(records))
        return records

    def _degraded(self, message: str) -> list[RawKernelRecord]:
        self.last_error = message
        logger.warning("kernel_log_unavailable", error=message)
        return [diagnostic_record(message)]

    def _run_cmd(self, args: list[str]) -> subprocess.CompletedProcess:
        """Execute dmesg with an argument list (never shell=True)."""
        return subprocess.run(
            args,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=self._timeout,
            stdin=subprocess.DEVNULL,
        )

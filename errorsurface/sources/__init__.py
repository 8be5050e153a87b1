"""Log source readers."""

from .journal import JournalReader, RawJournalRecord
from .kernel import KernelLogReader, RawKernelRecord

__all__ = [
    "JournalReader",
    "KernelLogReader",
    "RawJournalRecord",
    "RawKernelRecord",
]

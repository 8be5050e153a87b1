"""Collection pipeline: normalization and batch assembly."""

from .collector import LogCollector
from .normalizer import normalize, normalize_journal_record, normalize_kernel_record

__all__ = ["LogCollector", "normalize", "normalize_journal_record", "normalize_kernel_record"]

"""error-surface: journal and kernel log threat surface with a deduplicated event store."""

__version__ = "1.0.0"

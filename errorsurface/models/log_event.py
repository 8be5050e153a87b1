"""Stored log event model."""

from typing import Optional

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class LogEventRow(Base):
    """One row per unique log occurrence.

    ``fingerprint`` is the SHA-256 of (event second, unit, message).
    ``expires_at`` is fixed when the row is inserted, using the retention
    that was active then; later retention changes never touch it.
    """

    __tablename__ = "log_events"
    __table_args__ = (
        Index("idx_expires", "expires_at"),
        Index("idx_timestamp", "event_timestamp"),
        Index("idx_severity_group", "severity_group"),
        Index("idx_unit", "unit"),
    )

    fingerprint: Mapped[str] = mapped_column(String(64), primary_key=True)
    event_timestamp: Mapped[int] = mapped_column(Integer, nullable=False)  # epoch seconds
    expires_at: Mapped[int] = mapped_column(Integer, nullable=False)  # epoch seconds
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    severity_group: Mapped[str] = mapped_column(String(16), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pid: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    exe: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cmdline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hostname: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    boot_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    message_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    transport: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    cursor: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    threat_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_threat_sev: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    threat_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

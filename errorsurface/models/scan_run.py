"""Audit trail of batch upserts."""

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ScanRun(Base):
    __tablename__ = "scan_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_at: Mapped[int] = mapped_column(Integer, nullable=False)  # epoch seconds
    new_events: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    scan_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0 for live polls

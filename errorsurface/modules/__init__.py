"""Background workers."""

from .base_module import BaseModule
from .live_monitor import LiveMonitor
from .scan_worker import ScanWorker

__all__ = ["BaseModule", "LiveMonitor", "ScanWorker"]

"""Event persistence and reconciliation."""

from .event_store import EventStore, compute_fingerprint
from .reconciler import MergeReconciler
from .threat_codec import decode_threats, encode_threats

__all__ = [
    "EventStore",
    "MergeReconciler",
    "compute_fingerprint",
    "decode_threats",
    "encode_threats",
]

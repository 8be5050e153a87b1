"""Threat classification."""

from .threat_classifier import SIGNATURES, ThreatClassifier, ThreatSignature, detect_threats

__all__ = ["SIGNATURES", "ThreatClassifier", "ThreatSignature", "detect_threats"]

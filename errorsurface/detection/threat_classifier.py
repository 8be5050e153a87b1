"""Signature-based threat classification for log messages.

A fixed, ordered library of signature groups covering authentication
failures, privilege escalation, hostile network activity, tampering with
system files, crashes, resource exhaustion, MAC denials and malware. Each
group is a list of case-insensitive regular expressions tried in order;
the first one that matches produces that group's single ThreatMatch.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ..models.entities import ThreatMatch, max_threat_severity
from ..utils.logging import get_logger

logger = get_logger("detection.threat_classifier")


@dataclass(frozen=True)
class ThreatSignature:
    """A signature group: one threat type, several alternative patterns."""

    id: str
    severity: str  # critical / high / medium / low
    category: str
    description: str
    patterns: tuple[str, ...]


SIGNATURES: tuple[ThreatSignature, ...] = (
    ThreatSignature(
        id="auth_failure",
        severity="high",
        category="Authentication",
        description="Failed authentication attempt",
        patterns=(
            r"authentication failure",
            r"failed password",
            r"invalid user",
            r"failed login",
            r"authentication error",
            r"pam_unix.*auth.*failure",
            r"failed publickey",
            r"connection closed by.*\[preauth\]",
            r"disconnected.*\[preauth\]",
        ),
    ),
    ThreatSignature(
        id="privilege_escalation",
        severity="critical",
        category="Privilege",
        description="Privilege escalation attempt or suspicious sudo activity",
        patterns=(
            r"sudo:.*command not allowed",
            r"sudo:.*incorrect password",
            r"su:.*authentication failure",
            r"granted sudo",
            r"became root",
            r"pkexec.*not authorized",
        ),
    ),
    ThreatSignature(
        id="suspicious_network",
        severity="high",
        category="Network",
        description="Suspicious network activity detected",
        patterns=(
            r"port scan",
            r"syn flood",
            r"ddos",
            r"connection refused.*repeated",
            r"firewall.*blocked",
            r"iptables.*drop",
            r"refused connect from",
            r"possible break-in attempt",
        ),
    ),
    ThreatSignature(
        id="filesystem_tampering",
        severity="critical",
        category="Filesystem",
        description="Critical system file modification",
        patterns=(
            r"/etc/passwd.*modified",
            r"/etc/shadow.*modified",
            r"audit.*\bwrite\b.*/etc/",
            r"changed.*/etc/sudoers",
            r"inode.*changed",
            r"file.*removed unexpectedly",
        ),
    ),
    ThreatSignature(
        id="service_crash",
        severity="medium",
        category="Stability",
        description="Service crash or kernel panic",
        patterns=(
            r"segmentation fault",
            r"core dumped",
            r"killed by signal",
            r"abnormal termination",
            r"panic",
            r"oops",
            r"bug:",
        ),
    ),
    ThreatSignature(
        id="resource_exhaustion",
        severity="high",
        category="Resources",
        description="Resource exhaustion detected",
        patterns=(
            r"out of memory",
            r"oom-killer",
            r"no space left",
            r"disk.*full",
            r"too many open files",
            r"resource temporarily unavailable",
            r"cannot allocate memory",
        ),
    ),
    ThreatSignature(
        id="selinux_violation",
        severity="medium",
        category="SELinux",
        description="SELinux policy violation",
        patterns=(
            r"avc:.*denied",
            r"selinux.*denied",
            r"type=avc",
        ),
    ),
    ThreatSignature(
        id="malware_indicator",
        severity="critical",
        category="Malware",
        description="Potential malware or rootkit detected",
        patterns=(
            r"rootkit",
            r"trojan",
            r"malware",
            r"backdoor",
            r"suspicious.*binary",
            r"unknown.*process.*root",
        ),
    ),
)


class ThreatClassifier:
    """Stateless matcher over an ordered signature library."""

    def __init__(self, signatures: Optional[Sequence[ThreatSignature]] = None):
        self.signatures: tuple[ThreatSignature, ...] = tuple(signatures if signatures is not None else SIGNATURES)
        self._compiled: list[tuple[ThreatSignature, list[tuple[str, re.Pattern]]]] = []
        for signature in self.signatures:
            compiled = []
            for pattern in signature.patterns:
                try:
                    compiled.append((pattern, re.compile(pattern, re.IGNORECASE)))
                except re.error as e:
                    logger.warning("invalid_signature_pattern", signature=signature.id, pattern=pattern, error=str(e))
            self._compiled.append((signature, compiled))

    def detect(self, message: str, unit: str = "") -> list[ThreatMatch]:
        """Return at most one match per signature group, in library order.

        ``unit`` is accepted for signatures keyed on the emitting service;
        the built-in library looks at the message only.
        """
        lowered = (message or "").lower()
        matches: list[ThreatMatch] = []
        for signature, patterns in self._compiled:
            for pattern, regex in patterns:
                if regex.search(lowered):
                    matches.append(ThreatMatch(
                        id=signature.id,
                        severity=signature.severity,
                        category=signature.category,
                        description=signature.description,
                        pattern=pattern,
                    ))
                    break
        return matches


_default_classifier = ThreatClassifier()


def detect_threats(message: str, unit: str = "") -> list[ThreatMatch]:
    """Classify ``message`` against the built-in signature library."""
    return _default_classifier.detect(message, unit)


__all__ = [
    "SIGNATURES",
    "ThreatClassifier",
    "ThreatSignature",
    "detect_threats",
    "max_threat_severity",
]

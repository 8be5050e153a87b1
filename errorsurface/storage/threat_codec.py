"""Threat list <-> JSON text for the ``threat_json`` column."""

import json
from typing import Optional, Sequence

from ..models.entities import ThreatMatch
from ..utils.logging import get_logger

logger = get_logger("storage.threat_codec")

THREAT_KEYS = ("id", "severity", "category", "description", "pattern")


def encode_threats(threats: Sequence[ThreatMatch]) -> str:
    return json.dumps(
        [{key: getattr(t, key) for key in THREAT_KEYS} for t in threats],
        ensure_ascii=False,
    )


def decode_threats(text: Optional[str]) -> list[ThreatMatch]:
    """Parse a stored threat array. Missing keys become empty strings.

    Malformed text is logged and yields an empty list rather than failing
    the whole load.
    """
    if not text:
        return []
    try:
        items = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("threat_json_malformed", error=str(e))
        return []
    if not isinstance(items, list):
        logger.warning("threat_json_malformed", error="expected a JSON array")
        return []

    threats = []
    for item in items:
        if not isinstance(item, dict):
            continue
        threats.append(ThreatMatch(**{key: str(item.get(key) or "") for key in THREAT_KEYS}))
    return threats

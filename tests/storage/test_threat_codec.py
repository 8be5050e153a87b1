"""Tests for threat list serialization."""

import json

from errorsurface.models.entities import ThreatMatch
from errorsurface.storage.threat_codec import decode_threats, encode_threats


class TestEncode:
    def test_empty_list(self):
        assert encode_threats([]) == "[]"

    def test_quotes_escaped(self):
        threat = ThreatMatch(id="x", severity="low", category="C", description='say "hi"', pattern=r"a\"b")
        data = json.loads(encode_threats([threat]))
        assert data[0]["description"] == 'say "hi"'
        assert data[0]["pattern"] == r"a\"b"

    def test_keys(self):
        threat = ThreatMatch(id="auth_failure", severity="high", category="Authentication", description="d", pattern="p")
        assert json.loads(encode_threats([threat])) == [{
            "id": "auth_failure", "severity": "high", "category": "Authentication",
            "description": "d", "pattern": "p",
        }]


class TestDecode:
    def test_preserves_order(self):
        threats = [
            ThreatMatch(id="a", severity="high", category="A", description="first"),
            ThreatMatch(id="b", severity="critical", category="B", description="second"),
        ]
        assert decode_threats(encode_threats(threats)) == threats

    def test_missing_keys_default_empty(self):
        (threat,) = decode_threats('[{"id": "auth_failure", "severity": "high"}]')
        assert threat.category == ""
        assert threat.pattern == ""

    def test_malformed_text(self):
        assert decode_threats("[{not json") == []

    def test_non_array(self):
        assert decode_threats('{"id": "x"}') == []

    def test_none_and_empty(self):
        assert decode_threats(None) == []
        assert decode_threats("") == []

    def test_non_object_items_skipped(self):
        assert len(decode_threats('[1, "x", {"id": "ok"}]')) == 1

"""
Tests for invite tokens and the metrics collector.
"""

import hashlib
import re

from app.core.metrics import MetricsCollector
from app.core.tokens import build_join_url, generate_token, generate_token_pair, hash_token


class TestTokens:
    def test_token_is_urlsafe_without_padding(self):
        token = generate_token()
        assert re.fullmatch(r"[A-Za-z0-9_-]+", token)
        assert len(token) == 43  # 32 bytes, base64url, unpadded

    def test_tokens_are_unique(self):
        assert len({generate_token() for _ in range(50)}) == 50

    def test_hash_is_sha256_hex(self):
        assert hash_token("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_hash_at_creation_matches_hash_at_redemption(self):
        token, stored_hash = generate_token_pair()
        presented = str(token)
        assert hash_token(presented) == stored_hash
        assert stored_hash != token

    def test_join_url(self):
        assert build_join_url("https://app.example.com/", "tok") == (
            "https://app.example.com/join?token=tok"
        )


class TestMetricsCollector:
    def test_counters_with_labels(self):
        collector = MetricsCollector()
        collector.inc("invites_accepted_total", source="invitation")
        collector.inc("invites_accepted_total", source="invitation")
        collector.inc("invites_accepted_total", source="invite_link")
        assert collector.get("invites_accepted_total", source="invitation") == 2
        assert collector.get("invites_accepted_total", source="invite_link") == 1
        assert collector.get("invites_accepted_total", source="other") == 0

    def test_prometheus_exposition(self):
        collector = MetricsCollector()
        collector.inc("role_changes_total")
        collector.inc("access_resolutions_total", state="ready")
        text = collector.to_prometheus()
        assert "# TYPE studiodesk_role_changes_total counter" in text
        assert "studiodesk_role_changes_total 1" in text
        assert 'studiodesk_access_resolutions_total{state="ready"} 1' in text
        assert "studiodesk_uptime_seconds" in text

    def test_reset(self):
        collector = MetricsCollector()
        collector.inc("role_changes_total")
        collector.reset()
        assert collector.get("role_changes_total") == 0

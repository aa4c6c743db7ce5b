"""Tests for webhook signing and verification."""
import re

import pytest

from publisher_royalties.services.webhook_signing import derive_signing_key, parse_signature, sign, verify

NOW = 1_700_000_000
PAYLOAD = '{"event":"statement.generated","id":"st_123"}'


@pytest.fixture
def key():
    return derive_signing_key("sub_1", server_secret="server-secret")


class TestSigningKey:

    def test_deterministic(self):
        assert derive_signing_key("sub_1", "s") == derive_signing_key("sub_1", "s")

    def test_depends_on_subscription_and_secret(self):
        assert derive_signing_key("sub_1", "s") != derive_signing_key("sub_2", "s")
        assert derive_signing_key("sub_1", "s") != derive_signing_key("sub_1", "t")

    def test_hex_sha256(self):
        assert re.fullmatch(r"[0-9a-f]{64}", derive_signing_key("sub_1", "s"))

    def test_uses_configured_secret_by_default(self):
        from publisher_royalties.core.config import settings

        assert derive_signing_key("sub_1") == derive_signing_key("sub_1", settings.WEBHOOK_SIGNING_KEY)


class TestSign:

    def test_header_format(self, key):
        assert re.fullmatch(r"t=1700000000,v1=[0-9a-f]{64}", sign(PAYLOAD, key, NOW))

    def test_bytes_and_str_payloads_match(self, key):
        assert sign(PAYLOAD, key, NOW) == sign(PAYLOAD.encode(), key, NOW)

    def test_parse_signature(self, key):
        timestamp, digest = parse_signature(sign(PAYLOAD, key, NOW))

        assert timestamp == NOW
        assert len(digest) == 64


class TestVerify:

    def test_round_trip(self, key):
        assert verify(PAYLOAD, sign(PAYLOAD, key, NOW), key, now=NOW)

    def test_round_trip_with_current_time(self, key):
        assert verify(PAYLOAD, sign(PAYLOAD, key), key)

    def test_tampered_payload(self, key):
        signature = sign(PAYLOAD, key, NOW)

        assert not verify(PAYLOAD.replace("st_123", "st_999"), signature, key, now=NOW)

    def test_wrong_key(self, key):
        signature = sign(PAYLOAD, key, NOW)

        assert not verify(PAYLOAD, signature, derive_signing_key("sub_2", "server-secret"), now=NOW)

    def test_timestamp_at_tolerance_edge(self, key):
        signature = sign(PAYLOAD, key, NOW)

        assert verify(PAYLOAD, signature, key, tolerance_seconds=300, now=NOW + 300)
        assert not verify(PAYLOAD, signature, key, tolerance_seconds=300, now=NOW + 301)

    def test_future_timestamp_outside_tolerance(self, key):
        signature = sign(PAYLOAD, key, NOW + 1000)

        assert not verify(PAYLOAD, signature, key, now=NOW)

    def test_altered_timestamp(self, key):
        digest = parse_signature(sign(PAYLOAD, key, NOW))[1]

        assert not verify(PAYLOAD, f"t={NOW + 1},v1={digest}", key, now=NOW)

    def test_custom_tolerance(self, key):
        signature = sign(PAYLOAD, key, NOW)

        assert not verify(PAYLOAD, signature, key, tolerance_seconds=10, now=NOW + 11)

    @pytest.mark.parametrize("signature", [
        "",
        "garbage",
        "t=abc,v1=deadbeef",
        "v1=deadbeef",
        f"t={NOW}",
        f"t={NOW},v1=",
        "t=\u00b2,v1=deadbeef",
        f"t={NOW},v1=\u00e9\u00e9\u00e9",
        f"t={NOW},v1={'A' * 64}",
        None,
    ])
    def test_malformed_signature_is_false(self, key, signature):
        assert verify(PAYLOAD, signature, key, now=NOW) is False

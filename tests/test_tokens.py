"""Tests for towel_tracker.core.tokens — HS256 magic links and sessions."""

from urllib.parse import parse_qs, urlparse

import jwt

from towel_tracker.core.tokens import build_magic_link, issue_token, verify_token

SECRET = "unit-test-secret-with-at-least-thirty-two-bytes"
T0 = 1_700_000_000


class TestIssueAndVerify:
    def test_valid_token(self):
        token = issue_token(123, 60, SECRET, now=T0)
        payload = verify_token(token, SECRET, now=T0 + 30)
        assert payload is not None
        assert payload.subject == "123"
        assert payload.issued_at == T0
        assert payload.expires_at == T0 + 60

    def test_valid_at_exact_expiry(self):
        token = issue_token(123, 60, SECRET, now=T0)
        assert verify_token(token, SECRET, now=T0 + 60) is not None

    def test_expired_one_second_later(self):
        token = issue_token(123, 60, SECRET, now=T0)
        assert verify_token(token, SECRET, now=T0 + 61) is None

    def test_negative_ttl_is_already_expired(self):
        token = issue_token(123, -1, SECRET, now=T0)
        assert verify_token(token, SECRET, now=T0) is None

    def test_wrong_secret(self):
        token = issue_token(123, 60, SECRET, now=T0)
        assert verify_token(token, SECRET + "-other", now=T0) is None

    def test_flipped_signature_character(self):
        token = issue_token(123, 60, SECRET, now=T0)
        header, body, sig = token.split(".")
        i = len(sig) // 2
        flipped = sig[:i] + ("A" if sig[i] != "A" else "B") + sig[i + 1:]
        assert verify_token(f"{header}.{body}.{flipped}", SECRET, now=T0) is None

    def test_last_signature_character_variants_rejected(self):
        token = issue_token(123, 60, SECRET, now=T0)
        header, body, sig = token.split(".")
        for ch in "AEIMQUYcgkosw048":
            if ch == sig[-1]:
                continue
            assert verify_token(f"{header}.{body}.{sig[:-1]}{ch}", SECRET, now=T0) is None

    def test_tampered_payload(self):
        token = issue_token(123, 60, SECRET, now=T0)
        other = issue_token(999, 60, SECRET + "-other", now=T0)
        header, _, sig = token.split(".")
        forged_body = other.split(".")[1]
        assert verify_token(f"{header}.{forged_body}.{sig}", SECRET, now=T0) is None

    def test_missing_exp_rejected(self):
        token = jwt.encode({"sub": "1", "iat": T0}, SECRET, algorithm="HS256")
        assert verify_token(token, SECRET, now=T0) is None

    def test_garbage_and_empty(self):
        assert verify_token("", SECRET) is None
        assert verify_token("not-a-token", SECRET) is None
        assert verify_token("a.b.c", SECRET) is None

    def test_empty_secret_never_verifies(self):
        token = issue_token(123, 60, SECRET, now=T0)
        assert verify_token(token, "", now=T0) is None


class TestMagicLink:
    def test_disabled_without_public_url(self):
        assert build_magic_link("", 5, 900, SECRET) == ""

    def test_link_carries_verifiable_token(self):
        link = build_magic_link("https://towels.example/", 5, 900, SECRET, now=T0)
        parsed = urlparse(link)
        assert parsed.scheme == "https"
        assert parsed.netloc == "towels.example"
        assert parsed.path == "/login"
        token = parse_qs(parsed.query)["token"][0]
        payload = verify_token(token, SECRET, now=T0 + 899)
        assert payload.subject == "5"
        assert verify_token(token, SECRET, now=T0 + 901) is None

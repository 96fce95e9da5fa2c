"""
Tests for upload policy issuance and verification.
"""
import base64
import json
from datetime import timedelta

import pytest

from filegate.storage.errors import (
    InvalidArgumentError,
    InvalidPolicyError,
    PolicyExpiredError,
)
from filegate.storage.policy import (
    PolicyIssuer,
    canonicalize,
    validate_callback_url,
)


def _open_envelope(policy: str) -> dict:
    return json.loads(base64.urlsafe_b64decode(policy.encode("ascii")))


def _seal_envelope(envelope: dict) -> str:
    return base64.urlsafe_b64encode(canonicalize(envelope)).decode("ascii")


class TestPolicyIssue:
    """Tests for PolicyIssuer.issue()."""

    def test_issue_and_decode_scenario(self, policy_issuer: PolicyIssuer):
        """Issued policy decodes back to the requested path and body."""
        policy = policy_issuer.issue("a/b.png", "https://cb.example/done", "id=42")

        assert isinstance(policy, str)
        assert policy

        document = policy_issuer.decode(policy)
        assert document.key == "a/b.png"
        assert document.callback.body == "id=42"
        assert document.callback.url == "https://cb.example/done"

    def test_expiration_uses_ttl(self, frozen_clock):
        """Expiration is issue time plus the configured TTL."""
        issuer = PolicyIssuer(secret="s3cret", ttl_seconds=120, clock=frozen_clock)
        document = issuer.decode(issuer.issue("a/b.png", "https://cb.example/done", "id=42"))

        assert document.expiration == frozen_clock.now + timedelta(seconds=120)

    def test_issue_is_deterministic(self, frozen_clock):
        """Same inputs at the same instant produce the same policy."""
        issuer = PolicyIssuer(secret="s3cret", clock=frozen_clock)

        first = issuer.issue("a/b.png", "https://cb.example/done", "id=42")
        second = issuer.issue("a/b.png", "https://cb.example/done", "id=42")

        assert first == second

    def test_callback_body_passed_through_verbatim(self, policy_issuer: PolicyIssuer):
        """Callback body is not interpreted, even when it looks like JSON."""
        body = '{"bucket":${bucket},"object":${object}} ünïcødé & id=1'
        document = policy_issuer.decode(
            policy_issuer.issue("a/b.png", "https://cb.example/done", body)
        )

        assert document.callback.body == body

    def test_extra_conditions_and_size_limit(self, frozen_clock):
        """Backend conditions and the size limit are embedded in the document."""
        issuer = PolicyIssuer(secret="s3cret", max_upload_bytes=1024, clock=frozen_clock)
        document = issuer.decode(
            issuer.issue(
                "a/b.png",
                "https://cb.example/done",
                "id=42",
                conditions={"bucket": "media"},
            )
        )

        assert document.conditions == {
            "bucket": "media",
            "content_length_range": [0, 1024],
        }

    def test_secret_not_in_policy(self, policy_issuer: PolicyIssuer):
        """Neither the encoded policy nor the envelope carries the secret."""
        policy = policy_issuer.issue("a/b.png", "https://cb.example/done", "id=42")

        assert "test-policy-secret" not in policy
        assert "test-policy-secret" not in json.dumps(_open_envelope(policy))
        assert "test-policy-secret" not in repr(policy_issuer)

    @pytest.mark.parametrize(
        "remote_path,callback_url,callback_body",
        [
            ("", "https://cb.example/done", "id=42"),
            ("a/b.png", "", "id=42"),
            ("a/b.png", "https://cb.example/done", ""),
            ("a/b.png", "not a url", "id=42"),
            ("a/b.png", "/relative/path", "id=42"),
            ("a/b.png", "ftp://cb.example/done", "id=42"),
            ("a/b.png", "https://", "id=42"),
            ("a/b.png", "https://cb.example:99999/done", "id=42"),
        ],
    )
    def test_invalid_input_rejected(
        self, policy_issuer: PolicyIssuer, remote_path, callback_url, callback_body
    ):
        """Malformed input raises InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            policy_issuer.issue(remote_path, callback_url, callback_body)

    def test_constructor_rejects_bad_configuration(self):
        """Missing secret or non-positive limits are configuration errors."""
        with pytest.raises(ValueError):
            PolicyIssuer(secret="")
        with pytest.raises(ValueError):
            PolicyIssuer(secret="s3cret", ttl_seconds=0)
        with pytest.raises(ValueError):
            PolicyIssuer(secret="s3cret", max_upload_bytes=-1)


class TestPolicyDecode:
    """Tests for PolicyIssuer.decode() integrity checks."""

    @pytest.mark.parametrize(
        "field,value",
        [
            ("key", "a/other.png"),
            ("expiration", "2099-01-01T00:00:00Z"),
            ("conditions", {"content_length_range": [0, 10 ** 12]}),
        ],
    )
    def test_tampered_document_rejected(self, policy_issuer: PolicyIssuer, field, value):
        """Changing any document field after issuance breaks the signature."""
        envelope = _open_envelope(
            policy_issuer.issue("a/b.png", "https://cb.example/done", "id=42")
        )
        envelope["document"][field] = value

        with pytest.raises(InvalidPolicyError, match="signature"):
            policy_issuer.decode(_seal_envelope(envelope))

    def test_tampered_callback_rejected(self, policy_issuer: PolicyIssuer):
        """Redirecting the callback breaks the signature."""
        envelope = _open_envelope(
            policy_issuer.issue("a/b.png", "https://cb.example/done", "id=42")
        )
        envelope["document"]["callback"]["url"] = "https://evil.example/steal"

        with pytest.raises(InvalidPolicyError):
            policy_issuer.decode(_seal_envelope(envelope))

    def test_tampered_signature_rejected(self, policy_issuer: PolicyIssuer):
        envelope = _open_envelope(
            policy_issuer.issue("a/b.png", "https://cb.example/done", "id=42")
        )
        envelope["signature"] = base64.b64encode(b"\x00" * 32).decode("ascii")

        with pytest.raises(InvalidPolicyError):
            policy_issuer.decode(_seal_envelope(envelope))

    def test_other_secret_rejected(self, policy_issuer: PolicyIssuer):
        """A policy signed with a different secret does not verify."""
        policy = PolicyIssuer(secret="other-secret").issue(
            "a/b.png", "https://cb.example/done", "id=42"
        )

        with pytest.raises(InvalidPolicyError):
            policy_issuer.decode(policy)

    @pytest.mark.parametrize(
        "policy",
        ["", "%%%not-base64%%%", base64.urlsafe_b64encode(b"not json").decode(), base64.urlsafe_b64encode(b"[1,2]").decode()],
    )
    def test_malformed_policy_rejected(self, policy_issuer: PolicyIssuer, policy):
        with pytest.raises(InvalidPolicyError):
            policy_issuer.decode(policy)

    def test_malformed_document_with_valid_signature_rejected(self, policy_issuer: PolicyIssuer):
        """A correctly signed document missing fields is still rejected."""
        document = {"version": 1, "key": "a/b.png"}
        envelope = {"document": document, "signature": policy_issuer.sign(canonicalize(document))}

        with pytest.raises(InvalidPolicyError, match="Malformed"):
            policy_issuer.decode(_seal_envelope(envelope))

    def test_expired_policy_rejected(self, frozen_clock):
        """Policies are rejected once the TTL has elapsed."""
        issuer = PolicyIssuer(secret="s3cret", ttl_seconds=60, clock=frozen_clock)
        policy = issuer.issue("a/b.png", "https://cb.example/done", "id=42")

        frozen_clock.now += timedelta(seconds=61)

        with pytest.raises(PolicyExpiredError):
            issuer.decode(policy)
        # Signature is still intact when expiry is not enforced
        assert issuer.decode(policy, verify_expiration=False).key == "a/b.png"


class TestCallbackUrl:
    """Tests for callback URL validation."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://cb.example/done",
            "http://localhost:8080/callback?x=1",
            "https://10.0.0.5/hooks/upload",
        ],
    )
    def test_valid_urls(self, url):
        assert validate_callback_url(url) == url

    @pytest.mark.parametrize("url", ["https://cb.example/do ne", "mailto:ops@cb.example", "cb.example/done"])
    def test_invalid_urls(self, url):
        with pytest.raises(InvalidArgumentError):
            validate_callback_url(url)

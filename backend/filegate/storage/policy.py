"""
Upload policy issuance and verification.

A policy authorizes one direct client upload to a fixed key. Flow:
1. Gateway validates the request and builds a policy document
   (target key, expiration, callback instruction, extra conditions)
2. Document is serialized canonically and signed with HMAC-SHA256
3. Document + signature are wrapped in a JSON envelope and base64 encoded
4. Client presents the opaque string to the storage backend, which
   verifies it (decode()) before accepting the upload and firing the callback

The secret never appears in the policy; only the MAC derived from it does.
"""
import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlparse

from filegate.storage.errors import (
    InvalidArgumentError,
    InvalidPolicyError,
    PolicyExpiredError,
)

POLICY_VERSION = 1
EXPIRATION_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
ALLOWED_CALLBACK_SCHEMES = ("http", "https")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CallbackInstruction:
    """Where the backend posts after a direct upload, and what it sends."""
    url: str
    body: str


@dataclass(frozen=True)
class PolicyDocument:
    """Decoded, verified policy contents."""
    key: str
    expiration: datetime
    callback: CallbackInstruction
    conditions: Dict[str, Any] = field(default_factory=dict)
    version: int = POLICY_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "key": self.key,
            "expiration": self.expiration.strftime(EXPIRATION_FORMAT),
            "callback": {"url": self.callback.url, "body": self.callback.body},
            "conditions": dict(self.conditions),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PolicyDocument":
        try:
            callback = data["callback"]
            conditions = data.get("conditions", {})
            if not isinstance(callback, dict) or not isinstance(conditions, dict):
                raise TypeError("callback and conditions must be objects")
            expiration = datetime.strptime(
                data["expiration"], EXPIRATION_FORMAT
            ).replace(tzinfo=timezone.utc)
            return cls(
                key=str(data["key"]),
                expiration=expiration,
                callback=CallbackInstruction(
                    url=str(callback["url"]), body=str(callback["body"])
                ),
                conditions=conditions,
                version=int(data["version"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPolicyError(f"Malformed policy document: {e}") from e

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or _utc_now()) >= self.expiration


def canonicalize(document: Mapping[str, Any]) -> bytes:
    """Serialize with stable key order and no whitespace so signing is reproducible."""
    return json.dumps(
        document, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def validate_callback_url(callback_url: str) -> str:
    """
    Require an absolute http(s) URL with a host.

    Raises:
        InvalidArgumentError: If the URL is empty or not absolute
    """
    if not callback_url:
        raise InvalidArgumentError("callbackURL must not be empty")
    if any(c.isspace() for c in callback_url):
        raise InvalidArgumentError("callbackURL must not contain whitespace")
    try:
        parsed = urlparse(callback_url)
        # Accessing port validates it
        parsed.port
    except ValueError as e:
        raise InvalidArgumentError(f"callbackURL is not a valid URI: {e}") from e
    if parsed.scheme.lower() not in ALLOWED_CALLBACK_SCHEMES or not parsed.hostname:
        raise InvalidArgumentError(
            "callbackURL must be an absolute http(s) URL"
        )
    return callback_url


class PolicyIssuer:
    """
    Builds and verifies signed upload policies.

    Immutable after construction and safe to share across threads.
    """

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = 300,
        max_upload_bytes: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            secret: HMAC key held by the backend configuration
            ttl_seconds: Lifetime of issued policies; keep short to bound
                misuse of a leaked policy
            max_upload_bytes: Optional upper bound added as a
                content_length_range condition
            clock: Returns the current UTC time (injectable for tests)
        """
        if not secret:
            raise ValueError("Policy signing secret is not configured")
        if ttl_seconds <= 0:
            raise ValueError("Policy TTL must be positive")
        if max_upload_bytes is not None and max_upload_bytes <= 0:
            raise ValueError("Policy max upload size must be positive")
        self._secret = secret.encode("utf-8")
        self.ttl_seconds = ttl_seconds
        self.max_upload_bytes = max_upload_bytes
        self._clock = clock or _utc_now

    def __repr__(self) -> str:
        return (
            f"PolicyIssuer(ttl_seconds={self.ttl_seconds}, "
            f"max_upload_bytes={self.max_upload_bytes})"
        )

    def validate_request(self, remote_path: str, callback_url: str, callback_body: str):
        """Raise InvalidArgumentError unless all three inputs are usable."""
        if not remote_path:
            raise InvalidArgumentError("remoteFilePath must not be empty")
        validate_callback_url(callback_url)
        if not callback_body:
            raise InvalidArgumentError("callbackBody must not be empty")

    def sign(self, payload: bytes) -> str:
        mac = hmac.new(self._secret, payload, hashlib.sha256).digest()
        return base64.b64encode(mac).decode("ascii")

    def issue(
        self,
        remote_path: str,
        callback_url: str,
        callback_body: str,
        conditions: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Build, sign and encode a policy.

        The callback body is passed through uninterpreted.

        Returns:
            urlsafe base64 of {"document": ..., "signature": ...}

        Raises:
            InvalidArgumentError: If any input is malformed
        """
        self.validate_request(remote_path, callback_url, callback_body)

        merged_conditions: Dict[str, Any] = dict(conditions or {})
        if self.max_upload_bytes is not None:
            merged_conditions["content_length_range"] = [0, self.max_upload_bytes]

        expiration = (self._clock() + timedelta(seconds=self.ttl_seconds)).replace(
            microsecond=0
        )
        document = PolicyDocument(
            key=remote_path,
            expiration=expiration,
            callback=CallbackInstruction(url=callback_url, body=callback_body),
            conditions=merged_conditions,
        ).to_dict()

        envelope = {
            "document": document,
            "signature": self.sign(canonicalize(document)),
        }
        return base64.urlsafe_b64encode(canonicalize(envelope)).decode("ascii")

    def decode(self, policy: str, verify_expiration: bool = True) -> PolicyDocument:
        """
        Decode a policy and verify its signature.

        Args:
            policy: String returned by issue()
            verify_expiration: Reject policies past their expiration

        Returns:
            The verified PolicyDocument

        Raises:
            InvalidPolicyError: Malformed envelope or signature mismatch
            PolicyExpiredError: Signature valid but policy expired
        """
        if not policy:
            raise InvalidPolicyError("Policy must not be empty")
        try:
            raw = base64.urlsafe_b64decode(policy.encode("ascii"))
            envelope = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise InvalidPolicyError(f"Policy is not a valid envelope: {e}") from e

        if not isinstance(envelope, dict):
            raise InvalidPolicyError("Policy envelope must be an object")
        document = envelope.get("document")
        signature = envelope.get("signature")
        if not isinstance(document, dict) or not isinstance(signature, str):
            raise InvalidPolicyError("Policy envelope is missing document or signature")

        expected = self.sign(canonicalize(document))
        if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
            raise InvalidPolicyError("Policy signature mismatch")

        decoded = PolicyDocument.from_dict(document)
        if verify_expiration and decoded.is_expired(self._clock()):
            raise PolicyExpiredError(
                f"Policy expired at {decoded.expiration.strftime(EXPIRATION_FORMAT)}",
                path=decoded.key,
            )
        return decoded

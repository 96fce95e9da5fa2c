"""
Storage backend factory.
Builds the configured backend once at startup; the result is injected into handlers.
"""
import logging
from typing import Optional

from filegate.config import Settings
from filegate.storage.base import StorageBackend
from filegate.storage.errors import BackendConfigurationError, BackendUnavailableError
from filegate.storage.local import LocalStorageBackend
from filegate.storage.memory import InMemoryStorageBackend
from filegate.storage.policy import PolicyIssuer

logger = logging.getLogger(__name__)

S3_ADDRESSING_STYLES = ("path", "virtual", "auto")


def create_policy_issuer(settings: Settings, fallback_secret: Optional[str] = None) -> PolicyIssuer:
    """
    Build the policy issuer from settings.

    Raises:
        BackendConfigurationError: If no secret is available or limits are invalid
    """
    secret = settings.policy_secret or fallback_secret
    if not secret:
        raise BackendConfigurationError(
            "Policy signing secret not configured. Set POLICY_SECRET environment variable."
        )
    try:
        return PolicyIssuer(
            secret=secret,
            ttl_seconds=settings.policy_ttl_seconds,
            max_upload_bytes=settings.policy_max_upload_bytes,
        )
    except ValueError as e:
        raise BackendConfigurationError(f"Invalid policy configuration: {e}") from e


def create_storage_backend(settings: Settings) -> StorageBackend:
    """
    Factory function to build the configured storage backend.

    Backend selection is controlled by STORAGE_BACKEND:
    - "local" → LocalStorageBackend (files under LOCAL_STORAGE_ROOT)
    - "s3" → S3StorageBackend (any S3-compatible provider)
    - "memory" → InMemoryStorageBackend (tests, experiments)

    Returns:
        StorageBackend instance

    Raises:
        BackendConfigurationError: If the backend is misconfigured or unknown
    """
    if settings.storage_operation_timeout <= 0:
        raise BackendConfigurationError(
            "STORAGE_OPERATION_TIMEOUT must be a positive number of seconds"
        )

    backend_name = settings.storage_backend.lower()

    if backend_name == "s3":
        if not settings.s3_bucket:
            raise BackendConfigurationError(
                "S3 bucket not configured. Set S3_BUCKET environment variable."
            )
        if settings.s3_addressing_style not in S3_ADDRESSING_STYLES:
            raise BackendConfigurationError(
                f"Invalid S3 addressing style: {settings.s3_addressing_style}. "
                f"Must be one of: 'path', 'virtual', 'auto'"
            )
        issuer = create_policy_issuer(settings, fallback_secret=settings.s3_secret_key)
        # boto3 is only imported when the s3 backend is selected
        from filegate.storage.s3 import S3StorageBackend

        try:
            backend = S3StorageBackend(
                bucket=settings.s3_bucket,
                policy_issuer=issuer,
                endpoint_url=settings.s3_endpoint,
                access_key=settings.s3_access_key,
                secret_key=settings.s3_secret_key,
                region=settings.s3_region,
                addressing_style=settings.s3_addressing_style,
                connect_timeout=settings.s3_connect_timeout,
                read_timeout=settings.s3_read_timeout,
            )
        except Exception as e:
            # boto3 raises a variety of errors for bad endpoints/regions
            raise BackendConfigurationError(f"Failed to initialize S3 client: {e}") from e

    elif backend_name == "local":
        issuer = create_policy_issuer(settings)
        try:
            backend = LocalStorageBackend(
                storage_root=settings.local_storage_root,
                policy_issuer=issuer,
            )
        except BackendUnavailableError as e:
            raise BackendConfigurationError(e.message) from e

    elif backend_name == "memory":
        backend = InMemoryStorageBackend(policy_issuer=create_policy_issuer(settings))

    else:
        raise BackendConfigurationError(
            f"Invalid storage backend: {backend_name}. "
            f"Must be one of: 'local', 's3', 'memory'"
        )

    logger.info(f"Using {backend.name} storage backend")
    return backend

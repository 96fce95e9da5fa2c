"""
S3-compatible storage backend (AWS S3, Cloudflare R2, MinIO, OSS S3 API).

Uses boto3 with the S3 API. A single client is created at construction
and shared by all requests (boto3 clients are thread-safe).

Copies use the provider's server-side copy, so object bytes never pass
through the gateway. Upload policies are signed locally with the
configured secret; issuing one needs no round-trip to the provider.
"""
import logging
from contextlib import contextmanager
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from filegate.storage.base import (
    StorageBackend,
    open_local_source,
    require_local_source,
    validate_remote_path,
)
from filegate.storage.deadline import Deadline
from filegate.storage.errors import (
    BackendUnavailableError,
    InvalidPathError,
    NotFoundError,
    StorageError,
)
from filegate.storage.policy import PolicyIssuer

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
INVALID_PATH_CODES = {"InvalidObjectName", "KeyTooLongError"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


@contextmanager
def translate_errors(operation: str, path: Optional[str] = None):
    """Map botocore failures onto the storage error taxonomy."""
    try:
        yield
    except StorageError:
        raise
    except ClientError as e:
        code = _error_code(e)
        if code in NOT_FOUND_CODES:
            raise NotFoundError(f"Object not found: {path}", path=path) from e
        if code in INVALID_PATH_CODES:
            raise InvalidPathError(f"Invalid object key: {path}", path=path) from e
        raise BackendUnavailableError(
            f"S3 {operation} failed ({code or 'unknown error'})", path=path
        ) from e
    except BotoCoreError as e:
        raise BackendUnavailableError(f"S3 {operation} failed: {e}", path=path) from e


class S3StorageBackend(StorageBackend):
    """S3-compatible backend built on a shared boto3 client."""

    name = "s3"

    def __init__(
        self,
        bucket: str,
        policy_issuer: PolicyIssuer,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = "auto",
        addressing_style: str = "path",
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        client=None,
    ):
        """
        Args:
            bucket: Bucket name
            policy_issuer: Issuer for direct-upload policies
            endpoint_url: Custom endpoint (R2, MinIO); None for AWS
            access_key: Access key ID (uses env/IAM chain if not set)
            secret_key: Secret access key
            region: Region name ("auto" for R2)
            addressing_style: "path" or "virtual"
            connect_timeout: Socket connect timeout in seconds
            read_timeout: Socket read timeout in seconds
            client: Pre-built boto3 S3 client (tests)
        """
        if not bucket:
            raise ValueError("S3 bucket is not configured")
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.policy_issuer = policy_issuer

        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
                config=Config(
                    signature_version="s3v4",
                    s3={"addressing_style": addressing_style},
                    connect_timeout=connect_timeout,
                    read_timeout=read_timeout,
                ),
            )
        self._client = client
        logger.info(f"S3 storage backend initialized for bucket: {bucket}")

    @staticmethod
    def _progress_guard(deadline: Deadline, operation: str):
        """Transfer callback that aborts the transfer once the deadline trips."""
        def callback(bytes_transferred):
            deadline.check(operation)
        return callback

    def upload_local_file(
        self,
        local_source: str,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        deadline = deadline or Deadline.never()
        require_local_source(local_source)
        validate_remote_path(remote_path)
        deadline.check("upload")

        with open_local_source(local_source) as source, translate_errors("upload", remote_path):
            self._client.upload_fileobj(
                source,
                self.bucket,
                remote_path,
                Callback=self._progress_guard(deadline, "upload"),
            )
        logger.debug(f"Uploaded {local_source} to s3://{self.bucket}/{remote_path}")

    def delete_single_file(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        validate_remote_path(remote_path)
        (deadline or Deadline.never()).check("delete")
        # S3 DeleteObject succeeds for missing keys; some providers answer 404
        try:
            with translate_errors("delete", remote_path):
                self._client.delete_object(Bucket=self.bucket, Key=remote_path)
        except NotFoundError:
            logger.debug(f"Object {remote_path} not found (already deleted)")

    def copy_file(
        self,
        src_path: str,
        dst_path: str,
        deadline: Optional[Deadline] = None,
    ) -> None:
        deadline = deadline or Deadline.never()
        validate_remote_path(src_path, "source path")
        validate_remote_path(dst_path, "destination path")
        deadline.check("copy")

        try:
            with translate_errors("copy", dst_path):
                # Managed copy: CopyObject, or multipart UploadPartCopy for large objects
                self._client.copy(
                    {"Bucket": self.bucket, "Key": src_path},
                    self.bucket,
                    dst_path,
                    Callback=self._progress_guard(deadline, "copy"),
                )
        except NotFoundError as e:
            raise NotFoundError(f"Source object not found: {src_path}", path=src_path) from e
        logger.debug(f"Copied s3://{self.bucket}/{src_path} to {dst_path}")

    def get_upload_policy(
        self,
        remote_path: str,
        callback_url: str,
        callback_body: str,
        deadline: Optional[Deadline] = None,
    ) -> str:
        self.policy_issuer.validate_request(remote_path, callback_url, callback_body)
        validate_remote_path(remote_path)
        (deadline or Deadline.never()).check("upload policy")
        return self.policy_issuer.issue(
            remote_path,
            callback_url,
            callback_body,
            conditions={"bucket": self.bucket},
        )

    def read_file(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> bytes:
        deadline = deadline or Deadline.never()
        validate_remote_path(remote_path)
        deadline.check("read")
        with translate_errors("read", remote_path):
            response = self._client.get_object(Bucket=self.bucket, Key=remote_path)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()

    def exists(
        self,
        remote_path: str,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        validate_remote_path(remote_path)
        (deadline or Deadline.never()).check("exists")
        try:
            with translate_errors("exists", remote_path):
                self._client.head_object(Bucket=self.bucket, Key=remote_path)
        except NotFoundError:
            return False
        return True

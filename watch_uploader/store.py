"""
Module for reading and writing objects in S3.
"""
import logging
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from tenacity import (
    Retrying,
    after_log,
    before_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .auth import AuthContext
from .config import WatchConfig

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StoreError(Exception):
    """Raised when S3 could not answer or accept a request."""


def is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger a retry.

    Args:
        exception: The exception to check

    Returns:
        True if the error is retryable, False otherwise
    """
    if isinstance(exception, ClientError):
        error_code = exception.response['Error']['Code']
        return error_code in {
            'RequestTimeout',
            'RequestTimeoutException',
            'PriorRequestNotComplete',
            'ConnectionError',
            'ThrottlingException',
            'ThrottledException',
            'ServiceUnavailable',
            'SlowDown',
            'Throttling',
            '500',
            '503',
        }
    return False


class S3ObjectWriter:
    """Streams bytes into one S3 object.

    Small objects are sent with a single ``put_object`` on close. Once more
    than ``chunk_size`` bytes are buffered the writer switches to a multipart
    upload and ships full parts as they fill.
    """

    def __init__(self, client: Any, bucket: str, key: str,
                 chunk_size: int = 8 * 1024 * 1024,
                 extra_args: Optional[Dict[str, str]] = None):
        self.client = client
        self.bucket = bucket
        self.key = key
        self.chunk_size = chunk_size
        self.extra_args = extra_args or {}
        self.bytes_written = 0
        self._buffer = bytearray()
        self._upload_id: Optional[str] = None
        self._parts: List[Dict[str, Any]] = []
        self._closed = False

    def write(self, data: bytes) -> int:
        """Buffer ``data``, uploading full parts once a multipart upload is warranted.

        Raises:
            StoreError: If a part upload fails
        """
        if self._closed:
            raise StoreError(f"writer for {self.key} is already closed")
        self._buffer.extend(data)
        self.bytes_written += len(data)
        try:
            while len(self._buffer) > self.chunk_size:
                self._upload_part(bytes(self._buffer[:self.chunk_size]))
                del self._buffer[:self.chunk_size]
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Error uploading part of {self.key}: {e}") from e
        return len(data)

    def _upload_part(self, chunk: bytes) -> None:
        if self._upload_id is None:
            mpu = self.client.create_multipart_upload(
                Bucket=self.bucket,
                Key=self.key,
                **self.extra_args
            )
            self._upload_id = mpu['UploadId']
            logger.debug(f"Started multipart upload {self._upload_id} for {self.key}")

        part_number = len(self._parts) + 1
        part = self.client.upload_part(
            Bucket=self.bucket,
            Key=self.key,
            UploadId=self._upload_id,
            PartNumber=part_number,
            Body=chunk,
            **self.extra_args
        )
        self._parts.append({'PartNumber': part_number, 'ETag': part['ETag']})

    def close(self) -> None:
        """Finish the object; only a clean return means the write is durable.

        Raises:
            StoreError: If S3 did not accept the final request
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._upload_id is None:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=self.key,
                    Body=bytes(self._buffer),
                    **self.extra_args
                )
            else:
                if self._buffer:
                    self._upload_part(bytes(self._buffer))
                self.client.complete_multipart_upload(
                    Bucket=self.bucket,
                    Key=self.key,
                    UploadId=self._upload_id,
                    MultipartUpload={'Parts': self._parts},
                    **self.extra_args
                )
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Error finalizing {self.key}: {e}") from e
        finally:
            self._buffer.clear()

    def abort(self) -> None:
        """Release the writer without producing an object. Never raises."""
        self._closed = True
        self._buffer.clear()
        if self._upload_id is None:
            return
        try:
            self.client.abort_multipart_upload(
                Bucket=self.bucket,
                Key=self.key,
                UploadId=self._upload_id,
                **self.extra_args
            )
        except (BotoCoreError, ClientError) as abort_error:
            logger.error(f"Error aborting multipart upload: {abort_error}")


class S3ObjectStore:
    """Existence checks and streaming writes against one S3 endpoint."""

    def __init__(self, client: Any, chunk_size: int = 8 * 1024 * 1024,
                 expected_bucket_owner: Optional[str] = None,
                 retry_attempts: int = 3, retry_wait=None):
        """Initialize the store.

        Args:
            client: A boto3 S3 client
            chunk_size: Size of multipart upload chunks in bytes
            expected_bucket_owner: Account id sent as ``ExpectedBucketOwner``
            retry_attempts: Tries for transient errors on existence checks
            retry_wait: tenacity wait strategy; exponential backoff by default
        """
        self.client = client
        self.chunk_size = chunk_size
        self.expected_bucket_owner = expected_bucket_owner
        self._retrying = Retrying(
            retry=retry_if_exception(is_retryable_error),
            stop=stop_after_attempt(retry_attempts),
            wait=retry_wait or wait_exponential(multiplier=1, min=1, max=10),
            before=before_log(logger, logging.DEBUG),
            after=after_log(logger, logging.DEBUG),
            reraise=True
        )

    @classmethod
    def from_auth(cls, auth: AuthContext, config: WatchConfig) -> "S3ObjectStore":
        """Build a store on an S3 client from the resolved session.

        Raises:
            StoreError: If the client cannot be created (unknown profile, bad endpoint)
        """
        try:
            client = auth.session.client(
                's3',
                region_name=config.region,
                endpoint_url=config.endpoint_url
            )
        except (BotoCoreError, ValueError) as e:
            raise StoreError(f"could not create S3 client: {e}") from e
        return cls(
            client,
            chunk_size=config.chunk_size,
            expected_bucket_owner=config.expected_bucket_owner
        )

    @property
    def _extra_args(self) -> Dict[str, str]:
        if self.expected_bucket_owner:
            return {'ExpectedBucketOwner': self.expected_bucket_owner}
        return {}

    def exists(self, bucket: str, name: str) -> bool:
        """Check whether ``name`` is already in ``bucket``.

        Raises:
            StoreError: For any failure other than "not found"
        """
        try:
            self._retrying.copy()(
                self.client.head_object,
                Bucket=bucket,
                Key=name,
                **self._extra_args
            )
        except ClientError as e:
            if e.response['Error']['Code'] in NOT_FOUND_CODES:
                return False
            raise StoreError(f"Error checking existence of {name} in {bucket}: {e}") from e
        except BotoCoreError as e:
            raise StoreError(f"Error checking existence of {name} in {bucket}: {e}") from e
        return True

    def open_writer(self, bucket: str, name: str) -> S3ObjectWriter:
        return S3ObjectWriter(
            self.client,
            bucket,
            name,
            chunk_size=self.chunk_size,
            extra_args=self._extra_args
        )

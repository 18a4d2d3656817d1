"""
Object storage client for uploaded videos.

Talks to any S3-compatible service (AWS S3, Cloudflare R2, MinIO) through
boto3. The only operations this service needs are "make sure the bucket
exists" at startup and "put these bytes under this key" per upload; the
returned URL is stored in the video document verbatim.

Mock mode keeps objects in memory, enabling API testing without
provisioning actual object storage.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    endpoint_url is only needed for non-AWS providers. public_base_url
    overrides the prefix of returned URLs (e.g. a CDN in front of the
    bucket).
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: Optional[str] = None
    region: str = "us-east-1"
    public_base_url: Optional[str] = None


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def ensure_bucket(self) -> None:
        """Create the bucket if absent. Safe to call repeatedly."""
        ...

    async def upload_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str],
    ) -> str:
        """Upload bytes under key and return the object's URL."""
        ...


def build_object_url(config: StorageConfig, key: str) -> str:
    """
    URL of an object in the bucket.

    Path-style for custom endpoints, virtual-hosted style for AWS.
    The URL only works for clients if the bucket allows public reads.
    """
    quoted_key = quote(key)

    if config.public_base_url:
        return f"{config.public_base_url.rstrip('/')}/{quoted_key}"

    if config.endpoint_url:
        return f"{config.endpoint_url.rstrip('/')}/{config.bucket_name}/{quoted_key}"

    return f"https://{config.bucket_name}.s3.{config.region}.amazonaws.com/{quoted_key}"


class S3StorageClient:
    """
    S3-compatible object storage client.

    All methods are async to match the Protocol even though boto3 is
    synchronous.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize the boto3 client.

        boto3 is imported here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for object storage. Install with: pip install boto3"
            )

        self._config = config

        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path' if config.endpoint_url else 'auto'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    async def ensure_bucket(self) -> None:
        """
        Create the bucket unless it already exists.

        Called once at startup. A permission error here is fatal for the
        process, so it is raised rather than logged and ignored.
        """
        from botocore.exceptions import ClientError

        bucket = self._config.bucket_name

        try:
            self._s3_client.head_bucket(Bucket=bucket)
            logger.info("Bucket exists", extra={"bucket": bucket})
            return
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code not in ('404', 'NoSuchBucket', 'NotFound'):
                logger.error(
                    "Failed to check bucket",
                    extra={"bucket": bucket, "error": str(e)}
                )
                raise StorageError(f"Bucket check failed: {e}")

        create_params = {'Bucket': bucket}
        # us-east-1 and custom endpoints reject an explicit location
        if not self._config.endpoint_url and self._config.region != 'us-east-1':
            create_params['CreateBucketConfiguration'] = {
                'LocationConstraint': self._config.region,
            }

        try:
            self._s3_client.create_bucket(**create_params)
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code in ('BucketAlreadyOwnedByYou', 'BucketAlreadyExists'):
                return
            logger.error(
                "Failed to create bucket",
                extra={"bucket": bucket, "error": str(e)}
            )
            raise StorageError(f"Bucket creation failed: {e}")

        logger.info("Created bucket", extra={"bucket": bucket})

    async def upload_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str],
    ) -> str:
        """
        Upload an object and return its URL.

        The caller picks a collision-free key. Metadata is sent as
        x-amz-meta-* headers, so values are limited to ASCII.
        """
        try:
            self._s3_client.put_object(
                Bucket=self._config.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=_ascii_metadata(metadata),
            )

            logger.info(
                "Uploaded object",
                extra={
                    "key": key,
                    "size_bytes": len(data),
                    "content_type": content_type,
                }
            )

            return build_object_url(self._config, key)

        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}")


def _ascii_metadata(metadata: dict[str, str]) -> dict[str, str]:
    """S3 user metadata must be ASCII; replace anything else."""
    return {
        key: value.encode('ascii', errors='replace').decode('ascii')
        for key, value in metadata.items()
    }


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Objects are stored in a dictionary and "URLs" are mock URIs.
    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self, bucket_name: str = "videos") -> None:
        self.bucket_name = bucket_name
        self.bucket_created = False
        # {key: (bytes, content_type, metadata)}
        self.objects: dict[str, tuple[bytes, str, dict[str, str]]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def ensure_bucket(self) -> None:
        self.bucket_created = True

    async def upload_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str],
    ) -> str:
        """Store object in memory."""
        self.objects[key] = (data, content_type, dict(metadata))

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(data)}
        )

        return f"mock://storage/{self.bucket_name}/{quote(key)}"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageClient(config.bucket_name if config else "videos")

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)

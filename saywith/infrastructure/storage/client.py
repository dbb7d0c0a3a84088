"""
Object storage client for message media and audio.

Managed uploads go to a Cloudflare R2 bucket through its S3 API.
Files live under messages/{record_id}/{slot}.{ext}, so everything that
belongs to one message shares a prefix and a re-upload overwrites the
previous file for that slot.

In mock mode files are kept in memory and addressed as mock://storage/... URLs.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from saywith.core.messages.errors import UploadError
from saywith.core.messages.models import FileSlot, UploadedFile

logger = logging.getLogger(__name__)

# Presigned GET URLs cannot outlive seven days with SigV4
MAX_PRESIGNED_EXPIRY_SECONDS = 7 * 24 * 3600


def build_message_path(record_id: str, slot: FileSlot, file: UploadedFile) -> str:
    """Storage path for one message file: messages/{id}/{slot}[.{ext}]."""
    return f"messages/{record_id}/{file.stored_name(slot)}"


@dataclass
class StorageConfig:
    """Configuration for R2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    public_url: Optional[str] = None
    region: str = "auto"  # R2 uses 'auto' for region


class BlobStorageClient(Protocol):
    """Uploader interface shared by R2, the custom endpoint and the in-memory store."""

    async def upload(
        self,
        data: bytes,
        destination_path: str,
        content_type: str,
    ) -> str:
        """Upload bytes and return a URL they can be fetched from."""
        ...

    async def upload_message_files(
        self,
        record_id: str,
        files: dict[FileSlot, UploadedFile],
    ) -> dict[FileSlot, str]:
        """Upload the files of one message and return one URL per slot."""
        ...


class _PathUploadMixin:
    """Per-file uploads for path-addressed stores."""

    async def upload_message_files(
        self,
        record_id: str,
        files: dict[FileSlot, UploadedFile],
    ) -> dict[FileSlot, str]:
        urls = {}
        for slot, file in files.items():
            urls[slot] = await self.upload(
                data=file.data,
                destination_path=build_message_path(record_id, slot, file),
                content_type=file.content_type,
            )
        return urls


class R2StorageClient(_PathUploadMixin):
    """
    Uploads message files to an R2 bucket.

    Any S3-compatible endpoint works. boto3 is synchronous, so the async
    methods block while a file uploads.
    """

    def __init__(self, config: StorageConfig) -> None:
        import boto3
        from botocore.config import Config

        self._config = config

        # R2 requires v4 signatures and path-style addressing
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
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
            "Initialized R2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    async def upload(
        self,
        data: bytes,
        destination_path: str,
        content_type: str,
    ) -> str:
        """
        Upload bytes to R2 and return a download URL.

        The declared content type is stored with the object so browsers
        play media and audio inline.
        """
        try:
            self._s3_client.put_object(
                Bucket=self._config.bucket_name,
                Key=destination_path,
                Body=data,
                ContentType=content_type or 'application/octet-stream',
            )
        except Exception as e:
            logger.error(
                "Failed to upload file",
                extra={"storage_path": destination_path, "error": str(e)}
            )
            raise UploadError(f"Upload failed: {e}") from e

        logger.info(
            "Uploaded file",
            extra={
                "storage_path": destination_path,
                "content_type": content_type,
                "size_bytes": len(data),
            }
        )

        return self._download_url(destination_path)

    def _download_url(self, storage_path: str) -> str:
        """
        Public URL when the bucket is exposed, otherwise a presigned GET URL.

        Presigned URLs expire, so production buckets should set a public URL.
        """
        if self._config.public_url:
            return f"{self._config.public_url.rstrip('/')}/{storage_path}"

        try:
            return self._s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self._config.bucket_name,
                    'Key': storage_path,
                },
                ExpiresIn=MAX_PRESIGNED_EXPIRY_SECONDS,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            raise UploadError(f"Presigned URL generation failed: {e}") from e


# ---------------------------------------------------------------------------
# In-memory storage
# ---------------------------------------------------------------------------

class MockStorageClient(_PathUploadMixin):
    """Keeps uploads in a dict keyed by storage path."""

    def __init__(self) -> None:
        # {storage_path: (content_type, bytes)}
        self._files: dict[str, tuple[str, bytes]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def upload(
        self,
        data: bytes,
        destination_path: str,
        content_type: str,
    ) -> str:
        """Store file in memory."""
        self._files[destination_path] = (content_type, data)

        logger.debug(
            "Stored file in mock storage",
            extra={
                "storage_path": destination_path,
                "content_type": content_type,
                "size_bytes": len(data),
            }
        )

        return f"mock://storage/{destination_path}"

    def get_file(self, storage_path: str) -> tuple[str, bytes]:
        """Retrieve (content_type, bytes) from memory."""
        if storage_path not in self._files:
            raise UploadError(f"File not found: {storage_path}")
        return self._files[storage_path]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> BlobStorageClient:
    """
    Create managed object storage client based on configuration.

    Args:
        config: R2 settings, required unless mock_mode
        mock_mode: Keep files in memory instead

    Returns:
        BlobStorageClient implementation (R2 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2StorageClient(config)

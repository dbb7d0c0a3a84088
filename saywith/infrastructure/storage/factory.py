"""
Blob uploader selection.

The storage provider is explicit configuration handed to this factory,
never ambient state, so a request always knows which backend it talks to.
"""

import logging
from typing import Optional

from .client import BlobStorageClient, StorageConfig, create_storage_client
from .custom import CustomUploadClient

logger = logging.getLogger(__name__)

PROVIDERS = ("managed", "custom")


def create_blob_uploader(
    provider: str,
    storage_config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
    upload_url: Optional[str] = None,
    timeout_seconds: int = 120,
) -> BlobStorageClient:
    """
    Create the blob uploader for a storage provider.

    Args:
        provider: "managed" (R2/S3, or in-memory when mock_mode) or "custom"
        storage_config: R2 configuration, required for managed without mock_mode
        mock_mode: Use in-memory storage for the managed provider
        upload_url: Endpoint for the custom provider
        timeout_seconds: Request timeout for the custom provider
    """
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown storage provider: {provider!r}")

    if provider == "custom":
        if not upload_url:
            raise ValueError("upload_url is required for the custom storage provider")
        logger.debug("Using custom upload endpoint", extra={"upload_url": upload_url})
        return CustomUploadClient(upload_url, timeout_seconds=timeout_seconds)

    return create_storage_client(config=storage_config, mock_mode=mock_mode)

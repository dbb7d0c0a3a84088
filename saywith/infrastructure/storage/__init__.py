"""
Blob uploads for message media and audio.

Two interchangeable backends: R2/S3 via the S3-compatible API (with an
in-memory mock) and the custom multipart upload endpoint. Which one is
used is decided by configuration, see create_blob_uploader.
"""

from .client import (
    BlobStorageClient,
    MockStorageClient,
    R2StorageClient,
    StorageConfig,
    build_message_path,
    create_storage_client,
)
from .custom import CustomUploadClient
from .factory import create_blob_uploader

__all__ = [
    "BlobStorageClient",
    "CustomUploadClient",
    "MockStorageClient",
    "R2StorageClient",
    "StorageConfig",
    "build_message_path",
    "create_blob_uploader",
    "create_storage_client",
]

"""
Request dependencies: the PIN gate, settings, and the services the
message routes run on.

With a mock mode on, the in-memory backend is created once and shared by
every request so a message created in one call can be edited in the next.
reset_mock_backends() drops that state between tests.
"""

import hmac
import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.messages.catalog import load_template_catalog
from ..core.messages.models import Template
from ..core.messages.workflow import CreateMessageWorkflow, EditMessageWorkflow
from ..infrastructure.qr.generator import QRCodeGenerator
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    create_snowflake_connection,
    snowflake_config_from_settings,
)
from ..infrastructure.snowflake.repositories.messages import MessageRepository
from ..infrastructure.storage.client import BlobStorageClient, StorageConfig
from ..infrastructure.storage.factory import create_blob_uploader

logger = logging.getLogger(__name__)

# PIN security scheme
access_pin_header = APIKeyHeader(name="X-Access-Pin", auto_error=False)

# Shared in-memory backends, created on first use in mock mode
_mock_storage_client = None
_mock_snowflake_connection = None


def reset_mock_backends() -> None:
    """Drop shared mock state (for test isolation)."""
    global _mock_storage_client, _mock_snowflake_connection
    _mock_storage_client = None
    _mock_snowflake_connection = None


# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------

def pin_matches(candidate: Optional[str], settings: Settings) -> bool:
    """Constant-time PIN comparison. An unset PIN never matches."""
    if not candidate or not settings.access_pin:
        return False
    return hmac.compare_digest(candidate.encode(), settings.access_pin.encode())


async def verify_access_pin(
    settings: Annotated[Settings, Depends(get_settings)],
    pin: str = Security(access_pin_header),
) -> str:
    """
    Validate the shared PIN from the X-Access-Pin header.

    The PIN is the only gate in front of the manager. Nothing is stored
    server-side; the front end keeps the unlocked state for its session.

    Raises 403 if the PIN is missing or wrong.
    """
    if not pin:
        logger.warning("Request missing access PIN")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access PIN required. Provide X-Access-Pin header.",
        )

    if not pin_matches(pin, settings):
        logger.warning("Invalid access PIN attempt")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Incorrect PIN",
        )

    return pin


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_message_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[MessageRepository, None, None]:
    """
    Provide MessageRepository with database connection.

    This is a generator function so the connection is closed after the
    request. In mock mode, we reuse the same connection across requests
    so that data persists during the testing session.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection for session")

        yield MessageRepository(_mock_snowflake_connection, collection=settings.message_collection)
    else:
        with create_snowflake_connection(config=snowflake_config_from_settings(settings)) as conn:
            repo = MessageRepository(conn, collection=settings.message_collection)
            logger.debug("Created MessageRepository with Snowflake connection")
            yield repo


def get_blob_uploader(
    settings: Annotated[Settings, Depends(get_settings)],
) -> BlobStorageClient:
    """
    Provide the blob uploader for the configured storage provider.

    In managed mock mode, we reuse the same client across requests
    so that uploaded files persist during the testing session.
    """
    global _mock_storage_client

    if settings.storage_provider == "managed" and settings.r2_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_blob_uploader("managed", mock_mode=True)
            logger.info("Created shared mock storage client for session")
        return _mock_storage_client

    storage_config = None
    if settings.storage_provider == "managed":
        storage_config = StorageConfig(
            access_key_id=settings.r2_access_key_id,
            secret_access_key=settings.r2_secret_access_key,
            bucket_name=settings.r2_bucket_name,
            endpoint_url=settings.r2_endpoint,
            public_url=settings.r2_public_url,
        )

    return create_blob_uploader(
        settings.storage_provider,
        storage_config=storage_config,
        upload_url=settings.custom_upload_url,
        timeout_seconds=settings.custom_upload_timeout_seconds,
    )


def get_qr_generator() -> QRCodeGenerator:
    """QR generator is stateless; one per request is fine."""
    return QRCodeGenerator()


def get_template_catalog(
    settings: Annotated[Settings, Depends(get_settings)],
) -> list[Template]:
    """Template catalog read from the configured JSON file."""
    return load_template_catalog(settings.templates_file)


def get_create_workflow(
    settings: Annotated[Settings, Depends(get_settings)],
    repository: Annotated[MessageRepository, Depends(get_message_repository)],
    uploader: Annotated[BlobStorageClient, Depends(get_blob_uploader)],
    qr_generator: Annotated[QRCodeGenerator, Depends(get_qr_generator)],
) -> CreateMessageWorkflow:
    """Fresh create controller per request; form state never outlives the request."""
    return CreateMessageWorkflow(
        store=repository,
        uploader=uploader,
        base_url=settings.base_url,
        qr_renderer=qr_generator if settings.qr_codes_enabled else None,
    )


def get_edit_workflow(
    repository: Annotated[MessageRepository, Depends(get_message_repository)],
    uploader: Annotated[BlobStorageClient, Depends(get_blob_uploader)],
) -> EditMessageWorkflow:
    """Fresh edit controller per request."""
    return EditMessageWorkflow(store=repository, uploader=uploader)


# ---------------------------------------------------------------------------
# Annotated Aliases
# ---------------------------------------------------------------------------

UnlockedOperator = Annotated[str, Depends(verify_access_pin)]
MessageRepositoryDep = Annotated[MessageRepository, Depends(get_message_repository)]
BlobUploaderDep = Annotated[BlobStorageClient, Depends(get_blob_uploader)]
QRGeneratorDep = Annotated[QRCodeGenerator, Depends(get_qr_generator)]
TemplateCatalogDep = Annotated[list[Template], Depends(get_template_catalog)]
CreateWorkflowDep = Annotated[CreateMessageWorkflow, Depends(get_create_workflow)]
EditWorkflowDep = Annotated[EditMessageWorkflow, Depends(get_edit_workflow)]
SettingsDep = Annotated[Settings, Depends(get_settings)]

"""
Message API endpoints.

The create and edit forms of the manager post here. Each handler turns the
multipart form into domain values, runs the matching workflow, and maps the
workflow outcome onto an HTTP response. The workflows never raise; the
outcome says what happened and carries the toast to show.

Flow:
1. **Create**: `POST /api/v1/messages` → new id, share URL, QR codes
2. **Load for editing**: `GET /api/v1/messages/{id}`
3. **Update**: `PATCH /api/v1/messages/{id}` → only changed fields are written
4. **QR download**: `GET /api/v1/messages/{id}/qrcodes.zip`
"""

import base64
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, Field

from ...core.messages.errors import RecordNotFoundError, StoreError, UploadError
from ...core.messages.models import FileSelection, FileSlot, MessageForm, MessageRecord, UploadedFile
from ...core.messages.workflow import CreateState, EditOutcome, EditState, Notification
from ...infrastructure.qr.generator import build_qr_zip, qr_zip_content_disposition
from ..dependencies import (
    CreateWorkflowDep,
    EditWorkflowDep,
    MessageRepositoryDep,
    QRGeneratorDep,
    SettingsDep,
    UnlockedOperator,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class NotificationModel(BaseModel):
    """Toast for the operator."""
    title: str
    description: str = ""
    variant: str = "default"

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationModel":
        return cls(
            title=notification.title,
            description=notification.description,
            variant=notification.variant,
        )


class MessageResponse(BaseModel):
    """A stored message."""
    id: str = Field(description="Message identifier")
    name: str = Field(description="Display name")
    template: str = Field(description="Template value from the catalog")
    enabled: bool = Field(description="Whether the message is live")
    mute: bool = Field(description="Whether playback starts muted")
    media_url: str = Field(description="Uploaded image/video URL, empty if none")
    audio_url: str = Field(description="Uploaded audio URL, empty if none")
    srt_content: str = Field(description="Subtitle text, empty if none")

    @classmethod
    def from_record(cls, record_id: str, record: MessageRecord) -> "MessageResponse":
        return cls(
            id=record_id,
            name=record.name,
            template=record.template,
            enabled=record.enabled,
            mute=record.mute,
            media_url=record.media_url,
            audio_url=record.audio_url,
            srt_content=record.srt_content,
        )


class MessageCreatedResponse(BaseModel):
    """Response after creating a message."""
    id: str = Field(description="New message identifier")
    share_url: str = Field(description="Public URL of the message")
    message: MessageResponse = Field(description="The stored message")
    qr_codes: list[str] = Field(
        default_factory=list,
        description="QR codes for the share URL as PNG data URLs"
    )
    notification: NotificationModel


class MessageUpdatedResponse(BaseModel):
    """Response after an update attempt."""
    id: str = Field(description="Message identifier")
    updated_fields: list[str] = Field(description="Store keys written. Empty when nothing changed.")
    no_changes: bool = Field(description="True when no write was issued")
    message: MessageResponse = Field(description="Message after the update")
    notification: NotificationModel


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

async def read_upload(
    upload: Optional[UploadFile],
    max_size_mb: int,
) -> Optional[UploadedFile]:
    """Read an UploadFile into a domain value. Missing or empty uploads count as absent."""
    if upload is None or not upload.filename:
        return None

    data = await upload.read()
    if not data:
        return None

    if len(data) > max_size_mb * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"{upload.filename} is too large. Maximum size: {max_size_mb}MB"
        )

    return UploadedFile(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


async def build_selection(
    media_file: Optional[UploadFile],
    audio_file: Optional[UploadFile],
    srt_file: Optional[UploadFile],
    max_size_mb: int,
) -> FileSelection:
    selection = FileSelection()

    media = await read_upload(media_file, max_size_mb)
    if media:
        selection.files[FileSlot.MEDIA] = media

    audio = await read_upload(audio_file, max_size_mb)
    if audio:
        selection.files[FileSlot.AUDIO] = audio

    selection.subtitle = await read_upload(srt_file, max_size_mb)
    return selection


def failure_status(error: Optional[Exception]) -> int:
    """HTTP status for a failed workflow step."""
    if isinstance(error, RecordNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, UploadError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def raise_for_notification(status_code: int, notification: Notification, **extra) -> None:
    raise HTTPException(
        status_code=status_code,
        detail={**NotificationModel.from_notification(notification).model_dump(), **extra},
    )


def to_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def raise_for_failed_load(outcome: EditOutcome) -> None:
    if outcome.state == EditState.NOT_FOUND:
        raise_for_notification(status.HTTP_404_NOT_FOUND, outcome.notification)
    if outcome.state != EditState.LOADED:
        raise_for_notification(status.HTTP_500_INTERNAL_SERVER_ERROR, outcome.notification)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=MessageCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create message",
    description="Create a message with optional media, audio and subtitle files",
)
async def create_message(
    name: Annotated[str, Form(description="Message name (at least 2 characters)")] = "",
    template: Annotated[str, Form(description="Template value from the catalog")] = "",
    enabled: Annotated[bool, Form()] = False,
    mute: Annotated[bool, Form()] = False,
    media_file: Annotated[Optional[UploadFile], File(description="Image or video")] = None,
    audio_file: Annotated[Optional[UploadFile], File(description="Audio (MP3)")] = None,
    srt_file: Annotated[Optional[UploadFile], File(description="Subtitle or text file")] = None,
    operator: UnlockedOperator = None,
    workflow: CreateWorkflowDep = None,
    settings: SettingsDep = None,
) -> MessageCreatedResponse:
    """
    Create a new message.

    Files are uploaded to the configured storage provider under the new
    message id before the record is written. If anything fails after
    uploads started, already uploaded files are left in place.
    """
    selection = await build_selection(media_file, audio_file, srt_file, settings.max_upload_size_mb)
    form = MessageForm(name=name, template=template, enabled=enabled, mute=mute)

    logger.info(
        "Create message requested",
        extra={
            "template": template,
            "slots": [slot.value for slot in selection.files],
            "has_subtitle": selection.subtitle is not None,
            "storage_provider": settings.storage_provider,
        }
    )

    outcome = await workflow.submit(form, selection)

    if outcome.field_errors:
        raise_for_notification(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            outcome.notification,
            field_errors=outcome.field_errors,
        )

    if outcome.state != CreateState.SUCCESS:
        raise_for_notification(failure_status(outcome.error), outcome.notification)

    return MessageCreatedResponse(
        id=outcome.record_id,
        share_url=outcome.share_url,
        message=MessageResponse.from_record(outcome.record_id, outcome.record),
        qr_codes=[to_data_url(png) for png in outcome.qr_codes],
        notification=NotificationModel.from_notification(outcome.notification),
    )


@router.get(
    "/{message_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Load message",
    description="Load a message by id to pre-fill the edit form",
)
async def get_message(
    message_id: str,
    operator: UnlockedOperator = None,
    workflow: EditWorkflowDep = None,
) -> MessageResponse:
    outcome = workflow.load(message_id)
    raise_for_failed_load(outcome)
    return MessageResponse.from_record(workflow.record_id, outcome.record)


@router.patch(
    "/{message_id}",
    response_model=MessageUpdatedResponse,
    status_code=status.HTTP_200_OK,
    summary="Update message",
    description="Write only the fields that differ from the stored message",
)
async def update_message(
    message_id: str,
    name: Annotated[Optional[str], Form()] = None,
    template: Annotated[Optional[str], Form()] = None,
    enabled: Annotated[Optional[bool], Form()] = None,
    mute: Annotated[Optional[bool], Form()] = None,
    srt_content: Annotated[Optional[str], Form(description="Edited subtitle text")] = None,
    media_file: Annotated[Optional[UploadFile], File(description="Replacement image or video")] = None,
    audio_file: Annotated[Optional[UploadFile], File(description="Replacement audio")] = None,
    srt_file: Annotated[Optional[UploadFile], File(description="Replacement subtitle file")] = None,
    operator: UnlockedOperator = None,
    workflow: EditWorkflowDep = None,
    settings: SettingsDep = None,
) -> MessageUpdatedResponse:
    """
    Update an existing message.

    Fields left out of the form are untouched. Fields sent with their
    current value are not written either. Media and audio are only
    uploaded when a new file is attached. When nothing differs, no write
    is issued and the response says so.
    """
    selection = await build_selection(media_file, audio_file, srt_file, settings.max_upload_size_mb)

    load_outcome = workflow.load(message_id)
    raise_for_failed_load(load_outcome)

    outcome = await workflow.submit(
        MessageForm(name=name, template=template, enabled=enabled, mute=mute),
        selection,
        srt_text=srt_content,
    )

    if outcome.state == EditState.UPDATE_ERROR:
        raise_for_notification(failure_status(outcome.error), outcome.notification)

    return MessageUpdatedResponse(
        id=workflow.record_id,
        updated_fields=sorted(outcome.changes),
        no_changes=outcome.no_changes,
        message=MessageResponse.from_record(workflow.record_id, outcome.record),
        notification=NotificationModel.from_notification(outcome.notification),
    )


@router.get(
    "/{message_id}/qrcodes.zip",
    status_code=status.HTTP_200_OK,
    summary="Download QR codes",
    description="ZIP archive with every QR code style for the message's share URL",
    response_class=Response,
)
async def download_qr_codes(
    message_id: str,
    operator: UnlockedOperator = None,
    repository: MessageRepositoryDep = None,
    qr_generator: QRGeneratorDep = None,
    settings: SettingsDep = None,
) -> Response:
    try:
        record = repository.fetch_record(message_id)
    except RecordNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No data found for this ID."
        )
    except StoreError as e:
        logger.error(
            "Failed to load message for QR codes",
            extra={"record_id": message_id, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch data."
        )

    archive = build_qr_zip(qr_generator.render(settings.share_url(message_id)))

    return Response(
        content=archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": qr_zip_content_disposition(record.name)
        },
    )

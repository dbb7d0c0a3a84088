"""
Create and edit workflows for SayWith messages.

These are the form controllers: they take what the operator entered,
push files to blob storage, write the record and report back. They don't
know about HTTP, Snowflake or R2. Whatever goes wrong inside a workflow is
caught at its boundary and turned into a Notification for the operator;
nothing is retried and nothing propagates to the caller.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from .errors import (
    MessageWorkflowError,
    RecordNotFoundError,
    ValidationError,
)
from .models import (
    URL_KEYS,
    FileSelection,
    FileSlot,
    MessageForm,
    MessageRecord,
    UploadedFile,
    changed_fields,
)
from .text import decode_subtitle, replace_watermark

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class MessageStore(Protocol):
    """Keyed store holding one flat document per message id."""

    def create_record(self) -> str:
        """Reserve a new unique id. Nothing is written yet."""
        ...

    def write_record(self, record_id: str, record: MessageRecord) -> None:
        """Write the full record, replacing any prior value."""
        ...

    def fetch_record(self, record_id: str) -> MessageRecord:
        """Read the record. Raises RecordNotFoundError if absent."""
        ...

    def update_record(self, record_id: str, partial: dict[str, Any]) -> None:
        """Merge the given store keys into the existing record."""
        ...


class BlobUploader(Protocol):
    """Uploads message files and returns one URL per slot."""

    async def upload_message_files(
        self,
        record_id: str,
        files: dict[FileSlot, UploadedFile],
    ) -> dict[FileSlot, str]:
        ...


class QRCodeRenderer(Protocol):
    """Renders shareable QR code images for a URL."""

    def render(self, url: str) -> list[bytes]:
        ...


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Notification:
    """A toast shown to the operator."""
    title: str
    description: str = ""
    variant: str = "default"  # "default" or "destructive"


GENERIC_FAILURE = Notification(
    title="Uh oh! Something went wrong.",
    description="There was a problem with your request. Please try again.",
    variant="destructive",
)


class CreateState(Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILED = "failed"


class EditState(Enum):
    EMPTY = "empty"
    FETCHING = "fetching"
    LOADED = "loaded"
    NOT_FOUND = "not_found"
    FETCH_ERROR = "fetch_error"
    UPDATING = "updating"
    UPDATE_ERROR = "update_error"


@dataclass
class CreateOutcome:
    """Result of one create submission."""
    state: CreateState
    notification: Notification
    record_id: Optional[str] = None
    share_url: Optional[str] = None
    record: Optional[MessageRecord] = None
    qr_codes: list[bytes] = field(default_factory=list)
    field_errors: dict[str, str] = field(default_factory=dict)
    error: Optional[Exception] = None


@dataclass
class EditOutcome:
    """Result of a load or an update in the edit workflow."""
    state: EditState
    notification: Notification
    record: Optional[MessageRecord] = None
    changes: dict[str, Any] = field(default_factory=dict)
    no_changes: bool = False
    error: Optional[Exception] = None


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def validate_create_form(form: MessageForm) -> None:
    """Presence checks for a new message. Raises ValidationError with per-field messages."""
    errors = {}
    if not form.name or len(form.name.strip()) < MIN_NAME_LENGTH:
        errors["name"] = f"Name must be at least {MIN_NAME_LENGTH} characters."
    if not form.template:
        errors["template"] = "Please select a template."
    if errors:
        raise ValidationError(errors)


class CreateMessageWorkflow:
    """
    Create controller: reserve id, upload files, write record, render QR codes.

    The controller owns the in-progress form and file selection. They are
    reset after a successful submit and kept after a failed one so the
    operator can resubmit. Blobs uploaded before a failure stay where they
    are; there is no rollback.
    """

    def __init__(
        self,
        store: MessageStore,
        uploader: BlobUploader,
        base_url: str,
        qr_renderer: Optional[QRCodeRenderer] = None,
    ) -> None:
        self._store = store
        self._uploader = uploader
        self._base_url = base_url
        self._qr_renderer = qr_renderer

        self.state = CreateState.IDLE
        self.form = MessageForm()
        self.selection = FileSelection()

    def share_url(self, record_id: str) -> str:
        return f"{self._base_url}{record_id}"

    async def submit(self, form: MessageForm, selection: FileSelection) -> CreateOutcome:
        self.form = form
        self.selection = selection

        try:
            validate_create_form(form)
        except ValidationError as e:
            logger.info("Create form rejected", extra={"field_errors": e.field_errors})
            return CreateOutcome(
                state=self.state,
                notification=Notification(
                    title="Please fix the highlighted fields.",
                    variant="destructive",
                ),
                field_errors=e.field_errors,
                error=e,
            )

        self.state = CreateState.SUBMITTING
        record_id = None

        try:
            record_id = self._store.create_record()

            record = MessageRecord(
                name=form.name or "",
                template=form.template or "",
                enabled=bool(form.enabled),
                mute=bool(form.mute),
            )

            if selection.files:
                urls = await self._uploader.upload_message_files(record_id, selection.files)
                record.media_url = urls.get(FileSlot.MEDIA, "")
                record.audio_url = urls.get(FileSlot.AUDIO, "")

            if selection.subtitle is not None:
                record.srt_content = replace_watermark(decode_subtitle(selection.subtitle.data))

            self._store.write_record(record_id, record)

        except Exception as e:
            logger.error(
                "Failed to create message",
                extra={"record_id": record_id, "error": str(e), "error_type": type(e).__name__},
                exc_info=not isinstance(e, MessageWorkflowError),
            )
            self.state = CreateState.FAILED
            return CreateOutcome(
                state=self.state,
                notification=GENERIC_FAILURE,
                record_id=record_id,
                error=e,
            )

        share_url = self.share_url(record_id)
        qr_codes = self._render_qr_codes(record_id, share_url)

        logger.info(
            "Message created",
            extra={
                "record_id": record_id,
                "slots": [slot.value for slot in selection.files],
                "has_subtitle": selection.subtitle is not None,
            },
        )

        self.state = CreateState.SUCCESS
        self.form = MessageForm()
        self.selection = FileSelection()

        return CreateOutcome(
            state=self.state,
            notification=Notification(
                title="Success!",
                description="Your content has been saved successfully.",
            ),
            record_id=record_id,
            share_url=share_url,
            record=record,
            qr_codes=qr_codes,
        )

    def _render_qr_codes(self, record_id: str, share_url: str) -> list[bytes]:
        """QR codes are a convenience; the record is already saved if this fails."""
        if self._qr_renderer is None:
            return []
        try:
            return self._qr_renderer.render(share_url)
        except Exception as e:
            logger.warning(
                "QR code generation failed",
                extra={"record_id": record_id, "error": str(e)},
            )
            return []


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------

class EditMessageWorkflow:
    """
    Edit controller: load one record, then send only what changed.

    The loaded record is the snapshot that dirty fields are computed
    against. After a successful update the partial map is merged into the
    snapshot locally rather than re-fetched.
    """

    def __init__(self, store: MessageStore, uploader: BlobUploader) -> None:
        self._store = store
        self._uploader = uploader

        self.state = EditState.EMPTY
        self.record_id: Optional[str] = None
        self.snapshot: Optional[MessageRecord] = None

    @property
    def form(self) -> MessageForm:
        """Pre-filled editable values for the loaded record."""
        if self.snapshot is None:
            return MessageForm(name="", template="", enabled=False, mute=False)
        return MessageForm.from_record(self.snapshot)

    @property
    def srt_content(self) -> str:
        return self.snapshot.srt_content if self.snapshot else ""

    def load(self, record_id: str) -> EditOutcome:
        record_id = (record_id or "").strip()
        if not record_id:
            return EditOutcome(
                state=self.state,
                notification=Notification(title="Please enter an ID.", variant="destructive"),
            )

        self.state = EditState.FETCHING
        self.record_id = record_id
        self.snapshot = None

        try:
            record = self._store.fetch_record(record_id)
        except RecordNotFoundError as e:
            logger.info("Message not found", extra={"record_id": record_id})
            self.state = EditState.NOT_FOUND
            return EditOutcome(
                state=self.state,
                notification=Notification(
                    title="Not Found",
                    description="No data found for this ID.",
                    variant="destructive",
                ),
                error=e,
            )
        except Exception as e:
            logger.error(
                "Failed to fetch message",
                extra={"record_id": record_id, "error": str(e)},
            )
            self.state = EditState.FETCH_ERROR
            return EditOutcome(
                state=self.state,
                notification=Notification(
                    title="Error",
                    description="Failed to fetch data.",
                    variant="destructive",
                ),
                error=e,
            )

        self.snapshot = record
        self.state = EditState.LOADED

        return EditOutcome(
            state=self.state,
            notification=Notification(title="Success", description="Data loaded successfully."),
            record=record,
        )

    async def build_changes(
        self,
        form: MessageForm,
        selection: FileSelection,
        srt_text: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Partial update map for a submit: dirty fields, new file URLs, changed subtitle text.

        New files are uploaded here, so this performs I/O even when it
        returns only URL keys.
        """
        snapshot = self.snapshot
        changes = changed_fields(snapshot, form)

        if selection.files:
            urls = await self._uploader.upload_message_files(self.record_id, selection.files)
            for slot, url in urls.items():
                if url:
                    changes[URL_KEYS[slot]] = url

        if selection.subtitle is not None:
            final_text = decode_subtitle(selection.subtitle.data)
        elif srt_text is not None:
            final_text = srt_text
        else:
            final_text = snapshot.srt_content
        final_text = replace_watermark(final_text)

        if final_text != snapshot.srt_content:
            changes["srtContent"] = final_text

        return changes

    async def submit(
        self,
        form: MessageForm,
        selection: Optional[FileSelection] = None,
        srt_text: Optional[str] = None,
    ) -> EditOutcome:
        if self.snapshot is None or self.record_id is None:
            return EditOutcome(
                state=self.state,
                notification=Notification(
                    title="Load a message before updating.",
                    variant="destructive",
                ),
            )

        selection = selection or FileSelection()
        self.state = EditState.UPDATING

        try:
            changes = await self.build_changes(form, selection, srt_text)

            if not changes:
                self.state = EditState.LOADED
                return EditOutcome(
                    state=self.state,
                    notification=Notification(
                        title="No Changes",
                        description="No changes were detected to update.",
                    ),
                    record=self.snapshot,
                    no_changes=True,
                )

            self._store.update_record(self.record_id, changes)

        except Exception as e:
            logger.error(
                "Failed to update message",
                extra={
                    "record_id": self.record_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=not isinstance(e, MessageWorkflowError),
            )
            self.state = EditState.UPDATE_ERROR
            return EditOutcome(
                state=self.state,
                notification=Notification(
                    title="Error",
                    description="Failed to update content.",
                    variant="destructive",
                ),
                record=self.snapshot,
                error=e,
            )

        self.snapshot = self.snapshot.merged(changes)
        self.state = EditState.LOADED

        logger.info(
            "Message updated",
            extra={"record_id": self.record_id, "updated_keys": sorted(changes)},
        )

        return EditOutcome(
            state=self.state,
            notification=Notification(
                title="Update Successful!",
                description="Your content has been updated successfully.",
            ),
            record=self.snapshot,
            changes=changes,
        )

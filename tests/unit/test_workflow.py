"""
Tests for the create and edit workflows.

The workflows run against the real repository on the mock Snowflake
connection and the in-memory storage client. Failures are injected with
small stand-ins where a real backend would have to misbehave.
"""

import pytest

from saywith.core.messages.errors import StoreError, UploadError
from saywith.core.messages.models import (
    FileSelection,
    FileSlot,
    MessageForm,
    MessageRecord,
    UploadedFile,
)
from saywith.core.messages.text import WATERMARK_PHRASE, WATERMARK_REPLACEMENT
from saywith.core.messages.workflow import (
    GENERIC_FAILURE,
    CreateMessageWorkflow,
    CreateState,
    EditMessageWorkflow,
    EditState,
)
from saywith.infrastructure.snowflake.client import MockSnowflakeConnection
from saywith.infrastructure.snowflake.repositories.messages import MessageRepository
from saywith.infrastructure.storage.client import MockStorageClient

BASE_URL = "https://saywith.com/"


class CountingRepository(MessageRepository):
    """Repository that records partial updates it was asked to write."""

    def __init__(self, connection):
        super().__init__(connection)
        self.updates = []

    def update_record(self, record_id, partial):
        self.updates.append((record_id, dict(partial)))
        super().update_record(record_id, partial)


class FailingUploader:
    async def upload_message_files(self, record_id, files):
        raise UploadError("disk full")


class FailingWriteRepository(MessageRepository):
    def update_record(self, record_id, partial):
        raise StoreError("permission denied")


class FakeQRRenderer:
    def __init__(self, fail=False):
        self.fail = fail
        self.urls = []

    def render(self, url):
        self.urls.append(url)
        if self.fail:
            raise RuntimeError("font missing")
        return [b"png-1", b"png-2"]


def subtitle(text: str) -> UploadedFile:
    return UploadedFile(filename="captions.srt", content_type="application/x-subrip", data=text.encode())


@pytest.fixture
def connection() -> MockSnowflakeConnection:
    return MockSnowflakeConnection()


@pytest.fixture
def repository(connection) -> CountingRepository:
    return CountingRepository(connection)


@pytest.fixture
def storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def stored_id(repository) -> str:
    """A message already in the store."""
    record_id = repository.create_record()
    repository.write_record(
        record_id,
        MessageRecord(
            name="Promo",
            template="template1",
            media_url="mock://storage/old/media.mp4",
            srt_content="old subtitle",
        ),
    )
    return record_id


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreateMessageWorkflow:
    """Tests for the create controller."""

    @pytest.mark.asyncio
    async def test_create_without_files_stores_empty_urls(self, repository, storage, connection):
        """
        Given: a valid form and no files
        When: submitting
        Then: the record is written with empty URLs and subtitle
        """
        workflow = CreateMessageWorkflow(repository, storage, BASE_URL)

        outcome = await workflow.submit(
            MessageForm(name="Promo", template="template1"),
            FileSelection(),
        )

        assert outcome.state == CreateState.SUCCESS
        assert connection.payload("Saywith", outcome.record_id) == {
            "name": "Promo",
            "template": "template1",
            "enabled": False,
            "mute": False,
            "mediaUrl": "",
            "audioUrl": "",
            "srtContent": "",
        }
        assert outcome.share_url == BASE_URL + outcome.record_id
        assert outcome.notification.title == "Success!"

    @pytest.mark.asyncio
    async def test_files_land_under_record_id(self, repository, storage):
        workflow = CreateMessageWorkflow(repository, storage, BASE_URL)
        selection = FileSelection(
            files={
                FileSlot.MEDIA: UploadedFile("clip.final.mp4", "video/mp4", b"video"),
                FileSlot.AUDIO: UploadedFile("song.mp3", "audio/mpeg", b"audio"),
            }
        )

        outcome = await workflow.submit(MessageForm(name="Promo", template="template1"), selection)

        record_id = outcome.record_id
        assert outcome.record.media_url == f"mock://storage/messages/{record_id}/media.mp4"
        assert outcome.record.audio_url == f"mock://storage/messages/{record_id}/audio.mp3"
        assert storage.get_file(f"messages/{record_id}/media.mp4") == ("video/mp4", b"video")

    @pytest.mark.asyncio
    async def test_subtitle_is_stored_inline_with_watermark_replaced(self, repository, storage):
        workflow = CreateMessageWorkflow(repository, storage, BASE_URL)
        selection = FileSelection(subtitle=subtitle(f"1\nHello\n{WATERMARK_PHRASE}"))

        outcome = await workflow.submit(MessageForm(name="Promo", template="template1"), selection)

        stored = repository.fetch_record(outcome.record_id)
        assert stored.srt_content == f"1\nHello\n{WATERMARK_REPLACEMENT}"

    @pytest.mark.asyncio
    async def test_invalid_form_writes_nothing(self, repository, storage, connection):
        workflow = CreateMessageWorkflow(repository, storage, BASE_URL)

        outcome = await workflow.submit(MessageForm(name="P", template=""), FileSelection())

        assert outcome.state == CreateState.IDLE
        assert set(outcome.field_errors) == {"name", "template"}
        assert outcome.record_id is None
        assert connection.records == {}

    @pytest.mark.asyncio
    async def test_upload_failure_reports_generic_error(self, repository):
        workflow = CreateMessageWorkflow(repository, FailingUploader(), BASE_URL)
        form = MessageForm(name="Promo", template="template1")
        selection = FileSelection(files={FileSlot.MEDIA: UploadedFile("a.mp4", "video/mp4", b"x")})

        outcome = await workflow.submit(form, selection)

        assert outcome.state == CreateState.FAILED
        assert outcome.notification == GENERIC_FAILURE
        assert isinstance(outcome.error, UploadError)
        # Form is kept so the operator can resubmit
        assert workflow.form is form
        assert workflow.selection is selection

    @pytest.mark.asyncio
    async def test_success_resets_form(self, repository, storage):
        workflow = CreateMessageWorkflow(repository, storage, BASE_URL)

        await workflow.submit(MessageForm(name="Promo", template="template1", enabled=True), FileSelection())

        assert workflow.form == MessageForm()
        assert workflow.selection.is_empty

    @pytest.mark.asyncio
    async def test_qr_codes_rendered_for_share_url(self, repository, storage):
        renderer = FakeQRRenderer()
        workflow = CreateMessageWorkflow(repository, storage, BASE_URL, qr_renderer=renderer)

        outcome = await workflow.submit(MessageForm(name="Promo", template="template1"), FileSelection())

        assert renderer.urls == [outcome.share_url]
        assert outcome.qr_codes == [b"png-1", b"png-2"]

    @pytest.mark.asyncio
    async def test_qr_failure_does_not_fail_create(self, repository, storage):
        workflow = CreateMessageWorkflow(repository, storage, BASE_URL, qr_renderer=FakeQRRenderer(fail=True))

        outcome = await workflow.submit(MessageForm(name="Promo", template="template1"), FileSelection())

        assert outcome.state == CreateState.SUCCESS
        assert outcome.qr_codes == []


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------

class TestEditMessageWorkflowLoad:
    """Tests for loading a message into the edit controller."""

    def test_load_existing(self, repository, storage, stored_id):
        workflow = EditMessageWorkflow(repository, storage)

        outcome = workflow.load(stored_id)

        assert outcome.state == EditState.LOADED
        assert workflow.form.name == "Promo"
        assert workflow.srt_content == "old subtitle"

    def test_load_unknown_id(self, repository, storage):
        workflow = EditMessageWorkflow(repository, storage)

        outcome = workflow.load("zzz")

        assert outcome.state == EditState.NOT_FOUND
        assert outcome.notification.description == "No data found for this ID."
        assert workflow.snapshot is None

    def test_blank_id_is_rejected_without_fetch(self, repository, storage):
        workflow = EditMessageWorkflow(repository, storage)

        outcome = workflow.load("   ")

        assert outcome.state == EditState.EMPTY
        assert outcome.notification.title == "Please enter an ID."

    def test_store_error_is_fetch_error(self, storage):
        class BrokenStore:
            def fetch_record(self, record_id):
                raise StoreError("network down")

        workflow = EditMessageWorkflow(BrokenStore(), storage)

        outcome = workflow.load("abc")

        assert outcome.state == EditState.FETCH_ERROR
        assert outcome.notification.description == "Failed to fetch data."


class TestEditMessageWorkflowSubmit:
    """Tests for partial updates from the edit controller."""

    @pytest.mark.asyncio
    async def test_only_changed_flag_is_written(self, repository, storage, stored_id):
        """
        Given: a loaded message
        When: only `enabled` is toggled on the pre-filled form
        Then: the partial update is exactly {"enabled": True}
        """
        workflow = EditMessageWorkflow(repository, storage)
        workflow.load(stored_id)
        form = workflow.form
        form.enabled = True

        outcome = await workflow.submit(form)

        assert outcome.changes == {"enabled": True}
        assert repository.updates == [(stored_id, {"enabled": True})]
        assert repository.fetch_record(stored_id).enabled is True
        assert outcome.record.enabled is True

    @pytest.mark.asyncio
    async def test_no_changes_issues_no_write(self, repository, storage, stored_id):
        workflow = EditMessageWorkflow(repository, storage)
        workflow.load(stored_id)

        outcome = await workflow.submit(workflow.form)

        assert outcome.no_changes is True
        assert outcome.notification.title == "No Changes"
        assert outcome.state == EditState.LOADED
        assert repository.updates == []

    @pytest.mark.asyncio
    async def test_new_media_replaces_only_media_url(self, repository, storage, stored_id):
        workflow = EditMessageWorkflow(repository, storage)
        workflow.load(stored_id)
        selection = FileSelection(files={FileSlot.MEDIA: UploadedFile("new.webm", "video/webm", b"v2")})

        outcome = await workflow.submit(MessageForm(), selection)

        assert outcome.changes == {"mediaUrl": f"mock://storage/messages/{stored_id}/media.webm"}
        stored = repository.fetch_record(stored_id)
        assert stored.name == "Promo"
        assert stored.srt_content == "old subtitle"

    @pytest.mark.asyncio
    async def test_edited_subtitle_text_is_watermark_cleaned(self, repository, storage, stored_id):
        workflow = EditMessageWorkflow(repository, storage)
        workflow.load(stored_id)

        outcome = await workflow.submit(MessageForm(), srt_text=f"new\n{WATERMARK_PHRASE}")

        assert outcome.changes == {"srtContent": f"new\n{WATERMARK_REPLACEMENT}"}

    @pytest.mark.asyncio
    async def test_subtitle_file_wins_over_text(self, repository, storage, stored_id):
        workflow = EditMessageWorkflow(repository, storage)
        workflow.load(stored_id)

        outcome = await workflow.submit(
            MessageForm(),
            FileSelection(subtitle=subtitle("from file")),
            srt_text="from textarea",
        )

        assert outcome.changes == {"srtContent": "from file"}

    @pytest.mark.asyncio
    async def test_unchanged_subtitle_text_is_not_written(self, repository, storage, stored_id):
        workflow = EditMessageWorkflow(repository, storage)
        workflow.load(stored_id)

        outcome = await workflow.submit(MessageForm(), srt_text="old subtitle")

        assert outcome.no_changes is True

    @pytest.mark.asyncio
    async def test_submit_before_load_is_rejected(self, repository, storage):
        workflow = EditMessageWorkflow(repository, storage)

        outcome = await workflow.submit(MessageForm(enabled=True))

        assert outcome.state == EditState.EMPTY
        assert repository.updates == []

    @pytest.mark.asyncio
    async def test_write_failure_keeps_snapshot(self, connection, storage):
        repository = FailingWriteRepository(connection)
        record_id = repository.create_record()
        repository.write_record(record_id, MessageRecord(name="Promo", template="template1"))
        workflow = EditMessageWorkflow(repository, storage)
        workflow.load(record_id)

        outcome = await workflow.submit(MessageForm(mute=True))

        assert outcome.state == EditState.UPDATE_ERROR
        assert outcome.notification.description == "Failed to update content."
        assert workflow.snapshot.mute is False

    @pytest.mark.asyncio
    async def test_upload_failure_during_edit(self, repository, stored_id):
        workflow = EditMessageWorkflow(repository, FailingUploader())
        workflow.load(stored_id)
        selection = FileSelection(files={FileSlot.AUDIO: UploadedFile("a.mp3", "audio/mpeg", b"x")})

        outcome = await workflow.submit(MessageForm(enabled=True), selection)

        assert outcome.state == EditState.UPDATE_ERROR
        assert repository.updates == []

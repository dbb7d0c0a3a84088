"""
Upload client for the custom REST upload endpoint.

The endpoint takes one multipart POST per message:
- folder: the record id
- file1: media file, renamed media.{ext}
- file2: audio file, renamed audio.{ext}

and answers with JSON {"file1URL": ..., "file2URL": ...} on success or
{"error": ...} with a non-2xx status. Both files go up in the same
request, so a message never ends up with only half of a replacement.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from saywith.core.messages.errors import UploadError
from saywith.core.messages.models import FileSlot, UploadedFile

logger = logging.getLogger(__name__)

SLOT_FIELDS = {
    FileSlot.MEDIA: "file1",
    FileSlot.AUDIO: "file2",
}


class CustomUploadClient:
    """
    Async client for the custom upload endpoint.

    A session can be passed in to share connections (or to stub the
    transport in tests); otherwise one is opened per request.
    """

    def __init__(
        self,
        upload_url: str,
        timeout_seconds: int = 120,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._upload_url = upload_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session

    async def upload(
        self,
        data: bytes,
        destination_path: str,
        content_type: str,
    ) -> str:
        """
        Upload a single file as file1 of the folder in destination_path.

        destination_path is "{folder}/{filename}".
        """
        folder, _, filename = destination_path.rpartition("/")
        form = aiohttp.FormData()
        form.add_field("folder", folder)
        form.add_field("file1", data, filename=filename, content_type=content_type)

        payload = await self._post(form, folder)
        url = payload.get("file1URL")
        if not url:
            raise UploadError("Upload response did not include a file URL")
        return url

    async def upload_message_files(
        self,
        record_id: str,
        files: dict[FileSlot, UploadedFile],
    ) -> dict[FileSlot, str]:
        """Send all files of a message in one request. No request is made for no files."""
        if not files:
            return {}

        form = aiohttp.FormData()
        form.add_field("folder", record_id)
        for slot, file in files.items():
            form.add_field(
                SLOT_FIELDS[slot],
                file.data,
                filename=file.stored_name(slot),
                content_type=file.content_type,
            )

        payload = await self._post(form, record_id)

        urls = {}
        for slot in files:
            url = payload.get(f"{SLOT_FIELDS[slot]}URL")
            if url:
                urls[slot] = url

        logger.info(
            "Uploaded message files to custom backend",
            extra={"record_id": record_id, "slots": [slot.value for slot in urls]},
        )

        return urls

    async def _post(self, form: aiohttp.FormData, folder: str) -> dict[str, Any]:
        if self._session is not None:
            return await self._send(self._session, form, folder)

        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            return await self._send(session, form, folder)

    async def _send(self, session: Any, form: aiohttp.FormData, folder: str) -> dict[str, Any]:
        try:
            async with session.post(self._upload_url, data=form) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(
                "Custom upload request failed",
                extra={"folder": folder, "error": str(e)},
            )
            raise UploadError(f"Upload failed: {e}") from e

        ok = 200 <= status < 300
        if not isinstance(payload, dict):
            if ok:
                logger.error("Custom upload returned an unreadable body", extra={"folder": folder})
                raise UploadError("Upload response was not valid JSON")
            payload = {}

        if not ok:
            message = payload.get("error") or "Upload failed"
            logger.error(
                "Custom upload rejected",
                extra={"folder": folder, "status": status, "error": message},
            )
            raise UploadError(message)

        return payload

"""
Domain models for SayWith messages.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs. The store speaks in flat
camelCase maps; translation to and from that shape lives here so both
store backends agree on it.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional


class FileSlot(Enum):
    """Binary file roles a message can carry."""
    MEDIA = "media"  # image or video
    AUDIO = "audio"


# Python attribute name -> key in the stored document
STORE_KEYS = {
    "name": "name",
    "template": "template",
    "enabled": "enabled",
    "mute": "mute",
    "media_url": "mediaUrl",
    "audio_url": "audioUrl",
    "srt_content": "srtContent",
}

URL_KEYS = {
    FileSlot.MEDIA: "mediaUrl",
    FileSlot.AUDIO: "audioUrl",
}

EDITABLE_FIELDS = ("name", "template", "enabled", "mute")


def derive_extension(filename: str) -> str:
    """
    Extension of a filename: everything after the last dot.

    >>> derive_extension("clip.final.mp4")
    'mp4'
    >>> derive_extension("noext")
    ''
    """
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class UploadedFile:
    """A file chosen by the operator, with its declared content type."""
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return derive_extension(self.filename)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def stored_name(self, slot: FileSlot) -> str:
        """Name the file is stored under: the slot role plus the original extension."""
        if not self.extension:
            return slot.value
        return f"{slot.value}.{self.extension}"


@dataclass(frozen=True)
class Template:
    """One entry of the presentation template catalog."""
    value: str
    label: str


@dataclass
class MessageRecord:
    """
    One persisted message.

    The identifier is not part of the record value; the store keys records
    by it and it never changes after creation.
    """
    name: str = ""
    template: str = ""
    enabled: bool = False
    mute: bool = False
    media_url: str = ""
    audio_url: str = ""
    srt_content: str = ""

    def to_store(self) -> dict[str, Any]:
        """Flat document as written to the store."""
        return {STORE_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_store(cls, document: dict[str, Any]) -> "MessageRecord":
        """
        Build a record from a stored document.

        Missing keys fall back to defaults so documents written before
        `mute` existed still load.
        """
        values = {}
        for attr, key in STORE_KEYS.items():
            if key in document and document[key] is not None:
                values[attr] = document[key]
        return cls(**values)

    def merged(self, partial: dict[str, Any]) -> "MessageRecord":
        """Copy of this record with a partial store document applied."""
        document = self.to_store()
        document.update(partial)
        return MessageRecord.from_store(document)


@dataclass
class MessageForm:
    """
    Values the operator entered for the editable fields.

    In the create flow unset values fall back to record defaults. In the
    edit flow `None` means the operator did not touch that field.
    """
    name: Optional[str] = None
    template: Optional[str] = None
    enabled: Optional[bool] = None
    mute: Optional[bool] = None

    @classmethod
    def from_record(cls, record: MessageRecord) -> "MessageForm":
        return cls(
            name=record.name,
            template=record.template,
            enabled=record.enabled,
            mute=record.mute,
        )


def changed_fields(snapshot: MessageRecord, form: MessageForm) -> dict[str, Any]:
    """
    Store keys and values for the form fields that differ from the snapshot.

    Untouched fields (None) are never dirty. Text fields are only sent
    when non-empty; clearing a name or template is not supported.
    """
    changes: dict[str, Any] = {}
    for attr in EDITABLE_FIELDS:
        value = getattr(form, attr)
        if value is None or value == getattr(snapshot, attr):
            continue
        if isinstance(value, str) and not value:
            continue
        changes[STORE_KEYS[attr]] = value
    return changes


@dataclass
class FileSelection:
    """Files picked in a form, by slot, plus an optional subtitle file."""
    files: dict[FileSlot, UploadedFile] = field(default_factory=dict)
    subtitle: Optional[UploadedFile] = None

    @property
    def is_empty(self) -> bool:
        return not self.files and self.subtitle is None

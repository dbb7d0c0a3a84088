"""
Message records and the create/edit workflows around them.
"""

from .catalog import load_template_catalog
from .errors import (
    MessageWorkflowError,
    RecordNotFoundError,
    StoreError,
    UploadError,
    ValidationError,
)
from .models import (
    FileSelection,
    FileSlot,
    MessageForm,
    MessageRecord,
    Template,
    UploadedFile,
    changed_fields,
    derive_extension,
)
from .text import WATERMARK_PHRASE, WATERMARK_REPLACEMENT, replace_watermark
from .workflow import (
    BlobUploader,
    CreateMessageWorkflow,
    CreateOutcome,
    CreateState,
    EditMessageWorkflow,
    EditOutcome,
    EditState,
    MessageStore,
    Notification,
    QRCodeRenderer,
)

__all__ = [
    "BlobUploader",
    "CreateMessageWorkflow",
    "CreateOutcome",
    "CreateState",
    "EditMessageWorkflow",
    "EditOutcome",
    "EditState",
    "FileSelection",
    "FileSlot",
    "MessageForm",
    "MessageRecord",
    "MessageStore",
    "MessageWorkflowError",
    "Notification",
    "QRCodeRenderer",
    "RecordNotFoundError",
    "StoreError",
    "Template",
    "UploadError",
    "UploadedFile",
    "ValidationError",
    "WATERMARK_PHRASE",
    "WATERMARK_REPLACEMENT",
    "changed_fields",
    "derive_extension",
    "load_template_catalog",
    "replace_watermark",
]

"""
Error taxonomy for the message workflows.

Infrastructure clients translate library exceptions (botocore, aiohttp,
snowflake) into these so the workflows only ever handle one family.
"""


class MessageWorkflowError(Exception):
    """Base class for errors surfaced by the message workflows."""
    pass


class ValidationError(MessageWorkflowError):
    """Raised when required form fields are missing. Carries one message per field."""

    def __init__(self, field_errors: dict[str, str]) -> None:
        self.field_errors = field_errors
        super().__init__(
            "; ".join(f"{name}: {message}" for name, message in field_errors.items())
        )


class UploadError(MessageWorkflowError):
    """Raised when a blob upload fails. The message is the server's reported reason."""
    pass


class RecordNotFoundError(MessageWorkflowError):
    """Raised when no record exists for an identifier."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record {record_id} not found")


class StoreError(MessageWorkflowError):
    """Raised when a store read or write fails for any reason other than not-found."""
    pass

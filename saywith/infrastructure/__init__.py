"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Message record persistence
- storage: Blob uploads (R2/S3 or the custom upload endpoint)
- qr: QR code rendering

These wrappers translate between external formats and our domain models.
"""

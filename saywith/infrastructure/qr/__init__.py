"""
QR code rendering.

Implements the QRCodeRenderer protocol from core.messages.workflow.
"""

from .generator import (
    QRCodeGenerator,
    QRStyle,
    build_qr_zip,
    qr_zip_content_disposition,
    qr_zip_filename,
)

__all__ = [
    "QRCodeGenerator",
    "QRStyle",
    "build_qr_zip",
    "qr_zip_content_disposition",
    "qr_zip_filename",
]

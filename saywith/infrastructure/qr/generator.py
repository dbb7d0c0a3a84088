"""
QR code rendering for message share links.

Every new message gets the same four branded variants of its share link,
rendered as 300x300 PNGs with high error correction so they still scan
when printed small or partly covered by a logo sticker.
"""

import io
import logging
import zipfile
from dataclasses import dataclass
from urllib.parse import quote

import qrcode
from PIL import Image, ImageColor
from qrcode.image.styledpil import StyledPilImage
from qrcode.image.styles.colormasks import SolidFillColorMask
from qrcode.image.styles.moduledrawers.pil import (
    CircleModuleDrawer,
    GappedSquareModuleDrawer,
    RoundedModuleDrawer,
    SquareModuleDrawer,
)

logger = logging.getLogger(__name__)

IMAGE_SIZE = 300

MODULE_DRAWERS = {
    "rounded": RoundedModuleDrawer,
    "dots": CircleModuleDrawer,
    "classy-rounded": GappedSquareModuleDrawer,
    "square": SquareModuleDrawer,
}


@dataclass(frozen=True)
class QRStyle:
    """Colours and module shape for one QR variant."""
    dots_color: str
    background_color: str
    module_shape: str


DEFAULT_STYLES = (
    QRStyle(dots_color="#FFA500", background_color="#121212", module_shape="rounded"),
    QRStyle(dots_color="#ADFF2F", background_color="#FFFFFF", module_shape="dots"),
    QRStyle(dots_color="#121212", background_color="#FFA500", module_shape="classy-rounded"),
    QRStyle(dots_color="#FFFFFF", background_color="#ADFF2F", module_shape="square"),
)


class QRCodeGenerator:
    """Renders share-link QR codes in each configured style."""

    def __init__(self, styles: tuple[QRStyle, ...] = DEFAULT_STYLES, size: int = IMAGE_SIZE) -> None:
        self._styles = styles
        self._size = size

    def render(self, url: str) -> list[bytes]:
        """One PNG per style, in style order."""
        images = [self._render_one(url, style) for style in self._styles]

        logger.debug(
            "Rendered QR codes",
            extra={"url": url, "count": len(images)},
        )

        return images

    def _render_one(self, url: str, style: QRStyle) -> bytes:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=4,
        )
        qr.add_data(url)
        qr.make(fit=True)

        img = qr.make_image(
            image_factory=StyledPilImage,
            module_drawer=MODULE_DRAWERS[style.module_shape](),
            color_mask=SolidFillColorMask(
                back_color=ImageColor.getrgb(style.background_color),
                front_color=ImageColor.getrgb(style.dots_color),
            ),
        )

        pil_image = img.get_image().convert("RGB")
        pil_image = pil_image.resize((self._size, self._size), Image.Resampling.NEAREST)

        buffer = io.BytesIO()
        pil_image.save(buffer, format="PNG")
        return buffer.getvalue()


def build_qr_zip(images: list[bytes]) -> bytes:
    """ZIP archive with the images as qrcode-style-1.png, qrcode-style-2.png, ..."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for index, image in enumerate(images, start=1):
            archive.writestr(f"qrcode-style-{index}.png", image)
    return buffer.getvalue()


def qr_zip_filename(name: str, ascii_only: bool = False) -> str:
    """Download name for a message's QR archive. Letters, digits, spaces, dashes and underscores survive."""
    safe_name = "".join(
        c for c in name
        if (c.isalnum() and (c.isascii() or not ascii_only)) or c in "-_ "
    ).strip() or "saywith"
    return f"{safe_name}-qrcodes.zip"


def qr_zip_content_disposition(name: str) -> str:
    """
    Content-Disposition for the archive download.

    Header values are latin-1 on the wire, so `filename` carries an ASCII
    fallback and `filename*` the full UTF-8 name (RFC 5987).
    """
    fallback = qr_zip_filename(name, ascii_only=True)
    encoded = quote(qr_zip_filename(name), safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"

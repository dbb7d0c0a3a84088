"""
Subtitle text post-processing.

Transcripts exported from the free TurboScribe tier carry an upsell line.
It is swapped for our own attribution before anything reaches the store.
"""

import re

WATERMARK_PHRASE = "Transcribed by TurboScribe.ai. Go Unlimited to remove this message"
WATERMARK_REPLACEMENT = "made by SayWith"

_WATERMARK_PATTERN = re.compile(re.escape(WATERMARK_PHRASE))


def replace_watermark(text: str) -> str:
    """Replace every occurrence of the watermark phrase. Idempotent."""
    return _WATERMARK_PATTERN.sub(WATERMARK_REPLACEMENT, text)


def decode_subtitle(data: bytes) -> str:
    """Read an uploaded .srt/.txt file as text, tolerating a UTF-8 BOM."""
    return data.decode("utf-8-sig", errors="replace")

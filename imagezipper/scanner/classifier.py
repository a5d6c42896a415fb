from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Tuple

import magic

# Enough bytes to cover every signature below, including ISO-BMFF brands.
HEADER_WINDOW = 261

logger = logging.getLogger(__name__)


def _prefix(signature: bytes) -> Callable[[bytes], bool]:
    return lambda window: window.startswith(signature)


def _riff_webp(window: bytes) -> bool:
    return len(window) >= 12 and window[:4] == b"RIFF" and window[8:12] == b"WEBP"


def _bmp(window: bytes) -> bool:
    # "BM" alone is too common in text; require a plausible DIB header size.
    if len(window) < 18 or window[:2] != b"BM":
        return False
    dib_size = int.from_bytes(window[14:18], "little")
    return dib_size in (12, 40, 52, 56, 64, 108, 124)


def _ico(window: bytes) -> bool:
    return len(window) >= 6 and window[:4] == b"\x00\x00\x01\x00" and window[4:6] != b"\x00\x00"


def _iso_bmff_brand(*brands: bytes) -> Callable[[bytes], bool]:
    def match(window: bytes) -> bool:
        return len(window) >= 12 and window[4:8] == b"ftyp" and window[8:12] in brands

    return match


# Ordered (label, matcher) pairs; the first match wins.
IMAGE_SIGNATURES: Tuple[Tuple[str, Callable[[bytes], bool]], ...] = (
    ("jpeg", _prefix(b"\xff\xd8\xff")),
    ("png", _prefix(b"\x89PNG\r\n\x1a\n")),
    ("gif", lambda window: window[:6] in (b"GIF87a", b"GIF89a")),
    ("webp", _riff_webp),
    ("bmp", _bmp),
    ("tiff", lambda window: window[:4] in (b"II*\x00", b"MM\x00*")),
    ("ico", _ico),
    ("psd", _prefix(b"8BPS")),
    ("jp2", _prefix(b"\x00\x00\x00\x0cjP  \r\n\x87\n")),
    ("heif", _iso_bmff_brand(b"heic", b"heix", b"hevc", b"heim", b"heis", b"mif1", b"msf1")),
    ("avif", _iso_bmff_brand(b"avif", b"avis")),
    ("jxr", _prefix(b"II\xbc")),
    ("exr", _prefix(b"v/1\x01")),
)

# Short or common prefixes that plain data can start with by accident. A match
# on one of these still needs libmagic to report an image MIME type.
WEAK_SIGNATURES = frozenset({"bmp", "ico", "tiff", "jxr"})


def detect_image_kind(window: bytes) -> Optional[str]:
    """Return the label of the image signature ``window`` starts with, if any."""
    for kind, matches in IMAGE_SIGNATURES:
        if matches(window):
            return kind
    return None


def classify(window: bytes) -> bool:
    """
    Decide whether a file's leading bytes belong to an image.

    A window is an image when it starts with a known image signature. A short
    file's whole content is classified as-is, so a bare signature counts.
    Matches on weak signatures are also checked with libmagic, which must
    report ``image/*``. Windows too short for any signature, empty ones
    included, are rejected without consulting libmagic.
    """
    kind = detect_image_kind(window)
    if kind is None:
        return False
    if kind not in WEAK_SIGNATURES:
        return True

    try:
        mime = magic.from_buffer(window, mime=True)
    except magic.MagicException as exc:
        logger.warning("libmagic could not inspect a %s candidate: %s", kind, exc)
        return False

    if not mime.startswith("image/"):
        logger.debug("Signature looked like %s but libmagic reported %s", kind, mime)
        return False
    return True


def read_window(path: str | Path, size: int = HEADER_WINDOW) -> bytes:
    """Read up to ``size`` leading bytes; OSError propagates to the caller."""
    with open(path, "rb") as handle:
        return handle.read(size)

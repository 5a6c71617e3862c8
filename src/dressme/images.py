"""Normalise user uploads into an encoding the Gemini image API accepts.

PNG and JPEG go through untouched. GIF, WEBP, AVIF, HEIC and HEIF are decoded
with Pillow (HEIC/HEIF via ``pillow-heif``) and re-encoded as PNG at their
native size. Every successful call returns an :class:`UploadedImage` whose
preview data URI and API payload describe exactly the same bytes.
"""

from __future__ import annotations

import base64
import logging
import mimetypes
import struct
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, FrozenSet, Tuple

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from dressme.errors import ConversionFailed, UnsupportedFormat

register_heif_opener()

logger = logging.getLogger("dressme.images")

CANONICAL_MIME_TYPE: str = "image/png"

ACCEPTED_MIME_TYPES: FrozenSet[str] = frozenset({"image/png", "image/jpeg"})

CONVERSION_MIME_TYPES: FrozenSet[str] = frozenset(
    {
        "image/gif",
        "image/webp",
        "image/avif",
        "image/heic",
        "image/heif",
    }
)

# Pillow's 0-100 quality scale; only passed to encoders that understand it.
ENCODER_QUALITY: int = 95

_MIME_ALIASES: Dict[str, str] = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}
_PILLOW_FORMATS: Dict[str, str] = {"image/png": "PNG", "image/jpeg": "JPEG"}
_QUALITY_FORMATS: FrozenSet[str] = frozenset({"JPEG", "WEBP", "AVIF"})
_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    ValueError,
    EOFError,
    SyntaxError,
    struct.error,
)

for _mime, _ext in (
    ("image/webp", ".webp"),
    ("image/avif", ".avif"),
    ("image/heic", ".heic"),
    ("image/heif", ".heif"),
):
    mimetypes.add_type(_mime, _ext)


@dataclass(frozen=True, slots=True)
class SourceFile:
    """The file exactly as the user picked it."""

    name: str
    content_type: str
    data: bytes


@dataclass(frozen=True, slots=True)
class UploadedImage:
    source: SourceFile
    preview_uri: str
    encoded_bytes: bytes
    mime_type: str

    @property
    def base64(self) -> str:
        """Base64 payload for inline API transmission."""

        return base64.b64encode(self.encoded_bytes).decode("ascii")

    @property
    def size(self) -> Tuple[int, int]:
        with Image.open(BytesIO(self.encoded_bytes)) as img:
            return img.size


def to_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def canonical_content_type(content_type: str | None) -> str:
    """Lower-case the MIME type, drop parameters and resolve common aliases."""

    cleaned = (content_type or "").split(";", 1)[0].strip().lower()
    return _MIME_ALIASES.get(cleaned, cleaned)


def _has_alpha(img: Image.Image) -> bool:
    if img.mode in ("RGBA", "LA", "PA", "RGBa", "La"):
        return True
    return img.mode == "P" and "transparency" in img.info


def _encoder_options(pillow_format: str) -> Dict[str, int]:
    if pillow_format in _QUALITY_FORMATS:
        return {"quality": ENCODER_QUALITY}
    return {}


def _verify_passthrough(data: bytes, mime_type: str) -> None:
    """Check that passthrough bytes really are the declared format.

    Pillow's ``verify()`` walks every PNG chunk and its CRC, so truncated or
    damaged PNGs are rejected. For JPEG it only parses the header, so a file
    cut short after its header still passes through unchanged.
    """

    expected = _PILLOW_FORMATS[mime_type]
    try:
        with Image.open(BytesIO(data)) as img:
            actual = img.format
            img.verify()
    except _DECODE_ERRORS as exc:
        raise ConversionFailed() from exc
    if actual != expected:
        raise ConversionFailed(
            f"The file claims to be {mime_type} but contains {actual or 'unknown'} data."
        )


def convert_to_png(data: bytes) -> Tuple[bytes, Tuple[int, int]]:
    """Decode ``data`` and re-encode its first frame as PNG.

    Returns the PNG bytes and the (width, height) of the decoded image.
    Raises :class:`ConversionFailed` if either step fails.
    """

    if not data:
        raise ConversionFailed("The image file is empty.")

    try:
        with Image.open(BytesIO(data)) as img:
            img.seek(0)
            img.load()
            size = img.size
            frame = img.convert("RGBA" if _has_alpha(img) else "RGB")

        buffer = BytesIO()
        frame.save(buffer, format="PNG", **_encoder_options("PNG"))
    except _DECODE_ERRORS as exc:
        raise ConversionFailed() from exc

    return buffer.getvalue(), size


def normalize_image(data: bytes, content_type: str | None, name: str = "upload") -> UploadedImage:
    """Build an :class:`UploadedImage` from raw upload bytes."""

    mime_type = canonical_content_type(content_type)
    source = SourceFile(name=name, content_type=content_type or "", data=data)

    if not mime_type.startswith("image/"):
        raise UnsupportedFormat(f"'{name}' is not an image ({content_type or 'unknown type'}).")

    if mime_type in ACCEPTED_MIME_TYPES:
        if not data:
            raise ConversionFailed("The image file is empty.")
        _verify_passthrough(data, mime_type)
        logger.debug("Passing %s through unchanged (%s, %d bytes)", name, mime_type, len(data))
        return UploadedImage(
            source=source,
            preview_uri=to_data_uri(data, mime_type),
            encoded_bytes=data,
            mime_type=mime_type,
        )

    if mime_type not in CONVERSION_MIME_TYPES:
        raise UnsupportedFormat(f"'{name}' uses an unsupported image type ({mime_type}).")

    png_bytes, (width, height) = convert_to_png(data)
    logger.info("Converted %s from %s to PNG (%dx%d)", name, mime_type, width, height)
    return UploadedImage(
        source=source,
        preview_uri=to_data_uri(png_bytes, CANONICAL_MIME_TYPE),
        encoded_bytes=png_bytes,
        mime_type=CANONICAL_MIME_TYPE,
    )


def normalize_path(path: Path) -> UploadedImage:
    """Read an image from disk, guessing its content type from the extension."""

    path = Path(path)
    mime_type, _ = mimetypes.guess_type(path.as_posix())
    if not mime_type:
        raise UnsupportedFormat(
            f"Could not infer a MIME type for '{path.name}'. Rename it with a known extension."
        )
    if not path.is_file():
        raise FileNotFoundError(f"Image '{path}' does not exist.")

    return normalize_image(path.read_bytes(), mime_type, name=path.name)

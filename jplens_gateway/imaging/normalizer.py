"""Image normalization: validate an upload and bound its size.

Every accepted upload is decoded once. Images whose longest side already fits
the bound are passed through byte-for-byte; larger ones are downscaled
(aspect ratio preserved, never enlarged) and re-encoded as JPEG.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from jplens_gateway.core.errors import InvalidImageError

logger = logging.getLogger(__name__)

CANONICAL_CONTENT_TYPE = "image/jpeg"

# Declared MIME type -> Pillow formats the decoded data may report.
# Camera JPEGs carrying an MPF block open as "MPO".
_JPEG_FORMATS = frozenset({"JPEG", "MPO"})

_FORMATS_BY_MIME_TYPE: dict[str, frozenset[str]] = {
    "image/jpeg": _JPEG_FORMATS,
    "image/jpg": _JPEG_FORMATS,
    "image/pjpeg": _JPEG_FORMATS,
    "image/png": frozenset({"PNG"}),
    "image/gif": frozenset({"GIF"}),
    "image/webp": frozenset({"WEBP"}),
    "image/bmp": frozenset({"BMP"}),
    "image/x-bmp": frozenset({"BMP"}),
    "image/x-ms-bmp": frozenset({"BMP"}),
}

ALLOWED_IMAGE_TYPES: frozenset[str] = frozenset(_FORMATS_BY_MIME_TYPE)

_DECODE_ERRORS = (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError)


def is_allowed_type(content_type: str | None) -> bool:
    return _base_mime_type(content_type) in ALLOWED_IMAGE_TYPES


def _base_mime_type(content_type: str | None) -> str:
    # "image/png; charset=binary" -> "image/png"
    return (content_type or "").split(";", 1)[0].strip().lower()


@dataclass(frozen=True)
class NormalizedImage:
    data: bytes
    width: int
    height: int
    format: str          # Pillow format tag of ``data`` (JPEG after a resize)
    resized: bool

    @property
    def content_type(self) -> str:
        # Downstream always receives the canonical type.
        return CANONICAL_CONTENT_TYPE


class ImageNormalizer:
    def __init__(self, max_side: int = 500, jpeg_quality: int = 90) -> None:
        self._max_side = max_side
        self._jpeg_quality = jpeg_quality

    @property
    def max_side(self) -> int:
        return self._max_side

    def normalize(self, data: bytes, declared_type: str | None) -> NormalizedImage:
        """Validate *data* and return it bounded to ``max_side`` pixels.

        Raises:
            InvalidImageError: empty buffer, disallowed type, undecodable
                data or non-positive dimensions.
        """
        if not data:
            raise InvalidImageError("empty image buffer")

        mime_type = _base_mime_type(declared_type)
        expected_formats = _FORMATS_BY_MIME_TYPE.get(mime_type)
        if expected_formats is None:
            raise InvalidImageError(f"unsupported image type {declared_type!r}")

        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except _DECODE_ERRORS as exc:
            logger.info("image_decode_failed", extra={"error": str(exc), "declared_type": mime_type})
            raise InvalidImageError("corrupt or unsupported image data") from exc

        if img.format not in expected_formats:
            logger.info(
                "image_type_mismatch",
                extra={"declared_type": mime_type, "decoded_format": img.format},
            )
            raise InvalidImageError("corrupt or unsupported image data")

        width, height = img.size
        if width <= 0 or height <= 0:
            raise InvalidImageError("invalid dimensions")

        if width <= self._max_side and height <= self._max_side:
            return NormalizedImage(
                data=data, width=width, height=height, format=img.format, resized=False
            )

        return self._downscale(img)

    def _downscale(self, img: Image.Image) -> NormalizedImage:
        try:
            oriented = ImageOps.exif_transpose(img)
        except _DECODE_ERRORS as exc:
            raise InvalidImageError("corrupt or unsupported image data") from exc

        width, height = oriented.size
        target = self.target_size(width, height)
        # Palette and bilevel modes would make resize fall back to NEAREST.
        if oriented.mode not in ("RGB", "L"):
            oriented = oriented.convert("RGB")
        resized = oriented.resize(target, Image.Resampling.LANCZOS)

        buf = io.BytesIO()
        resized.save(buf, format="JPEG", quality=self._jpeg_quality)

        logger.info(
            "image_downscaled",
            extra={"from_size": f"{width}x{height}", "to_size": f"{target[0]}x{target[1]}"},
        )
        return NormalizedImage(
            data=buf.getvalue(), width=target[0], height=target[1], format="JPEG", resized=True
        )

    def target_size(self, width: int, height: int) -> tuple[int, int]:
        """Scale (width, height) so the longest side equals ``max_side``; never enlarge."""
        longest = max(width, height)
        if longest <= self._max_side:
            return width, height
        scale = self._max_side / longest
        if width >= height:
            return self._max_side, max(1, round(height * scale))
        return max(1, round(width * scale)), self._max_side

from __future__ import annotations

import io
import logging

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError
from .models import CompressOptions, ResizeMode, ResizeOptions

logger = logging.getLogger(__name__)

_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "PNG"),
    (b"\xff\xd8\xff", "JPEG"),
    (b"GIF87a", "GIF"),
    (b"GIF89a", "GIF"),
    (b"BM", "BMP"),
    (b"II*\x00", "TIFF"),
    (b"MM\x00*", "TIFF"),
]
_AVIF_BRANDS = {b"avif", b"avis"}


def sniff_format(data: bytes) -> str | None:
    """Return the Pillow format name announced by the magic bytes, if any."""
    for signature, name in _SIGNATURES:
        if data.startswith(signature):
            return name
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "WEBP"
    if len(data) >= 12 and data[4:8] == b"ftyp" and data[8:12] in _AVIF_BRANDS:
        return "AVIF"
    return None


def decode_image(data: bytes) -> Image.Image:
    source_format = sniff_format(data)
    formats = [source_format] if source_format else None
    try:
        image = Image.open(io.BytesIO(data), formats=formats)
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as exc:
        raise DecodeError("failed to decode image") from exc
    logger.debug("decoded %s image %sx%s (%s)", image.format or "unknown", image.width, image.height, image.mode)
    return image


def fit_dimensions(width: int, height: int, max_width: int | None, max_height: int | None) -> tuple[int, int]:
    ratios = []
    if max_width is not None:
        ratios.append(max_width / width)
    if max_height is not None:
        ratios.append(max_height / height)
    ratio = min(ratios)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def resize_image(image: Image.Image, options: ResizeOptions) -> Image.Image:
    if options.mode is ResizeMode.EXACT:
        size = (options.width, options.height)
    else:
        size = fit_dimensions(image.width, image.height, options.width, options.height)
    if image.mode == "P":
        image = image.convert("RGBA" if "transparency" in image.info else "RGB")
    elif image.mode == "1":
        image = image.convert("L")
    if image.size == size:
        return image
    return image.resize(size, Image.Resampling.LANCZOS)


def decode_and_prepare(data: bytes, options: CompressOptions) -> Image.Image:
    image = decode_image(data)
    if options.resize is not None:
        resized = resize_image(image, options.resize)
        logger.debug("resized %sx%s -> %sx%s", image.width, image.height, resized.width, resized.height)
        if resized is not image:
            resized.info = dict(image.info)
            image.close()
        image = resized
    return image

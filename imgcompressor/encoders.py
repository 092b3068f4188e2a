from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Callable, Union

import oxipng
from PIL import Image

from .errors import EncodeError
from .models import CompressOptions, OutputFormat

logger = logging.getLogger(__name__)

DEFAULT_JPEG_QUALITY = 85
DEFAULT_WEBP_QUALITY = 85
DEFAULT_AVIF_QUALITY = 80
DEFAULT_PNG_LEVEL = 2
DEFAULT_AVIF_SPEED = 4
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


@dataclass(frozen=True)
class JpegSettings:
    quality: int = DEFAULT_JPEG_QUALITY
    progressive: bool = False
    keep_metadata: bool = False


@dataclass(frozen=True)
class PngSettings:
    level: int = DEFAULT_PNG_LEVEL
    strip_metadata: bool = True


@dataclass(frozen=True)
class WebpSettings:
    quality: int = DEFAULT_WEBP_QUALITY
    lossless: bool = False
    keep_metadata: bool = False


@dataclass(frozen=True)
class AvifSettings:
    # Colour and alpha planes are encoded at this same quality.
    quality: int = DEFAULT_AVIF_QUALITY
    speed: int = DEFAULT_AVIF_SPEED
    lossless: bool = False
    keep_metadata: bool = False


EncoderSettings = Union[JpegSettings, PngSettings, WebpSettings, AvifSettings]
Encoder = Callable[[Image.Image, CompressOptions], bytes]


def settings_for(fmt: OutputFormat, options: CompressOptions) -> EncoderSettings:
    keep_metadata = not options.strip_metadata
    if fmt is OutputFormat.JPEG:
        return JpegSettings(
            quality=options.quality or DEFAULT_JPEG_QUALITY,
            progressive=options.progressive,
            keep_metadata=keep_metadata,
        )
    if fmt is OutputFormat.PNG:
        return PngSettings(
            level=options.png_level or DEFAULT_PNG_LEVEL,
            strip_metadata=options.strip_metadata,
        )
    if fmt is OutputFormat.WEBP:
        return WebpSettings(
            quality=options.quality or DEFAULT_WEBP_QUALITY,
            lossless=options.lossless,
            keep_metadata=keep_metadata,
        )
    quality = 100 if options.lossless else options.quality or DEFAULT_AVIF_QUALITY
    return AvifSettings(
        quality=quality,
        speed=options.avif_speed or DEFAULT_AVIF_SPEED,
        lossless=options.lossless,
        keep_metadata=keep_metadata,
    )


def metadata_kwargs(image: Image.Image, keep: bool) -> dict[str, object]:
    if not keep:
        return {}
    kwargs: dict[str, object] = {}
    for key in ("exif", "icc_profile"):
        value = image.info.get(key)
        if value:
            kwargs[key] = value
    return kwargs


def _save(image: Image.Image, fmt: str, **save_kwargs: object) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, format=fmt, **save_kwargs)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"{fmt} encoding failed", fmt) from exc
    return buffer.getvalue()


def encode_jpeg(image: Image.Image, settings: JpegSettings) -> bytes:
    rgb = image.convert("RGB")
    return _save(
        rgb,
        "JPEG",
        quality=settings.quality,
        optimize=True,
        progressive=settings.progressive,
        **metadata_kwargs(image, settings.keep_metadata),
    )


def optimize_png(data: bytes, settings: PngSettings) -> bytes:
    strip = oxipng.StripChunks.safe() if settings.strip_metadata else oxipng.StripChunks.none()
    try:
        return oxipng.optimize_from_memory(data, level=settings.level, strip=strip)
    except oxipng.PngError as exc:
        raise EncodeError("PNG optimization failed", "PNG") from exc


def encode_png(image: Image.Image, settings: PngSettings) -> bytes:
    if image.mode not in _PNG_MODES:
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    baseline = _save(image, "PNG")
    return optimize_png(baseline, settings)


def encode_webp(image: Image.Image, settings: WebpSettings) -> bytes:
    rgba = image.convert("RGBA")
    metadata = metadata_kwargs(image, settings.keep_metadata)
    if settings.lossless:
        return _save(rgba, "WEBP", lossless=True, quality=100, method=6, **metadata)
    return _save(rgba, "WEBP", lossless=False, quality=settings.quality, method=6, **metadata)


def encode_avif(image: Image.Image, settings: AvifSettings) -> bytes:
    rgba = image.convert("RGBA")
    save_kwargs: dict[str, object] = {"quality": settings.quality, "speed": settings.speed}
    if settings.lossless:
        save_kwargs["subsampling"] = "4:4:4"
    save_kwargs.update(metadata_kwargs(image, settings.keep_metadata))
    return _save(rgba, "AVIF", **save_kwargs)


def _jpeg(image: Image.Image, options: CompressOptions) -> bytes:
    return encode_jpeg(image, settings_for(OutputFormat.JPEG, options))


def _png(image: Image.Image, options: CompressOptions) -> bytes:
    return encode_png(image, settings_for(OutputFormat.PNG, options))


def _webp(image: Image.Image, options: CompressOptions) -> bytes:
    return encode_webp(image, settings_for(OutputFormat.WEBP, options))


def _avif(image: Image.Image, options: CompressOptions) -> bytes:
    return encode_avif(image, settings_for(OutputFormat.AVIF, options))


_ENCODER_REGISTRY: dict[OutputFormat, Encoder] = {}


def get_encoder_registry() -> dict[OutputFormat, Encoder]:
    global _ENCODER_REGISTRY
    if not _ENCODER_REGISTRY:
        _ENCODER_REGISTRY = {
            OutputFormat.JPEG: _jpeg,
            OutputFormat.PNG: _png,
            OutputFormat.WEBP: _webp,
            OutputFormat.AVIF: _avif,
        }
    return _ENCODER_REGISTRY


def set_encoder_registry(registry: dict[OutputFormat, Encoder]) -> None:
    global _ENCODER_REGISTRY
    _ENCODER_REGISTRY = dict(registry)


def encode(image: Image.Image, fmt: OutputFormat, options: CompressOptions) -> bytes:
    encoder = get_encoder_registry()[fmt]
    data = encoder(image, options)
    logger.debug("encoded %s: %d bytes", fmt.name, len(data))
    return data

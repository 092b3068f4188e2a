from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import ConfigurationError, EmptyExtensionError, UnsupportedFormatError


class OutputFormat(Enum):
    JPEG = "jpg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"

    @property
    def extension(self) -> str:
        return self.value


_EXTENSION_FORMATS = {
    "jpg": OutputFormat.JPEG,
    "jpeg": OutputFormat.JPEG,
    "png": OutputFormat.PNG,
    "webp": OutputFormat.WEBP,
    "avif": OutputFormat.AVIF,
}


def normalize_extension(extension: str) -> str:
    extension = extension.strip()
    if extension.startswith("."):
        extension = extension[1:]
    if not extension:
        raise EmptyExtensionError()
    return extension.lower()


def resolve_format(extension: str) -> OutputFormat:
    token = normalize_extension(extension)
    fmt = _EXTENSION_FORMATS.get(token)
    if fmt is None:
        raise UnsupportedFormatError(token)
    return fmt


class ResizeMode(Enum):
    FIT = "fit"
    EXACT = "exact"


@dataclass(frozen=True)
class ResizeOptions:
    """Target box for a resize.

    An axis left as ``None`` is unbounded, which only makes sense for
    ``ResizeMode.FIT``.
    """

    width: int | None
    height: int | None
    mode: ResizeMode = ResizeMode.FIT

    def __post_init__(self) -> None:
        if self.width == 0 or self.height == 0:
            raise ConfigurationError("resize width and height must be greater than zero")
        for value in (self.width, self.height):
            if value is not None and value < 0:
                raise ConfigurationError("resize width and height must be greater than zero")
        if self.width is None and self.height is None:
            raise ConfigurationError("resize needs at least one bounded dimension")
        if self.mode is ResizeMode.EXACT and (self.width is None or self.height is None):
            raise ConfigurationError("exact resize requires both width and height")


def _check_range(name: str, value: int | None, low: int, high: int) -> None:
    if value is not None and not low <= value <= high:
        raise ConfigurationError(f"{name} must be between {low} and {high}, got {value}")


@dataclass(frozen=True)
class CompressOptions:
    overwrite: bool = False
    quality: int | None = None
    lossless: bool = False
    progressive: bool = False
    strip_metadata: bool = True
    resize: ResizeOptions | None = None
    png_level: int | None = None
    avif_speed: int | None = None

    def __post_init__(self) -> None:
        _check_range("quality", self.quality, 1, 100)
        _check_range("png level", self.png_level, 1, 6)
        _check_range("avif speed", self.avif_speed, 1, 10)


def savings_percent(original_bytes: int, compressed_bytes: int) -> float:
    if original_bytes <= 0:
        return 0.0
    return (1 - compressed_bytes / original_bytes) * 100


@dataclass(frozen=True)
class CompressionStats:
    original_bytes: int
    compressed_bytes: int

    @property
    def savings_percent(self) -> float:
        return savings_percent(self.original_bytes, self.compressed_bytes)


class Outcome(Enum):
    COMPRESSED = "compressed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class CompressResult:
    source: Path
    output: Path | None
    outcome: Outcome
    message: str
    stats: CompressionStats | None = None

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.COMPRESSED


@dataclass
class BatchReport:
    compressed: int = 0
    skipped: int = 0
    failed: int = 0
    total_original_bytes: int = 0
    total_compressed_bytes: int = 0

    def record(self, result: CompressResult) -> None:
        if result.outcome is Outcome.SKIPPED:
            self.skipped += 1
        elif result.outcome is Outcome.FAILED or result.stats is None:
            self.failed += 1
        else:
            self.compressed += 1
            self.total_original_bytes += result.stats.original_bytes
            self.total_compressed_bytes += result.stats.compressed_bytes

    @property
    def saved_bytes(self) -> int:
        return max(0, self.total_original_bytes - self.total_compressed_bytes)

    @property
    def savings_percent(self) -> float:
        return savings_percent(self.total_original_bytes, self.total_compressed_bytes)


def collect_input_files(root: Path, recursive: bool) -> list[Path]:
    entries = root.rglob("*") if recursive else root.iterdir()
    return sorted(path for path in entries if path.is_file())

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from .encoders import encode, optimize_png, settings_for
from .errors import (
    CompressError,
    ConfigurationError,
    FileIOError,
    InputNotFoundError,
    OutputExistsError,
    describe,
)
from .imaging import decode_and_prepare, sniff_format
from .models import (
    BatchReport,
    CompressionStats,
    CompressOptions,
    CompressResult,
    Outcome,
    OutputFormat,
    collect_input_files,
    normalize_extension,
    resolve_format,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[CompressResult], None]


def compress_image_file(
    input_path: Path | str,
    output_path: Path | str,
    options: CompressOptions | None = None,
) -> CompressionStats:
    options = options or CompressOptions()
    source = Path(input_path)
    output = Path(output_path)
    fmt = output_format(output)
    validate_input_and_output(source, output, options)
    try:
        data = source.read_bytes()
    except OSError as exc:
        raise FileIOError("failed to read input file", source) from exc
    compressed = compress_bytes(data, fmt, options)
    try:
        output.write_bytes(compressed)
    except OSError as exc:
        raise FileIOError("failed to write output file", output) from exc
    stats = CompressionStats(len(data), len(compressed))
    logger.debug("%s -> %s: %d -> %d bytes", source, output, stats.original_bytes, stats.compressed_bytes)
    return stats


def compress_bytes(data: bytes, fmt: OutputFormat, options: CompressOptions) -> bytes:
    if fmt is OutputFormat.PNG and options.resize is None and sniff_format(data) == "PNG":
        # Source is already PNG: optimize the original stream, never re-encode it.
        return optimize_png(data, settings_for(OutputFormat.PNG, options))
    with decode_and_prepare(data, options) as image:
        return encode(image, fmt, options)


def output_format(output: Path) -> OutputFormat:
    if not output.suffix:
        raise ConfigurationError(f"output path must include a file extension: {output}")
    return resolve_format(output.suffix)


def validate_input_and_output(source: Path, output: Path, options: CompressOptions) -> None:
    if not source.is_file():
        raise InputNotFoundError(source)
    if output.exists() and not options.overwrite:
        raise OutputExistsError(output)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileIOError("failed to create directory", output.parent) from exc


def try_compress_file(source: Path, output: Path, options: CompressOptions) -> CompressResult:
    try:
        stats = compress_image_file(source, output, options)
    except CompressError as exc:
        return CompressResult(source, output, Outcome.FAILED, describe(exc))
    message = format_stats(source.name, output.name, stats)
    return CompressResult(source, output, Outcome.COMPRESSED, message, stats)


def build_output_path(source: Path, input_dir: Path, output_dir: Path, extension: str) -> Path:
    relative = source.relative_to(input_dir)
    return (output_dir / relative).with_suffix(f".{extension}")


def compress_directory(
    input_dir: Path | str,
    output_dir: Path | str,
    to_extension: str,
    options: CompressOptions | None = None,
    recursive: bool = False,
    progress: ProgressCallback | None = None,
) -> BatchReport:
    options = options or CompressOptions()
    input_dir = Path(input_dir)
    output_dir = Path(output_dir)
    if not input_dir.is_dir():
        raise InputNotFoundError(input_dir, "directory")
    extension = normalize_extension(to_extension)
    resolve_format(extension)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileIOError("failed to create output directory", output_dir) from exc
    try:
        files = collect_input_files(input_dir, recursive)
    except OSError as exc:
        raise FileIOError("failed to read directory", input_dir) from exc
    logger.info("compressing %d files from %s to %s (.%s)", len(files), input_dir, output_dir, extension)

    report = BatchReport()
    for source in files:
        try:
            result = process_entry(source, input_dir, output_dir, extension, options)
        except Exception as exc:
            logger.exception("unexpected error compressing %s", source)
            result = CompressResult(source, None, Outcome.FAILED, str(exc) or type(exc).__name__)
        report.record(result)
        log_result(result)
        if progress is not None:
            progress(result)

    logger.info(format_report(report))
    return report


def process_entry(
    source: Path,
    input_dir: Path,
    output_dir: Path,
    extension: str,
    options: CompressOptions,
) -> CompressResult:
    try:
        target = build_output_path(source, input_dir, output_dir, extension)
    except ValueError:
        return CompressResult(source, None, Outcome.FAILED, f"{source} is not inside {input_dir}")
    if target.exists() and not options.overwrite:
        return CompressResult(source, target, Outcome.SKIPPED, f"skipped {source.name}: {target.name} exists")
    return try_compress_file(source, target, options)


def log_result(result: CompressResult) -> None:
    if result.outcome is Outcome.FAILED:
        logger.error("failed %s: %s", result.source.name, result.message)
    else:
        logger.info(result.message)


def format_stats(source_name: str, output_name: str, stats: CompressionStats) -> str:
    return (
        f"compressed {source_name} → {output_name} "
        f"({format_size(stats.original_bytes)} → {format_size(stats.compressed_bytes)}, "
        f"saved {stats.savings_percent:.1f}%)"
    )


def format_report(report: BatchReport) -> str:
    return (
        f"batch complete: compressed={report.compressed}, failed={report.failed}, "
        f"skipped={report.skipped}, saved {format_size(report.saved_bytes)} "
        f"({report.savings_percent:.1f}%)"
    )


def format_size(size: int) -> str:
    if size >= 1_000_000:
        return f"{size / 1_000_000:.1f} MB"
    if size >= 1_000:
        return f"{size / 1_000:.0f} KB"
    return f"{size} B"

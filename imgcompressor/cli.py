from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable

from . import __version__
from .compress import compress_directory, compress_image_file, format_report, format_stats
from .errors import CompressError, describe
from .logs import configure_logging
from .models import CompressOptions, CompressResult, Outcome, ResizeMode, ResizeOptions


def bounded_int(low: int, high: int) -> Callable[[str], int]:
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"{value!r} is not an integer") from None
        if not low <= number <= high:
            raise argparse.ArgumentTypeError(f"{number} is not in {low}..={high}")
        return number

    return parse


def parse_resize(value: str) -> tuple[int, int]:
    normalized = value.strip().lower()
    width, sep, height = normalized.partition("x")
    if not sep:
        raise argparse.ArgumentTypeError("resize must be in WIDTHxHEIGHT format (example: 1920x1080)")
    try:
        dimensions = int(width), int(height)
    except ValueError:
        raise argparse.ArgumentTypeError("resize width and height must be integers") from None
    if dimensions[0] <= 0 or dimensions[1] <= 0:
        raise argparse.ArgumentTypeError("resize width and height must be greater than zero")
    return dimensions


def add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--quality", type=bounded_int(1, 100))
    parser.add_argument("--lossless", action="store_true", help="Lossless mode (WebP, AVIF)")
    parser.add_argument("--progressive", action="store_true", help="Progressive JPEG")
    parser.add_argument(
        "--keep-metadata", action="store_true", help="Preserve EXIF/metadata (default: strip)"
    )
    parser.add_argument(
        "--resize", type=parse_resize, metavar="WxH", help="Resize dimensions (WIDTHxHEIGHT)"
    )
    parser.add_argument(
        "--resize-mode",
        choices=[mode.value for mode in ResizeMode],
        default=ResizeMode.FIT.value,
        help="Resize strategy",
    )
    parser.add_argument("--overwrite", action="store_true", help="Overwrite existing output files")
    parser.add_argument(
        "--png-level", type=bounded_int(1, 6), help="PNG optimization level (1-6)"
    )
    parser.add_argument(
        "--avif-speed", type=bounded_int(1, 10), help="AVIF encoding speed (1=slow/best, 10=fast)"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgcompressor",
        description="Image compression CLI (JPEG, PNG, WebP, AVIF)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every pipeline step")
    commands = parser.add_subparsers(dest="command", required=True)

    compress = commands.add_parser("compress", help="Compress a single image file")
    compress.add_argument("input", type=Path, help="Input image path")
    compress.add_argument(
        "output", type=Path, help="Output image path (format determined by extension)"
    )
    add_common_options(compress)

    batch = commands.add_parser("batch", help="Compress all images in a directory")
    batch.add_argument("input_dir", type=Path, help="Input directory")
    batch.add_argument("output_dir", type=Path, help="Output directory")
    batch.add_argument(
        "--to", required=True, metavar="FORMAT", help="Target format (jpg, png, webp, avif)"
    )
    batch.add_argument("--recursive", action="store_true", help="Process subdirectories")
    add_common_options(batch)
    return parser


def parse_args(args: list[str]) -> argparse.Namespace:
    return build_parser().parse_args(args)


def build_compress_options(args: argparse.Namespace) -> CompressOptions:
    resize = None
    if args.resize is not None:
        width, height = args.resize
        resize = ResizeOptions(width, height, ResizeMode(args.resize_mode))
    return CompressOptions(
        overwrite=args.overwrite,
        quality=args.quality,
        lossless=args.lossless,
        progressive=args.progressive,
        strip_metadata=not args.keep_metadata,
        resize=resize,
        png_level=args.png_level,
        avif_speed=args.avif_speed,
    )


def print_result(result: CompressResult) -> None:
    # Failures reach stderr through the package logger.
    if result.outcome is not Outcome.FAILED:
        print(result.message)


def run(args: argparse.Namespace) -> None:
    options = build_compress_options(args)
    if args.command == "compress":
        try:
            stats = compress_image_file(args.input, args.output, options)
        except CompressError as exc:
            raise CompressError(f"failed to compress {args.input} → {args.output}: {describe(exc)}") from exc
        print(format_stats(args.input.name, args.output.name, stats))
        return
    try:
        report = compress_directory(
            args.input_dir,
            args.output_dir,
            args.to,
            options,
            recursive=args.recursive,
            progress=print_result,
        )
    except CompressError as exc:
        raise CompressError(
            f"failed batch compression from {args.input_dir} to {args.output_dir}: {describe(exc)}"
        ) from exc
    print(format_report(report))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging("plain", "DEBUG" if args.verbose else "WARNING")
    try:
        run(args)
    except CompressError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0

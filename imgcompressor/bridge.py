"""Line-delimited JSON-RPC plugin exposing the compressor as two tools.

Requests are read from stdin one JSON object per line and answered on
stdout. Diagnostics go to stderr as JSON lines so they never mix with the
response stream.
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from . import __version__
from .compress import compress_directory, compress_image_file, format_size
from .errors import CompressError, ConfigurationError, describe
from .logs import PLUGIN_NAME, configure_logging
from .models import CompressOptions, ResizeMode, ResizeOptions

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
DEFAULT_FORMAT = "webp"

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
COMPRESSION_FAILED = -32000

_FORMAT_ENUM = ["jpeg", "png", "webp", "avif"]

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "compress_image",
        "description": "Compress a single image file (JPEG, PNG, WebP or AVIF output)",
        "inputSchema": {
            "type": "object",
            "required": ["input_path"],
            "properties": {
                "input_path": {
                    "type": "string",
                    "description": "Path to the source image file",
                },
                "output_path": {
                    "type": "string",
                    "description": (
                        "Path for the compressed output (format inferred from extension). "
                        "Defaults to input path with format extension."
                    ),
                },
                "quality": {
                    "type": "integer",
                    "description": "Compression quality 1-100 (default: format-specific, JPEG 85, WebP 85, AVIF 80)",
                    "minimum": 1,
                    "maximum": 100,
                },
                "format": {
                    "type": "string",
                    "enum": _FORMAT_ENUM,
                    "description": "Output format (overrides output_path extension)",
                },
                "max_width": {
                    "type": "integer",
                    "description": "Maximum width in pixels (maintains aspect ratio)",
                    "minimum": 1,
                },
                "max_height": {
                    "type": "integer",
                    "description": "Maximum height in pixels (maintains aspect ratio)",
                    "minimum": 1,
                },
                "lossless": {
                    "type": "boolean",
                    "description": "Use lossless compression (WebP and AVIF only, default: false)",
                },
            },
        },
    },
    {
        "name": "compress_directory",
        "description": "Batch compress all images in a directory",
        "inputSchema": {
            "type": "object",
            "required": ["input_dir"],
            "properties": {
                "input_dir": {
                    "type": "string",
                    "description": "Path to the source directory",
                },
                "output_dir": {
                    "type": "string",
                    "description": "Path for compressed output (defaults to input_dir + '_compressed')",
                },
                "quality": {
                    "type": "integer",
                    "description": "Compression quality 1-100",
                    "minimum": 1,
                    "maximum": 100,
                },
                "format": {
                    "type": "string",
                    "enum": _FORMAT_ENUM,
                    "description": "Output format for all images (default: webp)",
                },
            },
        },
    },
]


class ToolError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def ok(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def text_content(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


def _string_arg(args: dict[str, Any], name: str, required: bool = False) -> str | None:
    value = args.get(name)
    if value is None:
        if required:
            raise ToolError(INVALID_PARAMS, f"Missing required parameter: {name}")
        return None
    if not isinstance(value, str) or (required and not value):
        raise ToolError(INVALID_PARAMS, f"Invalid parameter {name}: expected a string")
    return value


def _int_arg(args: dict[str, Any], name: str) -> int | None:
    value = args.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolError(INVALID_PARAMS, f"Invalid parameter {name}: expected an integer")
    return value


def _bool_arg(args: dict[str, Any], name: str) -> bool:
    value = args.get(name, False)
    if not isinstance(value, bool):
        raise ToolError(INVALID_PARAMS, f"Invalid parameter {name}: expected a boolean")
    return value


def format_extension(value: str | None) -> str | None:
    if value is None:
        return None
    return "jpg" if value == "jpeg" else value


def resolve_output_path(input_path: str, output_path: str | None, extension: str | None) -> Path:
    try:
        if output_path is None:
            return Path(input_path).with_suffix(f".{extension or DEFAULT_FORMAT}")
        if extension is not None:
            return Path(output_path).with_suffix(f".{extension}")
    except ValueError as exc:
        raise ToolError(INVALID_PARAMS, f"Invalid output path: {exc}") from exc
    return Path(output_path)


def resize_bounds(max_width: int | None, max_height: int | None) -> ResizeOptions | None:
    if max_width is None and max_height is None:
        return None
    return ResizeOptions(width=max_width, height=max_height, mode=ResizeMode.FIT)


def call_compress_image(args: dict[str, Any]) -> dict[str, Any]:
    input_path = _string_arg(args, "input_path", required=True)
    extension = format_extension(_string_arg(args, "format"))
    output = resolve_output_path(input_path, _string_arg(args, "output_path"), extension)
    try:
        options = CompressOptions(
            overwrite=True,
            quality=_int_arg(args, "quality"),
            lossless=_bool_arg(args, "lossless"),
            resize=resize_bounds(_int_arg(args, "max_width"), _int_arg(args, "max_height")),
        )
    except ConfigurationError as exc:
        raise ToolError(INVALID_PARAMS, f"Invalid parameters: {exc}") from exc

    logger.info("compress_image: %s -> %s", input_path, output)
    try:
        stats = compress_image_file(input_path, output, options)
    except CompressError as exc:
        raise ToolError(COMPRESSION_FAILED, f"Compression failed: {describe(exc)}") from exc
    return text_content(
        f"Compressed {input_path} -> {output} "
        f"({format_size(stats.original_bytes)} -> {format_size(stats.compressed_bytes)}, "
        f"saved {stats.savings_percent:.1f}%)"
    )


def call_compress_directory(args: dict[str, Any]) -> dict[str, Any]:
    input_dir = _string_arg(args, "input_dir", required=True)
    extension = format_extension(_string_arg(args, "format")) or DEFAULT_FORMAT
    output_dir = _string_arg(args, "output_dir") or f"{input_dir}_compressed"
    try:
        options = CompressOptions(overwrite=True, quality=_int_arg(args, "quality"))
    except ConfigurationError as exc:
        raise ToolError(INVALID_PARAMS, f"Invalid parameters: {exc}") from exc

    logger.info("compress_directory: %s -> %s (format: %s)", input_dir, output_dir, extension)
    try:
        report = compress_directory(input_dir, output_dir, extension, options, recursive=True)
    except CompressError as exc:
        raise ToolError(COMPRESSION_FAILED, f"Batch compression failed: {describe(exc)}") from exc
    return text_content(
        f"Batch compression complete: {report.compressed} compressed, {report.skipped} skipped, "
        f"{report.failed} failed ({format_size(report.total_original_bytes)} -> "
        f"{format_size(report.total_compressed_bytes)})"
    )


TOOLS = {
    "compress_image": call_compress_image,
    "compress_directory": call_compress_directory,
}


def handle_tool_call(params: dict[str, Any]) -> dict[str, Any]:
    name = params.get("name")
    tool = TOOLS.get(name) if isinstance(name, str) else None
    if tool is None:
        raise ToolError(METHOD_NOT_FOUND, f"Unknown tool: {name or ''}")
    args = params.get("arguments") or {}
    if not isinstance(args, dict):
        raise ToolError(INVALID_PARAMS, "Invalid parameter arguments: expected an object")
    return tool(args)


def dispatch(method: str, params: dict[str, Any]) -> dict[str, Any]:
    if method == "initialize":
        logger.info("Plugin initialized")
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": PLUGIN_NAME, "version": __version__},
        }
    if method in ("ping", "shutdown"):
        return {}
    if method == "health/check":
        return {"ok": True}
    if method == "tools/list":
        return {"tools": TOOL_DEFINITIONS}
    if method == "tools/call":
        return handle_tool_call(params)
    raise ToolError(METHOD_NOT_FOUND, f"Method not found: {method}")


def handle_request(request: dict[str, Any]) -> dict[str, Any] | None:
    request_id = request.get("id")
    if request_id is None:
        return None
    method = request.get("method")
    if not isinstance(method, str):
        method = ""
    params = request.get("params")
    if not isinstance(params, dict):
        params = {}
    try:
        return ok(request_id, dispatch(method, params))
    except ToolError as exc:
        return error(request_id, exc.code, exc.message)
    except Exception as exc:
        logger.exception("unhandled error in %s", method or "request")
        return error(request_id, INTERNAL_ERROR, f"Internal error: {exc}")


def serve(stdin: TextIO, stdout: TextIO) -> int:
    for line in stdin:
        line = line.strip()
        if not line:
            continue
        try:
            request = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.error("JSON parse error: %s", exc)
            continue
        if not isinstance(request, dict):
            logger.error("JSON parse error: request must be an object")
            continue
        response = handle_request(request)
        if response is None:
            continue
        stdout.write(json.dumps(response) + "\n")
        stdout.flush()
        if request.get("method") == "shutdown":
            break
    return 0


def main() -> None:
    configure_logging("json", "INFO")
    sys.exit(serve(sys.stdin, sys.stdout))


if __name__ == "__main__":
    main()

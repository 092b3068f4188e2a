from __future__ import annotations

from pathlib import Path


class CompressError(Exception):
    """Base class for every failure raised by the compression pipeline."""


class ConfigurationError(CompressError):
    pass


class EmptyExtensionError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("format/extension cannot be empty")


class UnsupportedFormatError(ConfigurationError):
    def __init__(self, token: str) -> None:
        super().__init__(f"unsupported output format: {token}")
        self.token = token


class PreconditionError(CompressError):
    def __init__(self, message: str, path: Path) -> None:
        super().__init__(message)
        self.path = path


class InputNotFoundError(PreconditionError):
    def __init__(self, path: Path, kind: str = "file") -> None:
        super().__init__(f"input {kind} not found: {path}", path)


class OutputExistsError(PreconditionError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"output file exists (use --overwrite to replace): {path}", path)


class DecodeError(CompressError):
    pass


class EncodeError(CompressError):
    def __init__(self, message: str, format_name: str) -> None:
        super().__init__(message)
        self.format = format_name


class FileIOError(CompressError):
    def __init__(self, message: str, path: Path) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path


def describe(exc: BaseException) -> str:
    """Render an error with its chain of causes, outermost first."""
    parts = [str(exc)]
    cause = exc.__cause__
    while cause is not None:
        text = str(cause) or type(cause).__name__
        if text not in parts:
            parts.append(text)
        cause = cause.__cause__
    return ": ".join(parts)

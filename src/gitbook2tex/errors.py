"""Exceptions raised by the gitbook2tex pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class GitbookError(RuntimeError):
    pass


class CopyError(GitbookError):
    def __init__(self, source: Path, dest: Path, reason: str = "") -> None:
        message = f"An error occurred when copying the contents of {source} to {dest}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.source = source
        self.dest = dest


class MissingSummaryError(GitbookError):
    def __init__(self, directory: Path, filename: str) -> None:
        super().__init__(f"The file {filename} cannot be found in {directory}")
        self.directory = directory
        self.filename = filename


class PandocNotFoundError(GitbookError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Pandoc cannot be found on this system (tried: {path})")
        self.path = path


class ConversionError(GitbookError):
    def __init__(self, document: Path, returncode: int, stderr: Optional[str] = None) -> None:
        message = f"Conversion failed for {document} (rc={returncode})"
        if stderr and stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
        self.document = document
        self.returncode = returncode
        self.stderr = stderr


class PreambleError(GitbookError):
    def __init__(self, path: Path, reason: str = "") -> None:
        message = f"Standalone output {path} cannot be read"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path


class ReplacementFileError(GitbookError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Replacement file {path} cannot be used: {reason}")
        self.path = path


class SourceDecodeError(GitbookError):
    def __init__(self, path: Path, reason: str = "") -> None:
        message = f"The file {path} is not valid UTF-8"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path

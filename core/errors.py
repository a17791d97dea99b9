"""Error taxonomy for the extraction pipeline.

Three families:

- ``ConfigError``: invalid configuration, raised before any file is touched.
- ``FatalError``: whole-run failures that abort ``extract_project``.
- ``FileError``: per-file failures. Recoverable; inside a project run they
  are converted into failure records instead of propagating.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from extraction.models import PartialFailure


class ExtractionError(Exception):
    """Base class for all extraction errors."""


class ConfigError(ExtractionError, ValueError):
    """Raised when an extractor configuration is invalid."""


class FatalError(ExtractionError):
    """Raised when a project run cannot produce a model."""


class InvalidProjectRoot(FatalError):
    """The project root does not exist or is not a directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Invalid project root: {path}")


class NoFilesDiscovered(FatalError):
    """Discovery produced no candidate files."""

    def __init__(self, root: str):
        self.root = root
        super().__init__(f"No Rust source files matched the filters under {root}")


class NoFilesParsed(FatalError):
    """Every discovered file failed to process."""

    def __init__(self, report: "PartialFailure"):
        self.report = report
        super().__init__(
            f"Failed to process {report.failed_count} out of "
            f"{report.total_count} files"
        )


class ExtractionCancelled(FatalError):
    """The run was cancelled between files."""

    def __init__(self, completed: int):
        self.completed = completed
        super().__init__(f"Extraction cancelled after {completed} files")


class FileError(ExtractionError):
    """Base class for per-file processing failures."""

    kind = "file_error"

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(self.describe())

    def describe(self) -> str:
        return f"{self.path}: {self.detail}"


class ParseError(FileError):
    """The source text is not valid Rust syntax."""

    kind = "parse_error"

    def __init__(
        self,
        path: str,
        detail: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        self.line = line
        self.column = column
        super().__init__(path, detail)

    def describe(self) -> str:
        if self.line is None:
            return f"Parse error in {self.path}: {self.detail}"
        return f"Parse error in {self.path} at {self.line}:{self.column}: {self.detail}"


class MaxFileSizeExceeded(FileError):
    """The file is larger than ``max_file_size``."""

    kind = "max_file_size_exceeded"

    def __init__(self, path: str, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(path, f"{size} bytes exceeds limit of {limit} bytes")

    def describe(self) -> str:
        return f"File too large: {self.path} ({self.size} bytes, limit: {self.limit} bytes)"


class FileReadError(FileError):
    """The file could not be read or decoded."""

    kind = "io_error"

    def describe(self) -> str:
        return f"IO error reading {self.path}: {self.detail}"


class AccessDenied(FileReadError):
    """The file exists but is not readable."""

    kind = "access_denied"

    def __init__(self, path: str):
        super().__init__(path, "permission denied")

    def describe(self) -> str:
        return f"Access denied: {self.path}"

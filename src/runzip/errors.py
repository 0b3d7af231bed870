"""Exceptions raised while scanning, converting and rewriting archives."""

from __future__ import annotations


class RunzipError(Exception):
    """Base class for every error raised by runzip."""


class ConfigError(RunzipError):
    """Invalid configuration value or unreadable config file."""


class ProcessingError(RunzipError):
    """Fatal error for one archive. Other archives in a batch continue."""

    kind = "error"

    def __init__(self, message: str, path: str | None = None):
        self.message = message
        self.path = path
        super().__init__(message)

    def with_path(self, path: str) -> "ProcessingError":
        self.path = path
        return self

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class CorruptArchive(ProcessingError):
    """Structural signature or consistency failure."""

    kind = "corrupt archive"


class TruncatedFile(ProcessingError):
    """Declared sizes or offsets point past the end of the file."""

    kind = "truncated file"


class UnsupportedFeature(ProcessingError):
    """Valid archive that uses something runzip does not model."""

    kind = "unsupported feature"


class ArchiveIOError(ProcessingError):
    """Read, write or rename failure."""

    kind = "I/O error"


class UndecodableName(RunzipError):
    """A name could not be decoded (or encoded) under the chosen encoding.

    Not fatal: the entry is left as it is and reported in the summary.
    """

    def __init__(self, raw: bytes, encoding: str, reason: str = "decode"):
        self.raw = raw
        self.encoding = encoding
        self.reason = reason
        super().__init__(f"cannot {reason} {raw!r} with {encoding}")

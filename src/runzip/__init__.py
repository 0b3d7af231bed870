"""runzip - fix Cyrillic filename encodings inside ZIP archives.

Names stored in a legacy codepage (koi8-r, koi8-u, cp866, windows-1251) are
converted to UTF-8 (or back) while every payload byte is copied unchanged.
"""

__version__ = "2.0.0"

from .config import RunConfig, load_config
from .errors import (
    ArchiveIOError,
    ConfigError,
    CorruptArchive,
    ProcessingError,
    TruncatedFile,
    UndecodableName,
    UnsupportedFeature,
)
from .model import ArchiveSummary
from .runner import process, process_many

__all__ = [
    "ArchiveIOError",
    "ArchiveSummary",
    "ConfigError",
    "CorruptArchive",
    "ProcessingError",
    "RunConfig",
    "TruncatedFile",
    "UndecodableName",
    "UnsupportedFeature",
    "load_config",
    "process",
    "process_many",
]

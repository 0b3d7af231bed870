"""In-memory structure of a parsed archive plus the per-archive summary."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .archive.layout import (
    FLAG_DATA_DESCRIPTOR,
    FLAG_ENCRYPTED,
    FLAG_MASKED_DIRECTORY,
    FLAG_STRONG_ENCRYPTION,
    FLAG_UNICODE,
)

if TYPE_CHECKING:
    from .codec.converter import ConversionPlan


@dataclass
class EntryRecord:
    """One member as described by its central directory record."""

    header_offset: int
    version_made_by: int
    version_needed: int
    flags: int
    method: int
    mod_time: int
    mod_date: int
    crc32: int
    compressed_size: int
    uncompressed_size: int
    name: bytes
    extra: bytes = b""
    comment: bytes = b""
    disk_start: int = 0
    internal_attr: int = 0
    external_attr: int = 0

    @property
    def is_unicode(self) -> bool:
        return bool(self.flags & FLAG_UNICODE)

    @property
    def is_encrypted(self) -> bool:
        return bool(self.flags & (FLAG_ENCRYPTED | FLAG_STRONG_ENCRYPTION | FLAG_MASKED_DIRECTORY))

    @property
    def has_data_descriptor(self) -> bool:
        return bool(self.flags & FLAG_DATA_DESCRIPTOR)

    @property
    def is_dir(self) -> bool:
        return self.name.endswith(b"/")

    @property
    def display_name(self) -> str:
        return display(self.name, self.is_unicode)


@dataclass
class ContainerModel:
    entries: list[EntryRecord]
    comment: bytes
    entry_count: int
    cd_offset: int
    cd_size: int
    eocd_offset: int
    file_size: int

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ArchiveSummary:
    """What happened to one archive. Formatting is left to the caller."""

    archive: str
    entry_count: int = 0
    renamed: int = 0
    encodings: Counter = field(default_factory=Counter)
    ambiguous: list[str] = field(default_factory=list)
    undecodable: list[str] = field(default_factory=list)
    plans: list["ConversionPlan"] = field(default_factory=list)
    comment_changed: bool = False
    dry_run: bool = False
    target: str = "utf-8"
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def display(raw: bytes, unicode_flag: bool = False) -> str:
    """Best effort text for logs and tables; never raises."""
    if unicode_flag:
        return raw.decode("utf-8", errors="replace")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("cp437", errors="replace")

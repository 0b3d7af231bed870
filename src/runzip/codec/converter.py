"""Turn raw names into target-encoded names and Unicode-flag updates."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from ..archive.layout import FLAG_UNICODE
from ..errors import UndecodableName
from ..model import display
from . import codepages
from .codepages import UTF8, Codepage, EncodingProfile, is_ascii
from .detector import MIN_CONFIDENCE, DetectionResult, detect

if TYPE_CHECKING:
    from ..model import EntryRecord


class EntryStatus(str, Enum):
    ALREADY_UNICODE = "already-unicode"
    ASCII = "ascii"
    SAME = "same"
    CONVERTED = "converted"
    UNKNOWN = "unknown"
    UNDECODABLE = "undecodable"


@dataclass
class ConversionPlan:
    """Decision for one entry. Built during planning, used by the rewriter."""

    index: int
    name: bytes
    comment: bytes
    flags: int
    new_name: bytes
    new_comment: bytes
    new_flags: int
    source: str | None
    status: EntryStatus
    score: float = 0.0
    ambiguous: bool = False
    warning: str | None = None

    @property
    def changed(self) -> bool:
        return (
            self.new_name != self.name
            or self.new_comment != self.comment
            or self.new_flags != self.flags
        )

    @property
    def renamed(self) -> bool:
        return self.new_name != self.name

    @property
    def display_name(self) -> str:
        return display(self.name, bool(self.flags & FLAG_UNICODE))

    @property
    def display_new_name(self) -> str:
        return display(self.new_name, bool(self.new_flags & FLAG_UNICODE))


def looks_like_utf8_cyrillic(raw: bytes) -> bool:
    """Valid UTF-8 that contains at least one Cyrillic character."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return any("\u0400" <= c <= "\u052f" for c in text)


def with_unicode_flag(flags: int, target: EncodingProfile) -> int:
    if target.is_unicode:
        return flags | FLAG_UNICODE
    return flags & ~FLAG_UNICODE


def transcode(raw: bytes, source: EncodingProfile, target: EncodingProfile) -> bytes:
    """Decode ``raw`` under ``source`` and encode it under ``target``.

    Raises UndecodableName when either direction has no mapping.
    """
    if source == target:
        return raw
    return codepages.encode(codepages.decode(raw, source), target)


def resolve_source(
    raw: bytes,
    unicode_flag: bool,
    forced: EncodingProfile | None,
    min_confidence: float = MIN_CONFIDENCE,
) -> tuple[EncodingProfile | None, EntryStatus, DetectionResult | None]:
    """Work out which encoding ``raw`` is in.

    Returns the profile (None when the bytes should be left alone), the
    status explaining why, and the detector result when it ran.
    """
    if unicode_flag:
        return UTF8, EntryStatus.ALREADY_UNICODE, None
    if is_ascii(raw):
        return None, EntryStatus.ASCII, None
    if forced is not None:
        return forced, EntryStatus.CONVERTED, None
    if looks_like_utf8_cyrillic(raw):
        return UTF8, EntryStatus.CONVERTED, None
    result = detect(raw, min_confidence=min_confidence)
    if result.is_unknown:
        return None, EntryStatus.UNKNOWN, result
    return codepages.PROFILES[result.codepage], EntryStatus.CONVERTED, result


def convert_entry(
    index: int,
    entry: "EntryRecord",
    target: EncodingProfile,
    forced: EncodingProfile | None = None,
    min_confidence: float = MIN_CONFIDENCE,
) -> ConversionPlan:
    """Plan the new name, comment and flags for one entry.

    Name and comment share the Unicode flag, so detection runs over both,
    unless the name alone is already valid UTF-8 Cyrillic.
    """
    utf8_name = bool(entry.comment) and looks_like_utf8_cyrillic(entry.name)
    if not entry.comment or utf8_name:
        sample = entry.name
    else:
        sample = entry.name + b" " + entry.comment
    source, status, result = resolve_source(sample, entry.is_unicode, forced, min_confidence)
    plan = ConversionPlan(
        index=index,
        name=entry.name,
        comment=entry.comment,
        flags=entry.flags,
        new_name=entry.name,
        new_comment=entry.comment,
        new_flags=entry.flags,
        source=source.name if source is not None else None,
        status=status,
        score=result.score if result is not None else 0.0,
        ambiguous=bool(result and result.ambiguous),
    )
    logger.trace(f"Raw bytes for '{entry.display_name}': {entry.name.hex(' ')}")

    if source is None:
        logger.debug(f"{entry.display_name}: left as is ({status.value})")
        return plan
    if status is EntryStatus.ALREADY_UNICODE and target.is_unicode:
        return plan

    comment_source: EncodingProfile | None = source
    if utf8_name and forced is None and not entry.is_unicode:
        # UTF-8 name with a comment that may be in some other encoding.
        try:
            entry.comment.decode("utf-8")
        except UnicodeDecodeError:
            comment_source, _, _ = resolve_source(entry.comment, False, None, min_confidence)

    try:
        plan.new_name = transcode(entry.name, source, target)
        if comment_source is not None:
            plan.new_comment = transcode(entry.comment, comment_source, target)
    except UndecodableName as exc:
        plan.new_name, plan.new_comment = entry.name, entry.comment
        plan.status = EntryStatus.UNDECODABLE
        plan.warning = f"Failed to recode: {exc.reason} with {exc.encoding} failed"
        logger.warning(f"Failed to recode \"{entry.display_name}\": {exc}")
        return plan

    plan.new_flags = with_unicode_flag(entry.flags, target)
    plan.status = EntryStatus.SAME if source == target else EntryStatus.CONVERTED
    logger.debug(
        f"Converting \"{entry.display_name}\" ({source.name} -> {target.name})"
        + (f" score={plan.score:.3f}" if result is not None else "")
    )
    return plan


def convert_comment(
    raw: bytes,
    target: EncodingProfile,
    forced: EncodingProfile | None = None,
    min_confidence: float = MIN_CONFIDENCE,
) -> bytes:
    """Convert the archive comment. It has no flag bit of its own."""
    if not raw:
        return raw
    source, status, _ = resolve_source(raw, False, forced, min_confidence)
    if source is None:
        return raw
    try:
        return transcode(raw, source, target)
    except UndecodableName as exc:
        logger.warning(f"Archive comment left unchanged: {exc}")
        return raw


__all__ = [
    "Codepage",
    "ConversionPlan",
    "EntryStatus",
    "convert_comment",
    "convert_entry",
    "resolve_source",
    "transcode",
    "with_unicode_flag",
]

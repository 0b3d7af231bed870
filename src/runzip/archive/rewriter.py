"""Write a new archive with regenerated headers and untouched payloads.

Names may change length, so every entry after the first changed one moves.
The whole archive is streamed into a new file; patching in place is not an
option.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Sequence

from loguru import logger

from ..codec.converter import ConversionPlan
from ..errors import ArchiveIOError, CorruptArchive
from ..model import ContainerModel, EntryRecord
from .layout import (
    CENTRAL_STRUCT,
    DESCRIPTOR_SIGNED_SIZE,
    DESCRIPTOR_SIZE,
    END_STRUCT,
    FLAG_UNICODE,
    LOCAL_STRUCT,
    MAX_COMMENT,
    MAX_U16,
    MAX_U32,
    SIG_CENTRAL,
    SIG_DATA_DESCRIPTOR,
    SIG_END,
    SIG_LOCAL,
)

COPY_CHUNK = 1024 * 1024
TEMP_PREFIX = ".runzip-"
TEMP_SUFFIX = ".tmp"


@dataclass
class RewriteResult:
    offsets: list[int] = field(default_factory=list)
    cd_offset: int = 0
    cd_size: int = 0
    size: int = 0


def _read(source: BinaryIO, offset: int, size: int) -> bytes:
    source.seek(offset)
    data = source.read(size)
    if len(data) != size:
        raise CorruptArchive(
            f"unexpected end of data at offset {offset} (wanted {size}, got {len(data)})"
        )
    return data


def copy_range(source: BinaryIO, sink: BinaryIO, offset: int, size: int) -> None:
    """Copy ``size`` bytes starting at ``offset`` in chunks."""
    source.seek(offset)
    remaining = size
    while remaining:
        chunk = source.read(min(COPY_CHUNK, remaining))
        if not chunk:
            raise CorruptArchive(
                f"unexpected end of data while copying payload at offset {offset + size - remaining}"
            )
        sink.write(chunk)
        remaining -= len(chunk)


def _descriptor_size(source: BinaryIO, offset: int) -> int:
    source.seek(offset)
    if source.read(4) == SIG_DATA_DESCRIPTOR:
        return DESCRIPTOR_SIGNED_SIZE
    return DESCRIPTOR_SIZE


def _check_lengths(plan: ConversionPlan) -> None:
    if len(plan.new_name) > MAX_U16 or len(plan.new_comment) > MAX_U16:
        raise CorruptArchive(f"converted name or comment of '{plan.display_name}' is too long")


def write_entry(
    source: BinaryIO, sink: BinaryIO, entry: EntryRecord, plan: ConversionPlan
) -> None:
    """Write one local header plus its payload (and data descriptor)."""
    header = _read(source, entry.header_offset, LOCAL_STRUCT.size)
    (
        signature, needed, flags, method, mtime, mdate, crc, csize, usize,
        name_len, extra_len,
    ) = LOCAL_STRUCT.unpack(header)
    if signature != SIG_LOCAL:
        raise CorruptArchive(
            f"bad local header signature for '{entry.display_name}' at offset {entry.header_offset}"
        )
    extra = _read(source, entry.header_offset + LOCAL_STRUCT.size + name_len, extra_len)
    payload_offset = entry.header_offset + LOCAL_STRUCT.size + name_len + extra_len

    # Only the Unicode bit follows the plan; everything else stays verbatim.
    new_flags = (flags & ~FLAG_UNICODE) | (plan.new_flags & FLAG_UNICODE)
    sink.write(
        LOCAL_STRUCT.pack(
            SIG_LOCAL, needed, new_flags, method, mtime, mdate, crc, csize, usize,
            len(plan.new_name), len(extra),
        )
    )
    sink.write(plan.new_name)
    sink.write(extra)

    # The central directory sizes are authoritative when a descriptor is used.
    copy_range(source, sink, payload_offset, entry.compressed_size)

    if entry.has_data_descriptor:
        descriptor_offset = payload_offset + entry.compressed_size
        size = _descriptor_size(source, descriptor_offset)
        copy_range(source, sink, descriptor_offset, size)


def central_record(entry: EntryRecord, plan: ConversionPlan, offset: int) -> bytes:
    return (
        CENTRAL_STRUCT.pack(
            SIG_CENTRAL,
            entry.version_made_by,
            entry.version_needed,
            plan.new_flags,
            entry.method,
            entry.mod_time,
            entry.mod_date,
            entry.crc32,
            entry.compressed_size,
            entry.uncompressed_size,
            len(plan.new_name),
            len(entry.extra),
            len(plan.new_comment),
            entry.disk_start,
            entry.internal_attr,
            entry.external_attr,
            offset,
        )
        + plan.new_name
        + entry.extra
        + plan.new_comment
    )


def rewrite_archive(
    source: BinaryIO,
    model: ContainerModel,
    plans: Sequence[ConversionPlan],
    sink: BinaryIO,
    comment: bytes | None = None,
) -> RewriteResult:
    """Stream ``source`` into ``sink`` using ``plans`` for names and flags.

    ``sink`` must start empty; offsets are counted from its first byte.
    """
    if len(plans) != len(model.entries):
        raise ValueError(f"{len(plans)} plans for {len(model.entries)} entries")
    comment = model.comment if comment is None else comment
    if len(comment) > MAX_COMMENT:
        raise CorruptArchive("converted archive comment is too long")

    result = RewriteResult()
    position = 0
    for entry, plan in zip(model.entries, plans):
        _check_lengths(plan)
        result.offsets.append(position)
        write_entry(source, sink, entry, plan)
        position = sink.tell()
        if position > MAX_U32:
            raise CorruptArchive("rewritten archive would need ZIP64 offsets")

    result.cd_offset = position
    for entry, plan, offset in zip(model.entries, plans, result.offsets):
        sink.write(central_record(entry, plan, offset))
    result.cd_size = sink.tell() - result.cd_offset

    count = len(model.entries)
    sink.write(
        END_STRUCT.pack(
            SIG_END, 0, 0, count, count, result.cd_size, result.cd_offset, len(comment)
        )
    )
    sink.write(comment)
    result.size = sink.tell()
    return result


def atomic_rewrite(
    path: str | Path,
    model: ContainerModel,
    plans: Sequence[ConversionPlan],
    comment: bytes | None = None,
) -> RewriteResult:
    """Rewrite into a temporary file beside ``path`` and swap it in.

    The original is only replaced once the new file is complete and synced.
    Any failure, including an interrupt, removes the temporary file.
    """
    target = Path(path)
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=TEMP_PREFIX + target.name + ".", suffix=TEMP_SUFFIX, dir=target.parent
        )
    except OSError as exc:
        raise ArchiveIOError(f"Failed to create temporary file: {exc}") from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as sink, open(target, "rb") as source:
            result = rewrite_archive(source, model, plans, sink, comment)
            sink.flush()
            os.fsync(sink.fileno())
        shutil.copymode(target, tmp_path)
        os.replace(tmp_path, target)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise ArchiveIOError(f"Failed to rewrite archive: {exc}") from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.debug(f"Replaced {target} ({model.file_size} -> {result.size} bytes)")
    return result

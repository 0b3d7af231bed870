"""Read the central directory of an existing archive into a ContainerModel."""

from __future__ import annotations

import io
import os
from typing import BinaryIO

from loguru import logger

from ..errors import CorruptArchive, TruncatedFile, UnsupportedFeature
from ..model import ContainerModel, EntryRecord
from .layout import (
    CENTRAL_STRUCT,
    END_STRUCT,
    LOCAL_STRUCT,
    MAX_COMMENT,
    MAX_U16,
    MAX_U32,
    SIG_CENTRAL,
    SIG_END,
    SIG_ZIP64_LOCATOR,
    ZIP64_LOCATOR_STRUCT,
)

DEFAULT_SIZE_CEILING = MAX_U32


def _stream_size(stream: BinaryIO) -> int:
    stream.seek(0, os.SEEK_END)
    return stream.tell()


def _read_exact(stream: BinaryIO, offset: int, size: int) -> bytes:
    stream.seek(offset)
    data = stream.read(size)
    if len(data) != size:
        raise TruncatedFile(f"expected {size} bytes at offset {offset}, got {len(data)}")
    return data


def find_end_record(stream: BinaryIO, file_size: int) -> tuple[int, tuple, bytes]:
    """Locate the end of central directory record.

    The trailing comment may itself contain the signature, so the search
    walks backwards. A match is plausible when its declared comment ends
    exactly at the end of the file; among those the first one whose
    central directory ends right at the record wins. With no such match the
    last plausible one is returned so ZIP64 and stub checks can reject it.
    """
    if file_size < END_STRUCT.size:
        raise CorruptArchive("file too small to be a zip archive")

    window = min(file_size, END_STRUCT.size + MAX_COMMENT)
    start = file_size - window
    tail = _read_exact(stream, start, window)

    fallback = None
    pos = tail.rfind(SIG_END)
    while pos != -1:
        if pos + END_STRUCT.size <= len(tail):
            fields = END_STRUCT.unpack_from(tail, pos)
            if pos + END_STRUCT.size + fields[7] == len(tail):
                found = (start + pos, fields, tail[pos + END_STRUCT.size:])
                if fields[6] + fields[5] == start + pos:
                    return found
                if fallback is None:
                    fallback = found
        pos = tail.rfind(SIG_END, 0, pos)

    if fallback is not None:
        return fallback
    raise CorruptArchive("end of central directory signature not found")


def _check_zip64(stream: BinaryIO, eocd_offset: int, fields: tuple) -> None:
    _, disk, cd_disk, disk_entries, total_entries, cd_size, cd_offset, _ = fields
    locator_offset = eocd_offset - ZIP64_LOCATOR_STRUCT.size
    if locator_offset >= 0:
        stream.seek(locator_offset)
        if stream.read(4) == SIG_ZIP64_LOCATOR:
            raise UnsupportedFeature("ZIP64 archives are not supported")
    if MAX_U16 in (disk_entries, total_entries) or MAX_U32 in (cd_size, cd_offset):
        raise UnsupportedFeature("ZIP64 archives are not supported")
    if disk != 0 or cd_disk != 0 or disk_entries != total_entries:
        raise UnsupportedFeature("multi-disk (spanned) archives are not supported")


def _parse_directory(data: bytes, count: int, cd_offset: int) -> list[EntryRecord]:
    entries: list[EntryRecord] = []
    pos = 0
    for index in range(count):
        if pos + CENTRAL_STRUCT.size > len(data):
            raise CorruptArchive(
                f"central directory entry {index} runs past the declared directory size"
            )
        (
            signature, made_by, needed, flags, method, mtime, mdate, crc,
            csize, usize, name_len, extra_len, comment_len, disk_start,
            internal_attr, external_attr, header_offset,
        ) = CENTRAL_STRUCT.unpack_from(data, pos)
        if signature != SIG_CENTRAL:
            raise CorruptArchive(
                f"bad central directory signature at offset {cd_offset + pos}"
            )
        pos += CENTRAL_STRUCT.size
        end = pos + name_len + extra_len + comment_len
        if end > len(data):
            raise CorruptArchive(
                f"central directory entry {index} runs past the declared directory size"
            )
        name = data[pos:pos + name_len]
        extra = data[pos + name_len:pos + name_len + extra_len]
        comment = data[pos + name_len + extra_len:end]
        pos = end

        entry = EntryRecord(
            header_offset=header_offset,
            version_made_by=made_by,
            version_needed=needed,
            flags=flags,
            method=method,
            mod_time=mtime,
            mod_date=mdate,
            crc32=crc,
            compressed_size=csize,
            uncompressed_size=usize,
            name=name,
            extra=extra,
            comment=comment,
            disk_start=disk_start,
            internal_attr=internal_attr,
            external_attr=external_attr,
        )
        if entry.is_encrypted:
            raise UnsupportedFeature(f"entry '{entry.display_name}' is encrypted")
        if MAX_U32 in (csize, usize, header_offset):
            raise UnsupportedFeature(f"entry '{entry.display_name}' uses ZIP64 sizes")
        entries.append(entry)

    if pos != len(data):
        raise CorruptArchive(
            f"entry count mismatch: {count} entries declared but central directory "
            f"holds {len(data) - pos} more bytes"
        )
    return entries


def scan_archive(stream: BinaryIO, size_ceiling: int = DEFAULT_SIZE_CEILING) -> ContainerModel:
    """Parse ``stream`` into a ContainerModel without touching payload bytes."""
    file_size = _stream_size(stream)
    if file_size > size_ceiling:
        raise UnsupportedFeature(
            f"archive is {file_size} bytes, larger than the {size_ceiling} byte limit"
        )

    eocd_offset, fields, comment = find_end_record(stream, file_size)
    _check_zip64(stream, eocd_offset, fields)
    total_entries, cd_size, cd_offset = fields[4], fields[5], fields[6]

    if cd_offset + cd_size > file_size:
        raise TruncatedFile(
            f"central directory ({cd_offset}+{cd_size}) extends past end of file ({file_size})"
        )
    if cd_offset + cd_size > eocd_offset:
        raise CorruptArchive("central directory overlaps the end of central directory record")
    if cd_offset + cd_size < eocd_offset:
        raise UnsupportedFeature(
            "data between central directory and end record "
            "(prepended stub or self-extracting archive)"
        )

    directory = _read_exact(stream, cd_offset, cd_size)
    entries = _parse_directory(directory, total_entries, cd_offset)
    for entry in entries:
        if entry.header_offset >= cd_offset:
            raise TruncatedFile(
                f"entry '{entry.display_name}' local header offset {entry.header_offset} "
                f"is beyond the central directory"
            )
        # Lower bound: the local extra field is not known until the header is read.
        payload_end = entry.header_offset + LOCAL_STRUCT.size + len(entry.name) + entry.compressed_size
        if payload_end > cd_offset:
            raise TruncatedFile(
                f"entry '{entry.display_name}' declares {entry.compressed_size} compressed bytes, "
                f"past the start of the central directory at {cd_offset}"
            )
    if entries and min(e.header_offset for e in entries) > 0:
        raise UnsupportedFeature(
            "data before the first entry (prepended stub or self-extracting archive)"
        )

    logger.debug(
        f"Scanned {len(entries)} entries, central directory at {cd_offset} ({cd_size} bytes)"
    )
    return ContainerModel(
        entries=entries,
        comment=comment,
        entry_count=total_entries,
        cd_offset=cd_offset,
        cd_size=cd_size,
        eocd_offset=eocd_offset,
        file_size=file_size,
    )


def scan_bytes(data: bytes, size_ceiling: int = DEFAULT_SIZE_CEILING) -> ContainerModel:
    return scan_archive(io.BytesIO(data), size_ceiling)

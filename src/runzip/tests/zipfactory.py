"""Build small zip archives byte by byte.

``zipfile`` always sets the UTF-8 flag for non-ASCII names, so archives
with legacy codepage names have to be assembled by hand.
"""

import struct
import zlib
from dataclasses import dataclass

LOCAL = struct.Struct("<4sHHHHHIIIHH")
CENTRAL = struct.Struct("<4sHHHHHHIIIHHHHHII")
END = struct.Struct("<4sHHHHIIH")

FLAG_ENCRYPTED = 0x1
FLAG_DESCRIPTOR = 0x8
FLAG_UTF8 = 0x800

MOD_TIME = (10 << 11) | (30 << 5)
MOD_DATE = ((2004 - 1980) << 9) | (5 << 5) | 17


@dataclass
class Member:
    name: bytes
    data: bytes = b"payload"
    flags: int = 0
    comment: bytes = b""
    extra: bytes = b""
    deflate: bool = False
    descriptor: bool = False
    signed_descriptor: bool = True
    external_attr: int = 0o100644 << 16


def _compress(data):
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -15)
    return compressor.compress(data) + compressor.flush()


def build_zip(members, comment=b"", *, prefix=b"", gap=b"", zip64_locator=False):
    """Return archive bytes for ``members``.

    ``prefix`` is data before the first local header, ``gap`` is data
    between the central directory and the end record.
    """
    out = bytearray(prefix)
    records = []
    for member in members:
        offset = len(out)
        crc = zlib.crc32(member.data) & 0xFFFFFFFF
        payload = _compress(member.data) if member.deflate else member.data
        method = 8 if member.deflate else 0
        flags = member.flags | (FLAG_DESCRIPTOR if member.descriptor else 0)
        local_crc, local_csize, local_usize = (
            (0, 0, 0) if member.descriptor else (crc, len(payload), len(member.data))
        )
        out += LOCAL.pack(
            b"PK\x03\x04", 20, flags, method, MOD_TIME, MOD_DATE,
            local_crc, local_csize, local_usize, len(member.name), len(member.extra),
        )
        out += member.name + member.extra + payload
        if member.descriptor:
            if member.signed_descriptor:
                out += b"PK\x07\x08"
            out += struct.pack("<III", crc, len(payload), len(member.data))
        records.append(
            CENTRAL.pack(
                b"PK\x01\x02", 0x031E, 20, flags, method, MOD_TIME, MOD_DATE,
                crc, len(payload), len(member.data),
                len(member.name), len(member.extra), len(member.comment),
                0, 0, member.external_attr, offset,
            )
            + member.name + member.extra + member.comment
        )

    cd_offset = len(out)
    for record in records:
        out += record
    cd_size = len(out) - cd_offset
    out += gap
    if zip64_locator:
        out += struct.pack("<4sIQI", b"PK\x06\x07", 0, 0, 1)
    out += END.pack(b"PK\x05\x06", 0, 0, len(records), len(records), cd_size, cd_offset, len(comment))
    out += comment
    return bytes(out)


def payload_bytes(data, info):
    """Stored (possibly compressed) bytes of the member described by ``info``."""
    fields = LOCAL.unpack_from(data, info.header_offset)
    start = info.header_offset + LOCAL.size + fields[9] + fields[10]
    return data[start:start + info.compress_size]


def legacy_name(info, encoding):
    """Undo zipfile's cp437 decoding of a name without the UTF-8 flag."""
    return info.orig_filename.encode("cp437").decode(encoding)

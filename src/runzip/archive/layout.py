"""Fixed record layouts of the zip container (PKWARE APPNOTE), little-endian."""

from __future__ import annotations

import struct

SIG_LOCAL = b"PK\x03\x04"
SIG_CENTRAL = b"PK\x01\x02"
SIG_END = b"PK\x05\x06"
SIG_ZIP64_LOCATOR = b"PK\x06\x07"
SIG_DATA_DESCRIPTOR = b"PK\x07\x08"

# signature, version needed, flags, method, time, date, crc, csize, usize,
# name length, extra length
LOCAL_STRUCT = struct.Struct("<4sHHHHHIIIHH")
# signature, made by, needed, flags, method, time, date, crc, csize, usize,
# name length, extra length, comment length, disk start, internal attr,
# external attr, local header offset
CENTRAL_STRUCT = struct.Struct("<4sHHHHHHIIIHHHHHII")
# signature, this disk, cd disk, entries on disk, total entries, cd size,
# cd offset, comment length
END_STRUCT = struct.Struct("<4sHHHHIIH")
ZIP64_LOCATOR_STRUCT = struct.Struct("<4sIQI")

MAX_COMMENT = 0xFFFF
MAX_U16 = 0xFFFF
MAX_U32 = 0xFFFFFFFF

DESCRIPTOR_SIZE = 12
DESCRIPTOR_SIGNED_SIZE = 16

FLAG_ENCRYPTED = 0x0001
FLAG_DATA_DESCRIPTOR = 0x0008
FLAG_STRONG_ENCRYPTION = 0x0040
FLAG_UNICODE = 0x0800
FLAG_MASKED_DIRECTORY = 0x2000

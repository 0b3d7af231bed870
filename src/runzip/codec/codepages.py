"""Static byte <-> character tables for the supported legacy encodings.

Tables are built once at import from the Python codec registry and are
never mutated afterwards.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from ..errors import ConfigError, UndecodableName

UTF8_NAME = "utf-8"


class Codepage(str, Enum):
    """Legacy encodings runzip can detect and convert from or to."""

    WINDOWS_1251 = "windows-1251"
    CP866 = "cp866"
    KOI8_R = "koi8-r"
    KOI8_U = "koi8-u"


# Tie-break order for the detector. Earlier wins on equal scores.
PREFERENCE_ORDER: tuple[Codepage, ...] = (
    Codepage.WINDOWS_1251,
    Codepage.CP866,
    Codepage.KOI8_R,
    Codepage.KOI8_U,
)

# MS-DOS era OEM codepage, used by Windows' built-in zip folders.
DOS_CODEPAGE = Codepage.CP866


# One instance per encoding, compared by identity.
@dataclass(frozen=True, eq=False)
class EncodingProfile:
    name: str
    codepage: Codepage | None = None
    decode_table: tuple[str | None, ...] = field(default=(), repr=False)
    encode_table: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({}), repr=False
    )

    @property
    def is_unicode(self) -> bool:
        return self.codepage is None

    def __str__(self) -> str:
        return self.name


def _build_profile(codepage: Codepage) -> EncodingProfile:
    decoder = codecs.lookup(codepage.value)
    decode_table: list[str | None] = []
    encode_table: dict[str, int] = {}
    for value in range(256):
        try:
            char, _ = decoder.decode(bytes([value]), "strict")
        except UnicodeDecodeError:
            decode_table.append(None)
            continue
        decode_table.append(char)
        encode_table.setdefault(char, value)
    return EncodingProfile(
        name=codepage.value,
        codepage=codepage,
        decode_table=tuple(decode_table),
        encode_table=MappingProxyType(encode_table),
    )


UTF8 = EncodingProfile(name=UTF8_NAME)

PROFILES: Mapping[Codepage, EncodingProfile] = MappingProxyType(
    {cp: _build_profile(cp) for cp in Codepage}
)

_ALIASES = {
    "utf-8": UTF8_NAME,
    "utf8": UTF8_NAME,
    "utf-8-mac": UTF8_NAME,
    "windows-1251": Codepage.WINDOWS_1251.value,
    "cp1251": Codepage.WINDOWS_1251.value,
    "win1251": Codepage.WINDOWS_1251.value,
    "cp866": Codepage.CP866.value,
    "ibm866": Codepage.CP866.value,
    "866": Codepage.CP866.value,
    "koi8-r": Codepage.KOI8_R.value,
    "koi8r": Codepage.KOI8_R.value,
    "koi8_r": Codepage.KOI8_R.value,
    "koi8-u": Codepage.KOI8_U.value,
    "koi8u": Codepage.KOI8_U.value,
    "koi8_u": Codepage.KOI8_U.value,
}


def profile_for(name: str | Codepage) -> EncodingProfile:
    """Look up a profile by encoding name or alias (case-insensitive)."""
    if isinstance(name, Codepage):
        return PROFILES[name]
    canonical = _ALIASES.get(name.strip().lower())
    if canonical is None:
        raise ConfigError(f"Unsupported encoding: {name}")
    if canonical == UTF8_NAME:
        return UTF8
    return PROFILES[Codepage(canonical)]


def supported_names() -> list[str]:
    return [UTF8_NAME] + [cp.value for cp in Codepage]


def unmapped_bytes(data: bytes, profile: EncodingProfile) -> list[int]:
    """Positions of bytes that have no mapping in ``profile``'s table."""
    table = profile.decode_table
    return [i for i, b in enumerate(data) if table[b] is None]


def decode(data: bytes, profile: EncodingProfile) -> str:
    if profile.is_unicode:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise UndecodableName(data, profile.name) from exc
    table = profile.decode_table
    chars = []
    for b in data:
        char = table[b]
        if char is None:
            raise UndecodableName(data, profile.name)
        chars.append(char)
    return "".join(chars)


def encode(text: str, profile: EncodingProfile) -> bytes:
    if profile.is_unicode:
        return text.encode("utf-8")
    table = profile.encode_table
    out = bytearray()
    for char in text:
        value = table.get(char)
        if value is None:
            raise UndecodableName(text.encode("utf-8"), profile.name, reason="encode")
        out.append(value)
    return bytes(out)


def is_ascii(data: bytes) -> bool:
    return all(b < 0x80 for b in data)

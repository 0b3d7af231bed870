"""Codepage tables, encoding detection and name conversion."""

from .codepages import PROFILES, UTF8, Codepage, EncodingProfile, profile_for
from .detector import DetectionResult, detect

__all__ = [
    "Codepage",
    "DetectionResult",
    "EncodingProfile",
    "PROFILES",
    "UTF8",
    "detect",
    "profile_for",
]

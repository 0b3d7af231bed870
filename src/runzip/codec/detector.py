"""Guess which legacy Cyrillic codepage a byte string was written in.

Every candidate decodes the bytes through its table and the decoded text
is scored on four signals. ASCII decodes the same in every candidate, so
the letter signals only look at the non-ASCII characters:

* ``alphabet``  - share of characters that are Cyrillic letters
* ``printable`` - share of printable characters
* ``frequency`` - mean letter frequency, normalised to the commonest letter
* ``case``      - penalises a capital directly after a lowercase letter

Equal scores are resolved by ``PREFERENCE_ORDER`` so identical input always
gives the identical answer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .codepages import PREFERENCE_ORDER, PROFILES, Codepage, is_ascii, unmapped_bytes

MIN_CONFIDENCE = 0.5
AMBIGUITY_MARGIN = 0.02

WEIGHT_ALPHABET = 0.45
WEIGHT_PRINTABLE = 0.15
WEIGHT_FREQUENCY = 0.25
WEIGHT_CASE = 0.15

# Letter frequencies (percent) in Russian prose; Ukrainian-only letters are
# rated as they appear in Ukrainian.
LETTER_FREQUENCY = {
    "о": 10.97, "е": 8.45, "а": 8.01, "и": 7.35, "н": 6.70, "т": 6.26,
    "с": 5.47, "р": 4.73, "в": 4.54, "л": 4.40, "к": 3.49, "м": 3.21,
    "д": 2.98, "п": 2.81, "у": 2.62, "я": 2.01, "ы": 1.90, "ь": 1.74,
    "г": 1.70, "з": 1.65, "б": 1.59, "ч": 1.44, "й": 1.21, "х": 0.97,
    "ж": 0.94, "ш": 0.73, "ю": 0.64, "ц": 0.48, "щ": 0.36, "э": 0.32,
    "ф": 0.26, "ъ": 0.04, "ё": 0.04,
    "і": 5.00, "ї": 0.60, "є": 0.40, "ґ": 0.10,
}
_MAX_FREQUENCY = max(LETTER_FREQUENCY.values())


def is_cyrillic_letter(char: str) -> bool:
    return "\u0400" <= char <= "\u04ff" and char.isalpha()


@dataclass(frozen=True)
class CandidateScore:
    codepage: Codepage
    score: float
    text: str


@dataclass(frozen=True)
class DetectionResult:
    codepage: Codepage | None
    score: float
    ambiguous: bool = False
    candidates: tuple[CandidateScore, ...] = field(default=(), repr=False)

    @property
    def is_unknown(self) -> bool:
        return self.codepage is None


def score_text(text: str) -> float:
    """Score decoded text on how much it looks like Cyrillic words."""
    if not text:
        return 0.0
    foreign = [c for c in text if ord(c) >= 0x80]
    if not foreign:
        return 0.0

    letters = [c for c in foreign if is_cyrillic_letter(c)]
    alphabet = len(letters) / len(foreign)
    printable = sum(1 for c in text if c.isprintable()) / len(text)

    if letters:
        frequency = sum(LETTER_FREQUENCY.get(c.lower(), 0.0) for c in letters)
        frequency = frequency / len(letters) / _MAX_FREQUENCY
        violations = sum(
            1
            for prev, cur in zip(text, text[1:])
            if is_cyrillic_letter(cur) and cur.isupper() and prev.islower()
        )
        case = 1.0 - violations / len(letters)
    else:
        frequency = 0.0
        case = 0.0

    return (
        WEIGHT_ALPHABET * alphabet
        + WEIGHT_PRINTABLE * printable
        + WEIGHT_FREQUENCY * frequency
        + WEIGHT_CASE * case
    )


def score_candidate(raw: bytes, codepage: Codepage) -> CandidateScore | None:
    """Decode ``raw`` with ``codepage`` and score it; None when rejected."""
    profile = PROFILES[codepage]
    if unmapped_bytes(raw, profile):
        return None
    text = "".join(profile.decode_table[b] for b in raw)
    return CandidateScore(codepage=codepage, score=round(score_text(text), 6), text=text)


def detect(
    raw: bytes,
    candidates: Iterable[Codepage] = PREFERENCE_ORDER,
    min_confidence: float = MIN_CONFIDENCE,
) -> DetectionResult:
    """Return the best scoring candidate for ``raw`` or an unknown result."""
    if is_ascii(raw):
        return DetectionResult(codepage=None, score=0.0)

    order = {cp: i for i, cp in enumerate(PREFERENCE_ORDER)}
    scored = [s for s in (score_candidate(raw, cp) for cp in candidates) if s is not None]
    if not scored:
        return DetectionResult(codepage=None, score=0.0)

    # Highest score first, preference order breaks ties.
    ranked: Sequence[CandidateScore] = sorted(
        scored, key=lambda s: (-s.score, order.get(s.codepage, len(order)))
    )
    best = ranked[0]
    if best.score < min_confidence:
        return DetectionResult(codepage=None, score=best.score, candidates=tuple(ranked))

    ambiguous = any(
        other.text != best.text and best.score - other.score < AMBIGUITY_MARGIN
        for other in ranked[1:]
    )
    return DetectionResult(
        codepage=best.codepage,
        score=best.score,
        ambiguous=ambiguous,
        candidates=tuple(ranked),
    )

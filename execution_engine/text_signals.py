"""Diacritic-insensitive token matching for free-text self assessments and decisions."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Iterable, Optional


def normalize_text(value: Optional[str]) -> str:
    """NFD-decompose, drop combining marks and lowercase."""

    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def count_hits(text: str, tokens: Iterable[str]) -> int:
    """Number of tokens found as substrings; each token counts once."""

    return sum(1 for token in tokens if token in text)


@dataclass(frozen=True)
class TokenTally:
    positive: int
    negative: int
    has_text: bool

    def majority(self, positive: str, negative: str, tie: str) -> str:
        if self.positive > self.negative:
            return positive
        if self.negative > self.positive:
            return negative
        return tie


def tally(text: Optional[str], positive_tokens: Iterable[str], negative_tokens: Iterable[str]) -> TokenTally:
    normalized = normalize_text(text)
    return TokenTally(
        positive=count_hits(normalized, positive_tokens),
        negative=count_hits(normalized, negative_tokens),
        has_text=bool(normalized),
    )


def classify_decision(text: Optional[str], focus_tokens: Iterable[str], risk_tokens: Iterable[str]) -> str:
    """Map decision text to executiva / risco / neutra."""

    return tally(text, focus_tokens, risk_tokens).majority("executiva", "risco", "neutra")


def perceived_level(text: Optional[str], high_tokens: Iterable[str], low_tokens: Iterable[str]) -> str:
    result = tally(text, high_tokens, low_tokens)
    if not result.has_text:
        return "sem_dados"
    return result.majority("alto", "baixo", "medio")

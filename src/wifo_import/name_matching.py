"""Fuzzy matching of statement agent names against employee names."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Generic, Iterable, Protocol, TypeVar

from rapidfuzz.distance import Levenshtein

from wifo_import.models.enums import MatchType

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")

SURNAME_THRESHOLD = 0.9
PART_THRESHOLD = 0.85
INITIALS_SCORE = 0.7


class Named(Protocol):
    name: str


T = TypeVar("T", bound=Named)


@dataclass(frozen=True)
class ParsedName:
    first_name: str | None
    last_name: str | None
    parts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NameMatch:
    score: float
    match_type: MatchType


@dataclass(frozen=True)
class BestMatch(Generic[T]):
    """Best candidate for a name; candidate is None when below the threshold."""

    candidate: T | None
    score: float
    match_type: MatchType

    @property
    def found(self) -> bool:
        return self.candidate is not None

    @property
    def is_exact(self) -> bool:
        return self.match_type == MatchType.EXACT


@dataclass(frozen=True)
class ScoredCandidate(Generic[T]):
    candidate: T
    score: float
    match_type: MatchType


def distance(a: str, b: str) -> int:
    """Levenshtein edit distance, case-insensitive."""

    return Levenshtein.distance(a.lower(), b.lower())


def similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    longest = max(len(a), len(b))
    return 1.0 - distance(a, b) / longest


def normalize(name: str | None) -> str:
    """Lowercase, strip accents and punctuation, collapse whitespace."""

    if not name:
        return ""
    text = name.lower().replace("ß", "ss")
    text = unicodedata.normalize("NFD", text)
    text = "".join(char for char in text if not unicodedata.combining(char))
    text = _NON_ALNUM.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def parse_name(name: str | None) -> ParsedName:
    """Split a name into first/last parts; handles "Last, First" and "First Last"."""

    if not name:
        return ParsedName(None, None, [])
    if "," in name:
        last_raw, _, first_raw = name.partition(",")
        last = normalize(last_raw) or None
        first = normalize(first_raw) or None
        return ParsedName(first, last, normalize(name).split())
    parts = normalize(name).split()
    if not parts:
        return ParsedName(None, None, [])
    if len(parts) == 1:
        return ParsedName(None, parts[0], parts)
    return ParsedName(" ".join(parts[:-1]), parts[-1], parts)


def _initials(parts: list[str]) -> str:
    return "".join(part[0] for part in parts if part)


def match_names(search: str | None, candidate: str | None) -> NameMatch:
    """Score two names with several strategies and keep the best one."""

    search_norm = normalize(search)
    candidate_norm = normalize(candidate)
    if not search_norm or not candidate_norm:
        return NameMatch(0.0, MatchType.NONE)
    if search_norm == candidate_norm:
        return NameMatch(1.0, MatchType.EXACT)

    search_parsed = parse_name(search)
    candidate_parsed = parse_name(candidate)
    # "Schmidt, Anna" vs "Anna Schmidt"
    if search_parsed.first_name and search_parsed.last_name:
        if (search_parsed.first_name, search_parsed.last_name) == (
            candidate_parsed.first_name,
            candidate_parsed.last_name,
        ):
            return NameMatch(1.0, MatchType.EXACT)

    best = NameMatch(0.0, MatchType.NONE)

    def consider(score: float, match_type: MatchType) -> None:
        nonlocal best
        if score > best.score:
            best = NameMatch(score, match_type)

    if search_parsed.last_name and candidate_parsed.last_name:
        surname = similarity(search_parsed.last_name, candidate_parsed.last_name)
        if surname > SURNAME_THRESHOLD:
            if search_parsed.first_name and candidate_parsed.first_name:
                first = similarity(search_parsed.first_name, candidate_parsed.first_name)
                consider(0.6 * surname + 0.4 * first, MatchType.NAME_PARTS)
            else:
                consider(0.8 * surname, MatchType.LAST_NAME_ONLY)

    consider(similarity(search_norm, candidate_norm), MatchType.FUZZY_FULL)

    search_parts = search_norm.split()
    candidate_parts = candidate_norm.split()
    matched = sum(
        1
        for part in search_parts
        if any(similarity(part, other) > PART_THRESHOLD for other in candidate_parts)
    )
    consider(matched / max(len(search_parts), len(candidate_parts)), MatchType.PARTS_MATCH)

    search_initials = _initials(search_parsed.parts)
    if len(search_initials) >= 2 and search_initials == _initials(candidate_parsed.parts):
        consider(INITIALS_SCORE, MatchType.INITIALS)

    return best


def find_best_match(search: str | None, candidates: Iterable[T], min_score: float = 0.7) -> BestMatch[T]:
    """Return the highest scoring candidate, or no candidate when below min_score."""

    best_candidate: T | None = None
    best = NameMatch(0.0, MatchType.NONE)
    for candidate in candidates:
        result = match_names(search, candidate.name)
        if result.score > best.score:
            best = result
            best_candidate = candidate
            if result.match_type == MatchType.EXACT:
                break
    if best_candidate is None or best.score < min_score:
        return BestMatch(None, best.score, best.match_type)
    return BestMatch(best_candidate, best.score, best.match_type)


def find_all_matches(
    search: str | None, candidates: Iterable[T], min_score: float = 0.5
) -> list[ScoredCandidate[T]]:
    """Return every candidate scoring at least min_score, best first."""

    scored = []
    for candidate in candidates:
        result = match_names(search, candidate.name)
        if result.score >= min_score:
            scored.append(ScoredCandidate(candidate, result.score, result.match_type))
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored

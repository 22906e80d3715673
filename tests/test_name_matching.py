from __future__ import annotations

"""Behaviour tests for agent-name fuzzy matching."""

import pytest

from wifo_import.models.entries import Employee
from wifo_import.models.enums import MatchType
from wifo_import.name_matching import (
    distance,
    find_all_matches,
    find_best_match,
    match_names,
    normalize,
    parse_name,
    similarity,
)

EMPLOYEES = [
    Employee(id="E1", name="Anna Schmidt", first_name="Anna", last_name="Schmidt"),
    Employee(id="E2", name="Anne Schmidt"),
    Employee(id="E3", name="Peter Meyer", first_name="Peter", last_name="Meyer"),
]


def test_distance_basics() -> None:
    """Identical strings have distance 0; the textbook example needs three edits."""

    assert distance("kitten", "sitting") == 3
    assert distance("Schmidt", "schmidt") == 0
    assert distance("", "abc") == 3
    for value in ("", "a", "Müller"):
        assert distance(value, value) == 0


def test_similarity_bounds() -> None:
    """Similarity stays within [0, 1] and is 0 for empty input."""

    assert similarity("", "x") == 0
    assert similarity("x", "") == 0
    assert similarity("abc", "abc") == 1.0
    assert 0.0 <= similarity("kitten", "sitting") <= 1.0
    assert similarity(normalize("Müller"), normalize("Mueller")) > 0.7


def test_normalize_strips_accents_and_punctuation() -> None:
    """Normalization lowercases, folds umlauts and collapses separators."""

    assert normalize("  Jürgen-Maß ") == "jurgen mass"
    assert normalize("O'Neil,   Sean") == "o neil sean"
    assert normalize(None) == ""


def test_parse_name_formats() -> None:
    """Comma form, natural order and single tokens are all understood."""

    comma = parse_name("Schmidt, Anna")
    assert (comma.first_name, comma.last_name) == ("anna", "schmidt")

    natural = parse_name("Anna Maria Schmidt")
    assert (natural.first_name, natural.last_name) == ("anna maria", "schmidt")
    assert natural.parts == ["anna", "maria", "schmidt"]

    single = parse_name("Schmidt")
    assert (single.first_name, single.last_name) == (None, "schmidt")


def test_match_names_comma_form_is_exact() -> None:
    """"Last, First" and "First Last" of the same person match exactly."""

    result = match_names("Schmidt, Anna", "Anna Schmidt")
    assert result.score == 1.0
    assert result.match_type == MatchType.EXACT


def test_match_names_strategies() -> None:
    """Each strategy wins in the situation it is designed for."""

    parts = match_names("Schmidt, Johann", "Johannes Schmidt")
    assert parts.match_type == MatchType.NAME_PARTS
    assert parts.score == pytest.approx(0.9)

    surname = match_names("Schmidt", "Anna Schmidt")
    assert surname.match_type == MatchType.LAST_NAME_ONLY
    assert surname.score == pytest.approx(0.8)

    fuzzy = match_names("Anna Schmidt", "Anne Schmidt")
    assert fuzzy.match_type == MatchType.FUZZY_FULL
    assert fuzzy.score == pytest.approx(11 / 12)

    reordered = match_names("Maria Anna Schmidt", "Anna Maria Schmidt")
    assert reordered.match_type == MatchType.PARTS_MATCH
    assert reordered.score == 1.0

    initials = match_names("A B", "Anna Berger")
    assert initials.match_type == MatchType.INITIALS
    assert initials.score == pytest.approx(0.7)


def test_match_names_empty_input() -> None:
    """Empty names never raise and never match."""

    result = match_names("", "Anna Schmidt")
    assert result.score == 0
    assert result.match_type == MatchType.NONE


def test_find_best_match_returns_exact_employee() -> None:
    """The exact employee is chosen and flagged as exact."""

    best = find_best_match("Schmidt, Anna", EMPLOYEES)
    assert best.candidate is not None
    assert best.candidate.id == "E1"
    assert best.is_exact


def test_find_best_match_below_threshold_keeps_score() -> None:
    """Below the threshold no candidate is returned but the score is kept."""

    best = find_best_match("Schmidt", EMPLOYEES, min_score=0.9)
    assert best.candidate is None
    assert not best.found
    assert best.score == pytest.approx(0.8)


def test_find_all_matches_sorted_by_score() -> None:
    """Candidates above the minimum are returned best first."""

    matches = find_all_matches("Anna Schmidt", EMPLOYEES)
    assert [m.candidate.id for m in matches] == ["E1", "E2"]
    assert matches[0].score >= matches[1].score

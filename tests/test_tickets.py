"""Tests for ticket reference extraction."""

from __future__ import annotations

import pytest

from conftest import make_commit
from jira_changelog.tickets import TicketExtractor, TicketReference, collect_references


def test_extract_finds_keys_in_subject_and_body() -> None:
    extractor = TicketExtractor()
    message = "PROJ-12: fix login\n\nAlso touches OPS-7 and PROJ-12 again."

    assert extractor.extract(message) == frozenset({"PROJ-12", "OPS-7"})


def test_extract_returns_empty_set_without_keys() -> None:
    assert TicketExtractor().extract("unrelated cleanup") == frozenset()


def test_extract_is_case_sensitive() -> None:
    assert TicketExtractor().extract("fixes proj-12 and Proj-13") == frozenset()


@pytest.mark.parametrize(
    "message",
    [
        "merge 3fAB-1234 into main",
        "xPROJ-12 is not a key",
        "PROJ-12a has a trailing letter",
        "deadbeefAB-12",
    ],
)
def test_extract_ignores_keys_embedded_in_longer_tokens(message: str) -> None:
    assert TicketExtractor().extract(message) == frozenset()


def test_extract_accepts_punctuation_boundaries() -> None:
    extractor = TicketExtractor()

    assert extractor.extract("[PROJ-1] (OPS-2), done: CORE-3.") == frozenset(
        {"PROJ-1", "OPS-2", "CORE-3"}
    )


def test_project_prefix_length_is_bounded() -> None:
    extractor = TicketExtractor()

    assert extractor.extract("A-1") == frozenset()
    assert extractor.extract("ABCDEFGHIJK-1") == frozenset()
    assert extractor.extract("ABCDEFGHIJ-1") == frozenset({"ABCDEFGHIJ-1"})


def test_custom_pattern_with_capture_group() -> None:
    extractor = TicketExtractor(r"#(\d+)")

    assert extractor.extract("closes #42 and #7") == frozenset({"42", "7"})


@pytest.mark.parametrize("pattern", ["[A-Z", "[A-Z]+-[0-9", "(PROJ-[0-9]+"])
def test_unbalanced_pattern_is_rejected(pattern: str) -> None:
    with pytest.raises(ValueError, match="Invalid ticket pattern"):
        TicketExtractor(pattern)


def test_too_many_capture_groups_are_rejected() -> None:
    with pytest.raises(ValueError, match="at most one capture group"):
        TicketExtractor(r"([A-Z]+)-(\d+)")


def test_collect_references_tracks_mentioning_commits() -> None:
    commits = [
        make_commit("PROJ-12: fix bug", 0),
        make_commit("unrelated cleanup", 1),
        make_commit("PROJ-12 follow-up, see OPS-3", 2),
    ]

    commit_refs, references = collect_references(commits, TicketExtractor())

    assert commit_refs[commits[0].hash] == frozenset({"PROJ-12"})
    assert commit_refs[commits[1].hash] == frozenset()
    assert references == [
        TicketReference(key="PROJ-12", commits=(commits[0].hash, commits[2].hash)),
        TicketReference(key="OPS-3", commits=(commits[2].hash,)),
    ]

"""Extract ticket references from commit messages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Pattern

from .source_control import RawCommit

DEFAULT_TICKET_PATTERN = r"[A-Z][A-Z0-9]{1,9}-[0-9]+"

# Keys embedded in longer alphanumeric tokens (hash fragments, identifiers)
# must not match.
_LEADING_BOUNDARY = r"(?<![A-Za-z0-9])"
_TRAILING_BOUNDARY = r"(?![A-Za-z0-9])"


@dataclass(frozen=True)
class TicketReference:
    """A ticket key and the commits that mention it, in commit order."""

    key: str
    commits: tuple[str, ...]


def compile_ticket_pattern(pattern: str = DEFAULT_TICKET_PATTERN) -> Pattern[str]:
    """Compile a ticket pattern with word-boundary guards on both sides."""
    try:
        bare = re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid ticket pattern '{pattern}': {exc}") from exc
    if bare.groups > 1:
        raise ValueError(
            f"Ticket pattern '{pattern}' may contain at most one capture group for the key."
        )
    try:
        return re.compile(f"{_LEADING_BOUNDARY}(?:{bare.pattern}){_TRAILING_BOUNDARY}")
    except re.error as exc:
        raise ValueError(f"Invalid ticket pattern '{pattern}': {exc}") from exc


class TicketExtractor:
    """Find candidate ticket keys in commit messages."""

    def __init__(self, pattern: str = DEFAULT_TICKET_PATTERN) -> None:
        self.pattern = compile_ticket_pattern(pattern)

    def extract(self, message: str) -> frozenset[str]:
        """Return the distinct keys mentioned anywhere in ``message``."""
        keys: set[str] = set()
        for match in self.pattern.finditer(message):
            key = match.group(1) if self.pattern.groups else match.group(0)
            if key:
                keys.add(key)
        return frozenset(keys)


def collect_references(
    commits: Iterable[RawCommit],
    extractor: TicketExtractor,
) -> tuple[dict[str, frozenset[str]], list[TicketReference]]:
    """Extract keys for every commit.

    Returns the per-commit key sets and the references ordered by first
    mention, each listing the hashes of the commits that mention it.
    """
    commit_refs: dict[str, frozenset[str]] = {}
    mentions: dict[str, list[str]] = {}
    for commit in commits:
        keys = extractor.extract(commit.message)
        commit_refs[commit.hash] = keys
        for key in sorted(keys):
            hashes = mentions.setdefault(key, [])
            if commit.hash not in hashes:
                hashes.append(commit.hash)
    references = [
        TicketReference(key=key, commits=tuple(hashes)) for key, hashes in mentions.items()
    ]
    return commit_refs, references

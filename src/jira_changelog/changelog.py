"""Assemble commits and resolved tickets into the changelog model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from .jira import Ticket
from .source_control import RawCommit

DEFAULT_TYPE_PRIORITY = ("Bug", "Task", "Story")
DEFAULT_EXCLUDED_TYPES = ("Sub-task",)


@dataclass(frozen=True)
class TicketGroup:
    """A ticket and the commits that reference it, in commit order."""

    ticket: Ticket
    commits: tuple[RawCommit, ...]


@dataclass(frozen=True)
class Changelog:
    """The assembled changelog.

    ``groups`` are ordered by ticket type priority, then by ticket key in
    lexical order. ``untracked`` keeps the original commit order.
    """

    groups: tuple[TicketGroup, ...]
    untracked: tuple[RawCommit, ...]
    release: Optional[str] = None

    @property
    def tickets(self) -> list[Ticket]:
        return [group.ticket for group in self.groups]

    @property
    def is_empty(self) -> bool:
        return not self.groups and not self.untracked


def group_sort_key(ticket: Ticket, type_priority: Sequence[str]) -> tuple[int, str]:
    try:
        rank = list(type_priority).index(ticket.type)
    except ValueError:
        rank = len(type_priority)
    return rank, ticket.key


def assemble_changelog(
    commits: Iterable[RawCommit],
    resolved: Mapping[str, Optional[Ticket]],
    commit_refs: Mapping[str, Iterable[str]],
    release: Optional[str] = None,
    *,
    type_priority: Sequence[str] = DEFAULT_TYPE_PRIORITY,
    excluded_types: Iterable[str] = DEFAULT_EXCLUDED_TYPES,
) -> Changelog:
    """Build the changelog model without performing any I/O.

    A commit referencing several resolved tickets is listed under each of
    them. Commits without any resolved ticket land in ``untracked``. Commits
    whose only tickets have an excluded type are dropped.
    """
    excluded = set(excluded_types)
    tickets: dict[str, Ticket] = {}
    members: dict[str, list[RawCommit]] = {}
    seen: dict[str, set[str]] = {}
    untracked: list[RawCommit] = []
    untracked_hashes: set[str] = set()

    for commit in commits:
        assert commit.hash in commit_refs, f"no extracted keys for commit {commit.hash}"
        matched: dict[str, Ticket] = {}
        for key in sorted(commit_refs[commit.hash]):
            assert isinstance(key, str), f"ticket key must be a string, got {key!r}"
            ticket = resolved.get(key)
            if ticket is not None:
                matched.setdefault(ticket.key, ticket)
        if not matched:
            if commit.hash not in untracked_hashes:
                untracked_hashes.add(commit.hash)
                untracked.append(commit)
            continue
        for canonical_key, ticket in matched.items():
            if ticket.type in excluded:
                continue
            tickets.setdefault(canonical_key, ticket)
            hashes = seen.setdefault(canonical_key, set())
            if commit.hash in hashes:
                continue
            hashes.add(commit.hash)
            members.setdefault(canonical_key, []).append(commit)

    ordered_keys = sorted(members, key=lambda key: group_sort_key(tickets[key], type_priority))
    groups = tuple(
        TicketGroup(ticket=tickets[key], commits=tuple(members[key])) for key in ordered_keys
    )
    return Changelog(groups=groups, untracked=tuple(untracked), release=release)

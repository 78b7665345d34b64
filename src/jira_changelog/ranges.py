"""Commit and date ranges selecting which commits enter the changelog."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

from .errors import ConfigurationError

DEFAULT_RANGE_END = "HEAD"
_RANGE_SEPARATOR = re.compile(r"\.{3}")


@dataclass(frozen=True)
class CommitRange:
    """Commits reachable from ``end`` but not from ``start``."""

    start: str
    end: str = DEFAULT_RANGE_END

    def describe(self) -> str:
        return f"{self.start}...{self.end}"


@dataclass(frozen=True)
class DateRange:
    """Commits authored after ``after`` and, optionally, before ``before``."""

    after: str
    before: Optional[str] = None

    def describe(self) -> str:
        if self.before:
            return f"after {self.after}, before {self.before}"
        return f"after {self.after}"


Range = Union[CommitRange, DateRange]


def parse_range_token(value: str) -> tuple[str, ...]:
    """Split a ``"a...b"`` token into its non-empty bounds."""
    parts = tuple(part.strip() for part in _RANGE_SEPARATOR.split(value))
    if len(parts) > 2:
        raise ValueError(f"Invalid range '{value}'. Expected '<from>...<to>'.")
    return tuple(part for part in parts if part)


def range_from_mapping(raw: Mapping[str, Any]) -> Optional[Range]:
    """Build a range from a config mapping with ``from``/``to`` or ``after``/``before`` keys."""
    start = _optional_text(raw.get("from"))
    end = _optional_text(raw.get("to"))
    after = _optional_text(raw.get("after"))
    before = _optional_text(raw.get("before"))
    if (start or end) and (after or before):
        raise ValueError("A range uses either 'from'/'to' or 'after'/'before', not both.")
    if start:
        return CommitRange(start=start, end=end or DEFAULT_RANGE_END)
    if end:
        raise ValueError("A commit range with 'to' also needs 'from'.")
    if after:
        return DateRange(after=after, before=before)
    if before:
        raise ValueError("A date range with 'before' also needs 'after'.")
    return None


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def resolve_range(
    commit_bounds: Optional[Sequence[str]],
    date_bounds: Optional[Sequence[str]],
    default_range: Optional[Range],
) -> Range:
    """Pick the range for this run.

    An explicit commit range wins over a date range, which wins over the
    configured default. Fails before any git or network call when nothing
    resolves.
    """
    if commit_bounds:
        start = commit_bounds[0]
        end = commit_bounds[1] if len(commit_bounds) > 1 else DEFAULT_RANGE_END
        return CommitRange(start=start, end=end)
    if date_bounds:
        before = date_bounds[1] if len(date_bounds) > 1 else None
        return DateRange(after=date_bounds[0], before=before)
    if default_range is not None:
        return default_range
    raise ConfigurationError(
        "No range defined for the changelog. Pass --range or --date, "
        "or set source_control.default_range in the config."
    )

"""Read commit logs from a git working tree."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import SourceControlError
from .ranges import CommitRange, DateRange, Range
from .utils import coerce_datetime, log_debug

_FIELD_SEPARATOR = "\x1f"
_RECORD_SEPARATOR = "\x1e"
_LOG_FORMAT = _FIELD_SEPARATOR.join(("%H", "%an", "%aI", "%B")) + _RECORD_SEPARATOR


@dataclass(frozen=True)
class RawCommit:
    """A single commit as reported by git."""

    hash: str
    author: str
    date: Optional[datetime]
    message: str

    @property
    def summary(self) -> str:
        """Return the first line of the commit message."""
        return self.message.strip().split("\n", 1)[0].strip()

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


def _range_arguments(commit_range: Range) -> list[str]:
    if isinstance(commit_range, CommitRange):
        return [f"{commit_range.start}..{commit_range.end}"]
    if isinstance(commit_range, DateRange):
        arguments = [f"--after={commit_range.after}"]
        if commit_range.before:
            arguments.append(f"--before={commit_range.before}")
        return arguments
    raise TypeError(f"Unsupported range type: {type(commit_range).__name__}")


def parse_commit_log(output: str) -> list[RawCommit]:
    """Parse ``git log`` output produced with the internal record format."""
    commits: list[RawCommit] = []
    for record in output.split(_RECORD_SEPARATOR):
        record = record.strip("\n")
        if not record.strip():
            continue
        fields = record.split(_FIELD_SEPARATOR, 3)
        if len(fields) != 4:
            raise SourceControlError(f"Unexpected git log record: {record[:80]!r}")
        commit_hash, author, authored, message = fields
        commits.append(
            RawCommit(
                hash=commit_hash.strip(),
                author=author.strip(),
                date=coerce_datetime(authored.strip()),
                message=message.strip(),
            )
        )
    return commits


def get_commit_logs(
    root: Path,
    commit_range: Range,
    *,
    include_merges: bool = False,
) -> list[RawCommit]:
    """Return the commits in ``commit_range``, oldest first."""
    command = ["git", "log", "--reverse", f"--format={_LOG_FORMAT}"]
    if not include_merges:
        command.append("--no-merges")
    command.extend(_range_arguments(commit_range))
    command.append("--")
    log_debug(f"running {' '.join(command)} in {root}")
    try:
        result = subprocess.run(
            command,
            cwd=str(root),
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise SourceControlError(
            "git is required to read commit logs but was not found in PATH."
        ) from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        raise SourceControlError(
            f"git failed to read commits for {commit_range.describe()}: {detail}"
        ) from exc
    commits = parse_commit_log(result.stdout)
    log_debug(f"read {len(commits)} commit(s) for {commit_range.describe()}")
    return commits

"""Python-friendly facade for invoking jira-changelog functionality."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from .cli import CLIContext, create_cli_context
from .config import Config
from .pipeline import RunOptions, RunResult, generate, run
from .ranges import parse_range_token
from .releases import release_input_from_flag
from .utils import emit_output


class JiraChangelog:
    """High-level helper that mirrors the CLI for Python callers."""

    def __init__(
        self,
        *,
        root: Path | str | None = None,
        config: Path | str | None = None,
        debug: bool = False,
    ) -> None:
        resolved_root = Path(root) if root is not None else None
        resolved_config = Path(config) if config is not None else None
        self._ctx = create_cli_context(
            root=resolved_root,
            config=resolved_config,
            debug=debug,
        )

    @property
    def context(self) -> CLIContext:
        """Expose the underlying CLIContext for advanced scenarios."""

        return self._ctx

    @property
    def config(self) -> Config:
        return self._ctx.ensure_config()

    def _options(
        self,
        *,
        commit_range: Union[str, Sequence[str], None],
        date_range: Union[str, Sequence[str], None],
        release: Union[str, bool, None],
        ticket_id: Optional[str] = None,
        post_slack: bool = False,
    ) -> RunOptions:
        return RunOptions(
            git_root=self._ctx.git_root,
            commit_bounds=_bounds(commit_range),
            date_bounds=_bounds(date_range),
            release=release_input_from_flag(release),
            ticket_id=ticket_id,
            post_slack=post_slack,
        )

    def generate(
        self,
        *,
        commit_range: Union[str, Sequence[str], None] = None,
        date_range: Union[str, Sequence[str], None] = None,
        release: Union[str, bool, None] = None,
    ) -> RunResult:
        """Build and render the changelog without printing or posting it.

        Args:
            commit_range: ``"from...to"`` or a ``(from, to)`` sequence.
            date_range: ``"after...before"`` or an ``(after, before)`` sequence.
            release: A release name, ``True`` to generate one, or None.
        """
        options = self._options(commit_range=commit_range, date_range=date_range, release=release)
        return asyncio.run(generate(self.config, options))

    def run(
        self,
        *,
        commit_range: Union[str, Sequence[str], None] = None,
        date_range: Union[str, Sequence[str], None] = None,
        release: Union[str, bool, None] = None,
        ticket_id: Optional[str] = None,
        post_slack: bool = False,
        emit: Callable[[str], None] = emit_output,
    ) -> RunResult:
        """Run the same workflow as the CLI, including Slack and ticket writeback."""
        options = self._options(
            commit_range=commit_range,
            date_range=date_range,
            release=release,
            ticket_id=ticket_id,
            post_slack=post_slack,
        )
        return asyncio.run(run(self.config, options, emit=emit))


def _bounds(value: Union[str, Sequence[str], None]) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return parse_range_token(value)
    return tuple(str(item) for item in value if str(item).strip())

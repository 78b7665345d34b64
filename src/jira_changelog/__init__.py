"""Core package exports for jira-changelog."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as metadata_version
from typing import TYPE_CHECKING, Any

__all__ = ["__version__", "JiraChangelog", "create_cli_context"]

try:
    __version__ = metadata_version("jira-changelog")
except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
    __version__ = "0.0.0"

if TYPE_CHECKING:  # pragma: no cover
    from .api import JiraChangelog
    from .cli import create_cli_context


def __getattr__(name: str) -> Any:  # pragma: no cover - simple delegation
    if name == "JiraChangelog":
        from .api import JiraChangelog as _JiraChangelog

        return _JiraChangelog
    if name == "create_cli_context":
        from .cli import create_cli_context as _create_cli_context

        return _create_cli_context
    raise AttributeError(f"module 'jira_changelog' has no attribute {name!r}")

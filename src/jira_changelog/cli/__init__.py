"""CLI package for jira-changelog.

This package contains the CLI implementation:
- _core.py: CLIContext, the changelog command, main entry point
- _rendering.py: Rich rendering of run diagnostics
"""

from __future__ import annotations

from ._core import (
    AUTO_RELEASE,
    CLIContext,
    INFO_PREFIX,
    VERSION_FLAGS,
    changelog_command,
    create_cli_context,
    main,
    run_changelog,
)
from ._rendering import print_unresolved_references, unresolved_references_table

cli = changelog_command

__all__ = [
    "cli",
    "main",
    "AUTO_RELEASE",
    "CLIContext",
    "INFO_PREFIX",
    "VERSION_FLAGS",
    "changelog_command",
    "create_cli_context",
    "run_changelog",
    "print_unresolved_references",
    "unresolved_references_table",
]

"""Error taxonomy for changelog runs."""

from __future__ import annotations


class ChangelogError(Exception):
    """Base class for errors that abort a changelog run with a user-facing message."""


class ConfigurationError(ChangelogError):
    """Missing or invalid configuration (range, release generator, Slack setup)."""


class AuthenticationError(ChangelogError):
    """Credentials were rejected by Jira or Slack."""


class NotFoundError(ChangelogError):
    """A ticket that was explicitly targeted does not exist."""


class TransientError(ChangelogError):
    """A network failure that may succeed when retried."""


class SourceControlError(ChangelogError):
    """git failed to produce the commit log."""

"""Configuration helpers for jira-changelog."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, MutableMapping, Optional

import yaml

from .changelog import DEFAULT_EXCLUDED_TYPES, DEFAULT_TYPE_PRIORITY
from .errors import ConfigurationError
from .jira import DEFAULT_BATCH_SIZE, DEFAULT_CONCURRENCY, DEFAULT_EPIC_FIELD
from .ranges import Range, range_from_mapping
from .releases import ReleaseGenerator
from .tickets import DEFAULT_TICKET_PATTERN, compile_ticket_pattern
from .utils import expand_env_references, import_callable

CONFIG_FILENAME = ".changelog.yaml"
DEFAULT_APPROVAL_STATUSES = ("Done", "Closed", "Accepted")

SlackTransform = Callable[[str, Mapping[str, Any]], Any]


def default_config_path(git_root: Path) -> Path:
    """Return the default config path for a git working tree."""
    return git_root / CONFIG_FILENAME


@dataclass
class JiraConfig:
    """Connection and interpretation settings for Jira."""

    base_url: str = ""
    email: Optional[str] = None
    token: Optional[str] = None
    ticket_pattern: str = DEFAULT_TICKET_PATTERN
    type_priority: tuple[str, ...] = DEFAULT_TYPE_PRIORITY
    excluded_types: tuple[str, ...] = DEFAULT_EXCLUDED_TYPES
    approval_statuses: tuple[str, ...] = DEFAULT_APPROVAL_STATUSES
    epic_field: str = DEFAULT_EPIC_FIELD
    batch_size: int = DEFAULT_BATCH_SIZE
    concurrency: int = DEFAULT_CONCURRENCY
    generate_release_version_name: Optional[ReleaseGenerator] = None


@dataclass
class SlackConfig:
    """Settings for posting the changelog to Slack."""

    api_token: Optional[str] = None
    channel: Optional[str] = None
    username: Optional[str] = None
    icon_emoji: Optional[str] = None

    @property
    def is_enabled(self) -> bool:
        return bool(self.api_token)


@dataclass
class SourceControlConfig:
    """Settings for reading the commit log."""

    default_range: Optional[Range] = None
    include_merges: bool = False


@dataclass
class Config:
    """Structured representation of the changelog config."""

    jira: JiraConfig = field(default_factory=JiraConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    source_control: SourceControlConfig = field(default_factory=SourceControlConfig)
    template: Optional[Path] = None
    transform_for_slack: Optional[SlackTransform] = None


def _mapping(raw: object, name: str) -> MutableMapping[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, MutableMapping):
        raise ValueError(f"Config option '{name}' must be a mapping.")
    return raw


def _optional_string(raw: Mapping[str, Any], key: str, name: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Config option '{name}' must be a string.")
    expanded = expand_env_references(value).strip()
    return expanded or None


def _string_list(
    raw: Mapping[str, Any], key: str, name: str, default: tuple[str, ...]
) -> tuple[str, ...]:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError(f"Config option '{name}' must be a list of strings.")
    normalized: list[str] = []
    for item in value:
        text = str(item).strip()
        if text and text not in normalized:
            normalized.append(text)
    return tuple(normalized)


def _positive_int(raw: Mapping[str, Any], key: str, name: str, default: int) -> int:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config option '{name}' must be a positive integer.")
    return value


def _hook(
    raw: Mapping[str, Any], key: str, name: str, base_dir: Optional[Path] = None
) -> Optional[Callable[..., Any]]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config option '{name}' must be a 'package.module:function' reference.")
    return import_callable(value.strip(), base_dir)


def parse_config(raw: Mapping[str, Any], *, base_dir: Optional[Path] = None) -> Config:
    """Build a Config from parsed YAML data.

    Hook references are imported here so that a missing or broken hook is
    reported when the config loads, not halfway through a run. Hook modules
    next to the config file are found before the rest of ``sys.path``.
    """
    jira_raw = _mapping(raw.get("jira"), "jira")
    slack_raw = _mapping(raw.get("slack"), "slack")
    source_raw = _mapping(raw.get("source_control"), "source_control")

    ticket_pattern = _optional_string(jira_raw, "ticket_pattern", "jira.ticket_pattern")
    ticket_pattern = ticket_pattern or DEFAULT_TICKET_PATTERN
    compile_ticket_pattern(ticket_pattern)

    jira = JiraConfig(
        base_url=_optional_string(jira_raw, "base_url", "jira.base_url") or "",
        email=_optional_string(jira_raw, "email", "jira.email"),
        token=_optional_string(jira_raw, "token", "jira.token"),
        ticket_pattern=ticket_pattern,
        type_priority=_string_list(
            jira_raw, "type_priority", "jira.type_priority", DEFAULT_TYPE_PRIORITY
        ),
        excluded_types=_string_list(
            jira_raw, "excluded_types", "jira.excluded_types", DEFAULT_EXCLUDED_TYPES
        ),
        approval_statuses=_string_list(
            jira_raw, "approval_statuses", "jira.approval_statuses", DEFAULT_APPROVAL_STATUSES
        ),
        epic_field=(
            _optional_string(jira_raw, "epic_field", "jira.epic_field") or DEFAULT_EPIC_FIELD
        ),
        batch_size=_positive_int(jira_raw, "batch_size", "jira.batch_size", DEFAULT_BATCH_SIZE),
        concurrency=_positive_int(
            jira_raw, "concurrency", "jira.concurrency", DEFAULT_CONCURRENCY
        ),
        generate_release_version_name=_hook(
            jira_raw,
            "generate_release_version_name",
            "jira.generate_release_version_name",
            base_dir,
        ),
    )

    slack = SlackConfig(
        api_token=_optional_string(slack_raw, "api_token", "slack.api_token"),
        channel=_optional_string(slack_raw, "channel", "slack.channel"),
        username=_optional_string(slack_raw, "username", "slack.username"),
        icon_emoji=_optional_string(slack_raw, "icon_emoji", "slack.icon_emoji"),
    )

    default_range_raw = source_raw.get("default_range")
    default_range = None
    if default_range_raw is not None:
        default_range = range_from_mapping(
            _mapping(default_range_raw, "source_control.default_range")
        )
    include_merges = source_raw.get("include_merges", False)
    if not isinstance(include_merges, bool):
        raise ValueError("Config option 'source_control.include_merges' must be a boolean.")

    template_raw = _optional_string(raw, "template", "template")
    template: Optional[Path] = None
    if template_raw:
        template = Path(template_raw)
        if not template.is_absolute() and base_dir is not None:
            template = base_dir / template

    return Config(
        jira=jira,
        slack=slack,
        source_control=SourceControlConfig(
            default_range=default_range, include_merges=include_merges
        ),
        template=template,
        transform_for_slack=_hook(raw, "transform_for_slack", "transform_for_slack", base_dir),
    )


def load_config(path: Path) -> Config:
    """Load the configuration from disk."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Config file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse config file '{path}': {exc}") from exc
    if not isinstance(raw, MutableMapping):
        raise ConfigurationError("Config root must be a mapping")
    try:
        return parse_config(raw, base_dir=path.parent)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid config '{path}': {exc}") from exc


def load_project_config(git_root: Path, config_path: Optional[Path] = None) -> Config:
    """Load the explicit config file, the default one, or fall back to defaults."""
    if config_path is not None:
        return load_config(config_path)
    candidate = default_config_path(git_root)
    if candidate.exists():
        return load_config(candidate)
    return Config()

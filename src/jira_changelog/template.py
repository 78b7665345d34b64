"""Project the changelog model into template data and render it."""

from __future__ import annotations

from typing import Any, Optional, Sequence

import jinja2

from .changelog import Changelog
from .config import Config
from .errors import ConfigurationError
from .jira import Ticket
from .source_control import RawCommit

TemplateData = dict[str, Any]

DEFAULT_TEMPLATE = """\
{% if release %}Release: {{ release }}

{% endif -%}
Jira Tickets
---------------------
{% for group in groups %}
  * <{{ group.ticket.type }}> - {{ group.ticket.summary }}
    [{{ group.ticket.key }}] {{ group.ticket.url or group.ticket.key }}
{%- endfor %}
{% if not groups %}  ~ None ~
{% endif %}
Other Commits
---------------------
{% for commit in untracked %}
  * {{ commit.author }} - <{{ commit.short_hash }}> - {{ commit.summary }}
{%- endfor %}
{% if not untracked %}  ~ None ~
{% endif %}
Pending Approval
---------------------
{% for owner in tickets.pending_by_owner %}
{{ owner.name }}
{%- for ticket in owner.tickets %}
  * {{ ticket.url or ticket.key }}
{%- endfor %}
{%- endfor %}
{% if not tickets.pending_by_owner %}  ~ None. Yay! ~
{% endif %}"""

UNASSIGNED_OWNER = "Unassigned"


def _commit_data(commit: RawCommit) -> dict[str, Any]:
    return {
        "hash": commit.hash,
        "short_hash": commit.short_hash,
        "author": commit.author,
        "date": commit.date.isoformat() if commit.date else None,
        "summary": commit.summary,
        "message": commit.message,
    }


def _ticket_data(ticket: Ticket, commits: Sequence[RawCommit], approved: bool) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "key": ticket.key,
        "type": ticket.type,
        "status": ticket.status,
        "summary": ticket.summary,
        "assignee": ticket.assignee,
        "epic_key": ticket.epic_key,
        "url": ticket.url,
        "approved": approved,
        "commits": [_commit_data(commit) for commit in commits],
    }


def generate_template_data(
    config: Config,
    changelog: Changelog,
    release_versions: Sequence[str] = (),
) -> TemplateData:
    """Return the data exposed to templates.

    ``groups``, ``untracked``, ``tickets`` and ``release`` are always present,
    even when the changelog is empty.
    """
    approval_statuses = set(config.jira.approval_statuses)
    groups: list[dict[str, Any]] = []
    all_tickets: list[dict[str, Any]] = []
    by_type: dict[str, list[dict[str, Any]]] = {}
    pending_by_owner: dict[str, list[dict[str, Any]]] = {}
    for group in changelog.groups:
        ticket = _ticket_data(
            group.ticket, group.commits, approved=group.ticket.status in approval_statuses
        )
        groups.append({"ticket": ticket, "commits": ticket["commits"]})
        all_tickets.append(ticket)
        by_type.setdefault(group.ticket.type, []).append(ticket)
        if not ticket["approved"]:
            owner = group.ticket.assignee or UNASSIGNED_OWNER
            pending_by_owner.setdefault(owner, []).append(ticket)

    return {
        "release": changelog.release,
        "release_versions": list(release_versions),
        "groups": groups,
        "untracked": [_commit_data(commit) for commit in changelog.untracked],
        "tickets": {
            "all": all_tickets,
            "approved": [ticket for ticket in all_tickets if ticket["approved"]],
            "pending": [ticket for ticket in all_tickets if not ticket["approved"]],
            "pending_by_owner": [
                {"name": name, "tickets": tickets} for name, tickets in pending_by_owner.items()
            ],
        },
        "tickets_by_type": by_type,
        "jira": {"base_url": config.jira.base_url},
    }


def _load_template_source(config: Config) -> str:
    if config.template is None:
        return DEFAULT_TEMPLATE
    try:
        return config.template.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Template file not found: {config.template}") from exc


def render_template(config: Config, data: TemplateData, *, source: Optional[str] = None) -> str:
    """Render the configured template (or the built-in one) with ``data``.

    Values are HTML-escaped, which keeps Slack markup intact; decode entities
    before printing to a terminal.
    """
    environment = jinja2.Environment(
        autoescape=True,
        keep_trailing_newline=False,
        undefined=jinja2.StrictUndefined,
    )
    try:
        template = environment.from_string(source or _load_template_source(config))
        return template.render(**data)
    except jinja2.TemplateError as exc:
        raise ConfigurationError(f"Failed to render changelog template: {exc}") from exc

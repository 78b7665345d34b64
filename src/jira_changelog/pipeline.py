"""Run the changelog pipeline for one invocation."""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from .changelog import Changelog, assemble_changelog
from .config import Config
from .errors import ConfigurationError
from .jira import JiraClient, Ticket, TicketResolver, writeback
from .ranges import Range, resolve_range
from .releases import Absent, ReleaseInput, assign_release, check_release_input
from .slack import SlackClient, post_to_slack
from .source_control import RawCommit, get_commit_logs
from .template import TemplateData, generate_template_data, render_template
from .tickets import TicketExtractor, TicketReference, collect_references
from .utils import log_debug, log_info, log_success

CommitSource = Callable[..., list[RawCommit]]


@dataclass(frozen=True)
class RunOptions:
    """Everything a single run needs from the command line."""

    git_root: Path
    commit_bounds: tuple[str, ...] = ()
    date_bounds: tuple[str, ...] = ()
    release: ReleaseInput = field(default_factory=Absent)
    ticket_id: Optional[str] = None
    post_slack: bool = False


@dataclass
class RunResult:
    """Outputs of the generation stages."""

    range: Range
    commits: list[RawCommit]
    references: list[TicketReference]
    resolved: dict[str, Optional[Ticket]]
    changelog: Changelog
    template_data: TemplateData
    document: str
    warnings: list[str] = field(default_factory=list)
    unresolved: dict[str, str] = field(default_factory=dict)

    @property
    def console_text(self) -> str:
        """Return the document with HTML entities decoded for terminal output."""
        return html.unescape(self.document)


def create_jira_client(config: Config) -> JiraClient:
    if not config.jira.base_url:
        raise ConfigurationError("jira.base_url is not configured.")
    return JiraClient(
        config.jira.base_url,
        email=config.jira.email,
        token=config.jira.token,
        epic_field=config.jira.epic_field,
    )


async def generate(
    config: Config,
    options: RunOptions,
    *,
    jira_client: Optional[JiraClient] = None,
    commit_source: CommitSource = get_commit_logs,
) -> RunResult:
    """Resolve the range, read commits, resolve tickets, and render the document.

    Configuration problems (no range, no release generator) are reported
    before git or Jira are touched.
    """
    commit_range = resolve_range(
        options.commit_bounds, options.date_bounds, config.source_control.default_range
    )
    generator = config.jira.generate_release_version_name
    check_release_input(options.release, generator)
    extractor = TicketExtractor(config.jira.ticket_pattern)

    release = await assign_release(options.release, generator)

    log_debug(f"reading commits for {commit_range.describe()}")
    commits = commit_source(
        options.git_root,
        commit_range,
        include_merges=config.source_control.include_merges,
    )
    commit_refs, references = collect_references(commits, extractor)
    keys = [reference.key for reference in references]

    resolved: dict[str, Optional[Ticket]] = {}
    warnings: list[str] = []
    unresolved: dict[str, str] = {}
    if keys:
        client = jira_client or create_jira_client(config)
        try:
            resolver = TicketResolver(
                client,
                batch_size=config.jira.batch_size,
                concurrency=config.jira.concurrency,
            )
            resolved = await resolver.resolve(keys)
            warnings = list(resolver.warnings)
            unresolved = dict(resolver.unresolved)
        finally:
            if jira_client is None:
                await client.aclose()

    changelog = assemble_changelog(
        commits,
        resolved,
        commit_refs,
        release,
        type_priority=config.jira.type_priority,
        excluded_types=config.jira.excluded_types,
    )
    log_debug(
        f"assembled {len(changelog.groups)} ticket group(s) and "
        f"{len(changelog.untracked)} untracked commit(s)"
    )
    release_versions: Sequence[str] = [release] if release else []
    data = generate_template_data(config, changelog, release_versions)
    document = render_template(config, data)
    return RunResult(
        range=commit_range,
        commits=commits,
        references=references,
        resolved=resolved,
        changelog=changelog,
        template_data=data,
        document=document,
        warnings=warnings,
        unresolved=unresolved,
    )


async def publish(
    config: Config,
    options: RunOptions,
    result: RunResult,
    *,
    jira_client: Optional[JiraClient] = None,
    slack_client: Optional[SlackClient] = None,
) -> None:
    """Run the optional side effects: Slack post, then release ticket writeback."""
    if options.post_slack:
        await post_to_slack(config, result.template_data, result.document, client=slack_client)
    if options.ticket_id:
        client = jira_client or create_jira_client(config)
        try:
            log_info(f"updating release ticket {options.ticket_id}...")
            await writeback(client, options.ticket_id, result.document)
            log_success(f"updated release ticket {options.ticket_id}")
        finally:
            if jira_client is None:
                await client.aclose()


async def run(
    config: Config,
    options: RunOptions,
    *,
    emit: Callable[[str], None],
    on_generated: Optional[Callable[[RunResult], None]] = None,
    jira_client: Optional[JiraClient] = None,
    slack_client: Optional[SlackClient] = None,
    commit_source: CommitSource = get_commit_logs,
) -> RunResult:
    """Generate the changelog, emit it, then run the requested side effects.

    The document is emitted, and ``on_generated`` called, before Slack or Jira
    are contacted, so a failing side effect never suppresses the output.
    """
    result = await generate(
        config, options, jira_client=jira_client, commit_source=commit_source
    )
    emit(result.console_text)
    if on_generated is not None:
        on_generated(result)
    await publish(config, options, result, jira_client=jira_client, slack_client=slack_client)
    return result

"""Core CLI infrastructure: context, the changelog command, and the entry point."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as metadata_version
from pathlib import Path
from typing import Optional

import click

from .. import __version__ as package_version
from ..config import Config, default_config_path, load_project_config
from ..errors import ChangelogError
from ..pipeline import RunOptions, RunResult, run
from ..ranges import parse_range_token
from ..releases import ReleaseInput, release_input_from_flag
from ..utils import (
    INFO_PREFIX,
    abort_on_user_interrupt,
    configure_logging,
    emit_output,
    log_debug,
)
from ._rendering import print_unresolved_references

__all__ = [
    "CLIContext",
    "INFO_PREFIX",
    "AUTO_RELEASE",
    "VERSION_FLAGS",
    "create_cli_context",
    "changelog_command",
    "run_changelog",
    "main",
]

VERSION_FLAGS = {"--version", "-V"}

# Value click stores when --release is given without a name.
AUTO_RELEASE = "\0auto-release"


def _resolve_cli_version() -> str:
    try:
        return metadata_version("jira-changelog")
    except PackageNotFoundError:
        return package_version


@dataclass
class CLIContext:
    """Shared command context."""

    git_root: Path
    config_path: Optional[Path] = None
    _config: Optional[Config] = None

    def ensure_config(self) -> Config:
        if self._config is None:
            try:
                self._config = load_project_config(self.git_root, self.config_path)
            except ChangelogError as error:
                raise click.ClickException(str(error)) from error
        return self._config


def create_cli_context(
    *,
    root: Path | None = None,
    config: Optional[Path] = None,
    debug: bool = False,
) -> CLIContext:
    """Return a CLIContext using the same resolution logic as the CLI entry point."""

    configure_logging(debug)
    git_root = (root or Path(".")).resolve()
    config_path = config.resolve() if config else None
    log_debug(f"resolved git directory: {git_root}")
    log_debug(f"using config path: {config_path or default_config_path(git_root)}")
    return CLIContext(git_root=git_root, config_path=config_path)


def _parse_range_option(
    ctx: click.Context, param: click.Parameter, value: Optional[str]
) -> tuple[str, ...]:
    if value is None:
        return ()
    try:
        bounds = parse_range_token(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc
    if not bounds:
        raise click.BadParameter("Range must name at least one bound.", ctx=ctx, param=param)
    return bounds


def _release_input(value: Optional[str]) -> ReleaseInput:
    if value == AUTO_RELEASE:
        return release_input_from_flag(True)
    return release_input_from_flag(value)


def _report_unresolved(result: RunResult) -> None:
    if result.unresolved:
        print_unresolved_references(result)


def run_changelog(ctx: CLIContext, options: RunOptions) -> RunResult:
    """Run the pipeline for ``options`` and translate failures into Click errors."""
    config = ctx.ensure_config()
    try:
        return asyncio.run(
            run(config, options, emit=emit_output, on_generated=_report_unresolved)
        )
    except ChangelogError as exc:
        raise click.ClickException(str(exc)) from exc


@click.command(
    name="jira-changelog",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.argument(
    "git_dir",
    required=False,
    type=click.Path(path_type=Path, exists=True, file_okay=False),
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Path to the config file.",
)
@click.option(
    "--range",
    "-r",
    "commit_bounds",
    metavar="FROM...TO",
    callback=_parse_range_option,
    help="Git commit range for the changelog.",
)
@click.option(
    "--date",
    "-d",
    "date_bounds",
    metavar="AFTER[...BEFORE]",
    callback=_parse_range_option,
    help="Only include commits after this date (and before the optional second date).",
)
@click.option(
    "--slack",
    "-s",
    "post_slack",
    is_flag=True,
    help="Post the changelog to Slack (if configured).",
)
@click.option(
    "--release",
    is_flag=False,
    flag_value=AUTO_RELEASE,
    default=None,
    metavar="[NAME]",
    help="Assign a release version to these tickets; generated when no name is given.",
)
@click.option(
    "--ticket",
    "-t",
    "ticket_id",
    metavar="TICKET_ID",
    help="Write the changelog into the description of this ticket.",
)
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.version_option(version=_resolve_cli_version(), prog_name="jira-changelog")
def changelog_command(
    git_dir: Optional[Path],
    config_path: Optional[Path],
    commit_bounds: tuple[str, ...],
    date_bounds: tuple[str, ...],
    post_slack: bool,
    release: Optional[str],
    ticket_id: Optional[str],
    debug: bool,
) -> None:
    """Generate a changelog from git commits and the Jira tickets they reference."""

    ctx = create_cli_context(root=git_dir, config=config_path, debug=debug)
    options = RunOptions(
        git_root=ctx.git_root,
        commit_bounds=commit_bounds,
        date_bounds=date_bounds,
        release=_release_input(release),
        ticket_id=ticket_id.strip() if ticket_id else None,
        post_slack=post_slack,
    )
    run_changelog(ctx, options)


def main(argv: list[str] | None = None) -> int:
    """Entry point for console_scripts."""
    args = list(argv) if argv is not None else list(sys.argv[1:])

    if any(flag in args for flag in VERSION_FLAGS):
        click.echo(_resolve_cli_version())
        return 0

    try:
        changelog_command.main(args=args, prog_name="jira-changelog", standalone_mode=False)
    except click.ClickException as exc:
        exc.show(file=sys.stderr)
        exit_code = getattr(exc, "exit_code", 1)
        return exit_code if isinstance(exit_code, int) else 1
    except (KeyboardInterrupt, click.exceptions.Abort) as exc:
        try:
            abort_on_user_interrupt(exc)
        except click.exceptions.Exit as exit_exc:
            exit_code = getattr(exit_exc, "exit_code", 130)
            return exit_code if isinstance(exit_code, int) else 130
    except click.exceptions.Exit as exc:
        return exc.exit_code if isinstance(exc.exit_code, int) else 0
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0
    return 0

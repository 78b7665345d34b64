"""Shared utilities: logging helpers, console output, and value coercion."""

from __future__ import annotations

import importlib
import logging
import os
import re
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, NoReturn, Optional

import click
from rich.console import Console, RenderableType

CHECKMARK = "\033[92;1m✔\033[0m"
CROSS = "\033[31m✘\033[0m"
INFO = "\033[94;1mi\033[0m"
WARNING = "○"
DEBUG_PREFIX = "\033[95m◆\033[0m"

CHECKMARK_PREFIX = f"{CHECKMARK} "
CROSS_PREFIX = f"{CROSS} "
INFO_PREFIX = f"{INFO} "
WARNING_PREFIX = f"{WARNING} "
DEBUG_PREFIX_WITH_SPACE = f"{DEBUG_PREFIX} "

_LOGGER_NAME = "jira_changelog"
_LOGGER = logging.getLogger(_LOGGER_NAME)

_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

console = Console(stderr=True)


def configure_logging(debug: bool = False) -> logging.Logger:
    """Configure the shared logger used across the CLI."""
    level = logging.DEBUG if debug else logging.INFO
    _LOGGER.setLevel(level)
    while _LOGGER.handlers:
        handler = _LOGGER.handlers.pop()
        handler.close()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)
    _LOGGER.addHandler(handler)
    _LOGGER.propagate = False
    return _LOGGER


def _log(prefix: str, message: str, level: int) -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    lines = message.splitlines() or [""]
    for line in lines:
        if line:
            logger.log(level, f"{prefix}{line}")
        else:
            logger.log(level, prefix.rstrip())


def log_info(message: str) -> None:
    """Log an informational message with the standardized prefix."""
    _log(INFO_PREFIX, message, logging.INFO)


def log_success(message: str) -> None:
    """Log a success message with the standardized prefix."""
    _log(CHECKMARK_PREFIX, message, logging.INFO)


def log_error(message: str) -> None:
    """Log an error message with the standardized prefix."""
    _log(CROSS_PREFIX, message, logging.ERROR)


def log_warning(message: str) -> None:
    """Log a warning message with the standardized prefix."""
    _log(WARNING_PREFIX, message, logging.WARNING)


def log_debug(message: str) -> None:
    """Log a debug message with the standardized prefix."""
    _log(DEBUG_PREFIX_WITH_SPACE, message, logging.DEBUG)


def abort_on_user_interrupt(exc: BaseException | None = None) -> NoReturn:
    """Log a standardized cancellation message and exit the command."""

    log_error("operation cancelled by user (Ctrl+C).")
    raise click.exceptions.Exit(130) from exc


def print_renderable(renderable: RenderableType) -> None:
    """Print a Rich renderable to the diagnostic console (stderr)."""
    console.print(renderable)


def emit_output(content: str, *, newline: bool = True) -> None:
    """Emit raw command output to stdout for machine consumption."""
    click.echo(content, nl=newline, err=False)


def coerce_datetime(value: Optional[str]) -> Optional[datetime]:
    """Return a UTC-aware datetime for an ISO-like string, preserving None.

    Strings without a time component map to midnight UTC.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    try:
        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        pass
    try:
        d = date.fromisoformat(text)
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    except ValueError:
        return None


def expand_env_references(value: str, env: Optional[dict[str, str]] = None) -> str:
    """Replace ``${NAME}`` references with values from the environment.

    Unknown variables expand to an empty string so that a missing secret
    surfaces as a missing credential rather than a literal placeholder.
    """
    mapping = env if env is not None else os.environ
    return _ENV_REFERENCE.sub(lambda match: mapping.get(match.group(1), ""), value)


def import_object(reference: str, search_path: Optional[Path] = None) -> Any:
    """Import an object from a ``package.module:attribute`` reference.

    When ``search_path`` is given, modules in that directory take precedence
    over the rest of ``sys.path`` for the duration of the import.
    """
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(
            f"Invalid hook reference '{reference}'. Expected 'package.module:attribute'."
        )
    entry = str(search_path) if search_path is not None else None
    if entry is not None:
        sys.path.insert(0, entry)
        importlib.invalidate_caches()
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"Cannot import module '{module_name}' for hook '{reference}'.") from exc
    finally:
        if entry is not None:
            sys.path.remove(entry)
    target: Any = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ValueError(f"Module '{module_name}' has no attribute '{attribute}'.") from exc
    return target


def import_callable(reference: str, search_path: Optional[Path] = None) -> Callable[..., Any]:
    """Import a hook reference and ensure it is callable."""
    target = import_object(reference, search_path)
    if not callable(target):
        raise ValueError(f"Hook '{reference}' is not callable.")
    return target

"""Release label assignment."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .errors import ConfigurationError
from .utils import log_debug

ReleaseGenerator = Callable[[], Union[str, Awaitable[str]]]


@dataclass(frozen=True)
class Explicit:
    """Use the given release name verbatim."""

    name: str


@dataclass(frozen=True)
class AutoGenerate:
    """Ask the configured generator for a release name."""


@dataclass(frozen=True)
class Absent:
    """The changelog is not labeled with a release."""


ReleaseInput = Union[Explicit, AutoGenerate, Absent]


def release_input_from_flag(value: Union[str, bool, None]) -> ReleaseInput:
    """Map the ``--release [NAME]`` option to a :data:`ReleaseInput`.

    ``True`` (the flag without a value) asks for a generated name; ``None`` or
    ``False`` means the flag was not given.
    """
    if value is None or value is False:
        return Absent()
    if value is True or not value.strip():
        return AutoGenerate()
    return Explicit(value.strip())


def check_release_input(
    release_input: ReleaseInput, generator: Optional[ReleaseGenerator]
) -> None:
    """Fail early when a release name must be generated but no generator exists."""
    if isinstance(release_input, AutoGenerate) and generator is None:
        raise ConfigurationError(
            "You need to define jira.generate_release_version_name in your config "
            "if you're not going to pass the release version name with --release."
        )


async def assign_release(
    release_input: ReleaseInput,
    generator: Optional[ReleaseGenerator] = None,
) -> Optional[str]:
    """Return the release label for this run.

    The generator is invoked at most once and its result is not checked
    against existing releases.
    """
    if isinstance(release_input, Explicit):
        return release_input.name
    if isinstance(release_input, Absent):
        return None
    check_release_input(release_input, generator)
    assert generator is not None
    result: Any = generator()
    if inspect.isawaitable(result):
        result = await result
    name = str(result).strip() if result is not None else ""
    if not name:
        raise ConfigurationError(
            "jira.generate_release_version_name returned an empty release name."
        )
    log_debug(f"generated release name {name}")
    return name

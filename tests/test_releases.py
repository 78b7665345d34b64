"""Tests for release label assignment."""

from __future__ import annotations

import asyncio

import pytest

from jira_changelog.errors import ConfigurationError
from jira_changelog.releases import (
    Absent,
    AutoGenerate,
    Explicit,
    assign_release,
    release_input_from_flag,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, Absent()),
        (False, Absent()),
        (True, AutoGenerate()),
        ("", AutoGenerate()),
        (" 2024.05 ", Explicit("2024.05")),
    ],
)
def test_release_input_from_flag(value: object, expected: object) -> None:
    assert release_input_from_flag(value) == expected  # type: ignore[arg-type]


def test_explicit_name_is_used_verbatim() -> None:
    calls: list[str] = []

    def generator() -> str:
        calls.append("called")
        return "ignored"

    assert asyncio.run(assign_release(Explicit("v1.2.3"), generator)) == "v1.2.3"
    assert calls == []


def test_absent_release_yields_no_label() -> None:
    assert asyncio.run(assign_release(Absent())) is None


def test_generator_is_invoked_once() -> None:
    calls: list[str] = []

    def generator() -> str:
        calls.append("called")
        return "2024.06"

    assert asyncio.run(assign_release(AutoGenerate(), generator)) == "2024.06"
    assert calls == ["called"]


def test_async_generator_is_awaited() -> None:
    async def generator() -> str:
        return "2024.07"

    assert asyncio.run(assign_release(AutoGenerate(), generator)) == "2024.07"


def test_auto_generate_without_generator_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="generate_release_version_name"):
        asyncio.run(assign_release(AutoGenerate(), None))


def test_empty_generated_name_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="empty release name"):
        asyncio.run(assign_release(AutoGenerate(), lambda: "  "))

"""Unit tests for shared utilities."""

from __future__ import annotations

import logging
import os.path
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

from jira_changelog.utils import (
    coerce_datetime,
    configure_logging,
    expand_env_references,
    import_callable,
    log_warning,
)


def test_expand_env_references_substitutes_known_variables() -> None:
    env = {"USER_NAME": "ada", "TOKEN": "t0k"}

    assert expand_env_references("${USER_NAME}:${TOKEN}", env) == "ada:t0k"


def test_expand_env_references_blanks_unknown_variables() -> None:
    assert expand_env_references("token=${MISSING}", {}) == "token="
    assert expand_env_references("$HOME stays", {"HOME": "/root"}) == "$HOME stays"


def test_import_callable_resolves_reference() -> None:
    assert import_callable("os.path:basename") is os.path.basename


@pytest.mark.parametrize(
    ("reference", "message"),
    [
        ("os.path.basename", "Invalid hook reference"),
        ("no_such_module_xyz:run", "Cannot import module"),
        ("os.path:sep", "not callable"),
    ],
)
def test_import_callable_rejects_bad_references(reference: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        import_callable(reference)


def test_import_callable_searches_given_directory_first(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "local_hooks_utils.py").write_text(
        "def name():\n    return \"local\"\n", encoding="utf-8"
    )
    monkeypatch.delitem(sys.modules, "local_hooks_utils", raising=False)
    path_before = list(sys.path)

    hook = import_callable("local_hooks_utils:name", tmp_path)

    assert hook() == "local"
    assert sys.path == path_before


def test_import_callable_restores_path_on_failure(tmp_path: Path) -> None:
    path_before = list(sys.path)

    with pytest.raises(ValueError, match="Cannot import module"):
        import_callable("missing_local_hooks:name", tmp_path)

    assert sys.path == path_before


def test_coerce_datetime_parses_iso_strings() -> None:
    assert coerce_datetime(None) is None
    assert coerce_datetime("") is None
    assert coerce_datetime("not a date") is None
    assert coerce_datetime(" 2024-05-01 ") == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert coerce_datetime("2024-05-01T10:00:00+02:00") == datetime(
        2024, 5, 1, 8, 0, tzinfo=timezone.utc
    )


def test_log_warning_uses_prefix(caplog: pytest.LogCaptureFixture) -> None:
    logger = configure_logging(debug=False)
    logger.propagate = True
    try:
        with caplog.at_level(logging.WARNING, logger="jira_changelog"):
            log_warning("ticket PROJ-9 was not found in Jira.")
    finally:
        logger.propagate = False

    assert [record.getMessage() for record in caplog.records] == [
        "○ ticket PROJ-9 was not found in Jira."
    ]

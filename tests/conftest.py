"""Shared helpers: an in-memory Jira served through httpx.MockTransport and git repositories."""

from __future__ import annotations

import json
import os
import re
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from jira_changelog.jira import JiraClient
from jira_changelog.retry import RetryPolicy
from jira_changelog.source_control import RawCommit

JIRA_URL = "https://jira.example.com"
NO_WAIT = RetryPolicy(max_attempts=3, initial_delay=0.0, max_delay=0.0, jitter=False)

_JQL_KEYS = re.compile(r"key in \((.*)\)")


def make_issue(
    key: str,
    *,
    issue_type: str = "Story",
    status: str = "Done",
    summary: Optional[str] = None,
    assignee: Optional[str] = None,
    epic: Optional[str] = None,
) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "summary": summary or f"Summary of {key}",
        "issuetype": {"name": issue_type},
        "status": {"name": status},
        "assignee": {"displayName": assignee} if assignee else None,
    }
    if epic:
        fields["parent"] = {"key": epic}
    return {"id": str(10000 + sum(map(ord, key))), "key": key, "fields": fields}


def make_commit(message: str, index: int = 0, author: str = "Ada") -> RawCommit:
    return RawCommit(
        hash=f"{index:02d}" + "a" * 38,
        author=author,
        date=datetime(2024, 1, 1 + index, tzinfo=timezone.utc),
        message=message,
    )


class FakeJira:
    """Answers search, issue fetch, and issue update requests."""

    def __init__(self) -> None:
        self.issues: dict[str, dict[str, Any]] = {}
        self.aliases: dict[str, str] = {}
        self.failures: dict[tuple[str, str], list[int]] = {}
        self.requests: list[httpx.Request] = []
        self.descriptions: dict[str, str] = {}
        self.update_count = 0
        self.reject_credentials = False

    def add(self, key: str, **kwargs: Any) -> None:
        self.issues[key] = make_issue(key, **kwargs)

    def fail(self, method: str, path: str, *statuses: int) -> None:
        """Answer the next requests to ``path`` with ``statuses`` before succeeding."""
        self.failures.setdefault((method, path), []).extend(statuses)

    def _lookup(self, key: str) -> Optional[dict[str, Any]]:
        return self.issues.get(self.aliases.get(key, key))

    def requests_for(self, method: str, path_prefix: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path.startswith(path_prefix)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.reject_credentials:
            return httpx.Response(401, json={"errorMessages": ["Unauthorized"]})
        path = request.url.path
        pending = self.failures.get((request.method, path))
        if pending:
            return httpx.Response(pending.pop(0))

        if request.method == "POST" and path == "/rest/api/2/search":
            body = json.loads(request.content)
            match = _JQL_KEYS.search(body["jql"])
            keys = [key.strip() for key in match.group(1).split(",")] if match else []
            missing = [key for key in keys if self._lookup(key) is None]
            if missing:
                return httpx.Response(
                    400,
                    json={
                        "errorMessages": [
                            f"An issue with key '{key}' does not exist for field 'key'."
                            for key in missing
                        ]
                    },
                )
            issues = [self._lookup(key) for key in keys]
            return httpx.Response(200, json={"issues": issues, "total": len(issues)})

        if path.startswith("/rest/api/2/issue/"):
            key = path.rsplit("/", 1)[-1]
            if request.method == "GET":
                issue = self._lookup(key)
                if issue is None:
                    return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})
                return httpx.Response(200, json=issue)
            if request.method == "PUT":
                if self._lookup(key) is None:
                    return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})
                body = json.loads(request.content)
                self.descriptions[key] = body["fields"]["description"]
                self.update_count += 1
                return httpx.Response(204)

        return httpx.Response(404)

    def client(self) -> JiraClient:
        return JiraClient(
            JIRA_URL,
            email="bot@example.com",
            token="secret",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def fake_jira() -> FakeJira:
    return FakeJira()


def next_release() -> str:
    return "2024.06"


async def shout_for_slack(document: str, data: dict[str, Any]) -> str:
    return document.upper()


def init_git_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "init", "-q", "-b", "main"], cwd=path, check=True)
    for key, value in (
        ("user.email", "ada@example.com"),
        ("user.name", "Ada"),
        ("commit.gpgsign", "false"),
    ):
        subprocess.run(["git", "config", key, value], cwd=path, check=True)
    return path


def git_commit(path: Path, message: str, when: str = "2024-01-01T12:00:00+00:00") -> str:
    """Create an empty commit authored at ``when`` and return its hash."""
    env = {
        **os.environ,
        "GIT_AUTHOR_DATE": when,
        "GIT_COMMITTER_DATE": when,
    }
    subprocess.run(
        ["git", "commit", "-q", "--allow-empty", "-m", message],
        cwd=path,
        check=True,
        env=env,
    )
    result = subprocess.run(
        ["git", "rev-parse", "HEAD"], cwd=path, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()

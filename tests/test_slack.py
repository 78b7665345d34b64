"""Tests for posting the changelog to Slack."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from conftest import shout_for_slack
from jira_changelog.config import Config, SlackConfig
from jira_changelog.errors import AuthenticationError, ConfigurationError, TransientError
from jira_changelog.slack import SlackClient, post_to_slack


class FakeSlack:
    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json={"ok": True})

    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


def _config(**slack: Any) -> Config:
    settings = {"api_token": "xoxb-1", "channel": "#releases", **slack}
    return Config(slack=SlackConfig(**settings))


def _post(config: Config, fake: FakeSlack, document: str = "Jira Tickets") -> None:
    async def scenario() -> None:
        client = SlackClient(config.slack, transport=httpx.MockTransport(fake.handler))
        try:
            await post_to_slack(config, {"release": None}, document, client=client)
        finally:
            await client.aclose()

    asyncio.run(scenario())


def test_posts_document_to_configured_channel() -> None:
    fake = FakeSlack()

    _post(_config(username="changelog-bot", icon_emoji=":rocket:"), fake, "Release &amp; notes")

    assert len(fake.requests) == 1
    request = fake.requests[0]
    assert request.url == "https://slack.com/api/chat.postMessage"
    assert request.headers["Authorization"] == "Bearer xoxb-1"
    assert fake.payloads() == [
        {
            "channel": "#releases",
            "text": "Release &amp; notes",
            "username": "changelog-bot",
            "icon_emoji": ":rocket:",
        }
    ]


def test_transform_hook_is_applied_before_posting() -> None:
    fake = FakeSlack()
    config = _config()
    config.transform_for_slack = shout_for_slack

    _post(config, fake, "release notes")

    assert fake.payloads()[0]["text"] == "RELEASE NOTES"


def test_sync_transform_hook_receives_template_data() -> None:
    fake = FakeSlack()
    seen: list[dict[str, Any]] = []

    def transform(document: str, data: dict[str, Any]) -> str:
        seen.append(data)
        return f"*{document}*"

    config = _config()
    config.transform_for_slack = transform

    _post(config, fake, "notes")

    assert seen == [{"release": None}]
    assert fake.payloads()[0]["text"] == "*notes*"


@pytest.mark.parametrize("slack", [{"api_token": None}, {"channel": None}])
def test_missing_slack_settings_raise_configuration_error(slack: dict[str, Any]) -> None:
    fake = FakeSlack()

    with pytest.raises(ConfigurationError, match="Slack is not configured"):
        _post(_config(**slack), fake)

    assert fake.requests == []


def test_unconfigured_slack_without_injected_client() -> None:
    with pytest.raises(ConfigurationError, match="Slack is not configured"):
        asyncio.run(post_to_slack(Config(), {}, "notes"))


def test_rejected_token_is_an_authentication_error() -> None:
    fake = FakeSlack(httpx.Response(200, json={"ok": False, "error": "invalid_auth"}))

    with pytest.raises(AuthenticationError, match="invalid_auth"):
        _post(_config(), fake)


def test_server_errors_are_transient() -> None:
    fake = FakeSlack(httpx.Response(503))

    with pytest.raises(TransientError, match="HTTP 503"):
        _post(_config(), fake)

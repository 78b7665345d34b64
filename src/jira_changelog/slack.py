"""Post the rendered changelog to a Slack channel."""

from __future__ import annotations

import inspect
from typing import Any, Mapping, Optional

import httpx

from .config import Config, SlackConfig
from .errors import AuthenticationError, ChangelogError, ConfigurationError, TransientError
from .utils import log_info, log_success

SLACK_API_URL = "https://slack.com/api"
_AUTH_ERRORS = {"invalid_auth", "not_authed", "account_inactive", "token_revoked", "token_expired"}


class SlackClient:
    """Minimal async client for ``chat.postMessage``."""

    def __init__(
        self,
        config: SlackConfig,
        *,
        api_url: str = SLACK_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.api_url = api_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=10.0), transport=transport
        )

    def is_enabled(self) -> bool:
        return self.config.is_enabled

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_message(self, document: str, channel: str) -> None:
        payload: dict[str, Any] = {"channel": channel, "text": document}
        if self.config.username:
            payload["username"] = self.config.username
        if self.config.icon_emoji:
            payload["icon_emoji"] = self.config.icon_emoji
        try:
            response = await self._client.post(
                f"{self.api_url}/chat.postMessage",
                json=payload,
                headers={"Authorization": f"Bearer {self.config.api_token}"},
            )
        except httpx.TransportError as exc:
            raise TransientError(f"Could not reach Slack: {exc}") from exc
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(f"Slack returned HTTP {response.status_code}.")
        if response.status_code in (401, 403):
            raise AuthenticationError("Slack rejected the API token.")
        try:
            body = response.json()
        except ValueError as exc:
            raise ChangelogError(
                f"Slack returned an unreadable response (HTTP {response.status_code})."
            ) from exc
        if not body.get("ok"):
            error = str(body.get("error") or "unknown_error")
            if error in _AUTH_ERRORS:
                raise AuthenticationError(f"Slack rejected the API token ({error}).")
            raise ChangelogError(f"Slack refused the message: {error}")


async def post_to_slack(
    config: Config,
    data: Mapping[str, Any],
    document: str,
    *,
    client: Optional[SlackClient] = None,
) -> None:
    """Post ``document`` to the configured channel, applying the transform hook first."""
    slack = client or SlackClient(config.slack)
    try:
        channel = config.slack.channel
        if not slack.is_enabled() or not channel:
            raise ConfigurationError("Slack is not configured.")
        log_info(f"posting changelog message to slack channel: {channel}...")
        if config.transform_for_slack is not None:
            transformed = config.transform_for_slack(document, data)
            if inspect.isawaitable(transformed):
                transformed = await transformed
            document = str(transformed)
        await slack.post_message(document, channel)
        log_success("sent")
    finally:
        if client is None:
            await slack.aclose()

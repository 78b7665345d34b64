"""Jira client, ticket resolution, and release-ticket writeback."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

import httpx

from .errors import AuthenticationError, ChangelogError, NotFoundError, TransientError
from .retry import RetryableError, RetryPolicy, retry_async
from .utils import log_debug, log_warning

DEFAULT_BATCH_SIZE = 50
DEFAULT_CONCURRENCY = 5
DEFAULT_EPIC_FIELD = "parent"
DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

_API_PREFIX = "/rest/api/2"
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class Ticket:
    """A resolved Jira issue."""

    id: str
    key: str
    type: str
    status: str
    summary: str
    assignee: Optional[str] = None
    epic_key: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_issue(
        cls,
        issue: Mapping[str, Any],
        *,
        epic_field: str = DEFAULT_EPIC_FIELD,
        base_url: Optional[str] = None,
    ) -> "Ticket":
        fields = issue.get("fields") or {}
        key = str(issue["key"])
        assignee = fields.get("assignee") or {}
        return cls(
            id=str(issue.get("id", "")),
            key=key,
            type=str((fields.get("issuetype") or {}).get("name", "")),
            status=str((fields.get("status") or {}).get("name", "")),
            summary=str(fields.get("summary") or ""),
            assignee=assignee.get("displayName") or None,
            epic_key=_epic_key(fields.get(epic_field)),
            url=f"{base_url.rstrip('/')}/browse/{key}" if base_url else None,
        )


def _epic_key(value: object) -> Optional[str]:
    """Return the epic key from a ``parent`` object or an epic-link custom field."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        key = value.get("key")
        return str(key) if key else None
    text = str(value).strip()
    return text or None


class BatchRejectedError(ChangelogError):
    """Jira refused or does not offer the multi-key search.

    Raised for 400 (an unknown key in the JQL) and for other client errors
    such as 404, 405 or 410 where the search endpoint is unavailable.
    """

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class JiraClient:
    """Thin async wrapper around the Jira REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        email: Optional[str] = None,
        token: Optional[str] = None,
        epic_field: str = DEFAULT_EPIC_FIELD,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.epic_field = epic_field
        headers = {"Accept": "application/json", "User-Agent": "jira-changelog"}
        auth: Optional[httpx.Auth] = None
        if email and token:
            auth = httpx.BasicAuth(email, token)
        elif token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._headers = headers
        self._auth = auth

    async def __aenter__(self) -> "JiraClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def fields(self) -> list[str]:
        return ["summary", "status", "issuetype", "assignee", self.epic_field]

    def ticket_from_issue(self, issue: Mapping[str, Any]) -> Ticket:
        return Ticket.from_issue(issue, epic_field=self.epic_field, base_url=self.base_url)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{_API_PREFIX}{path}"
        request_kwargs: dict[str, Any] = dict(kwargs)
        if self._auth is not None:
            request_kwargs["auth"] = self._auth
        try:
            response = await self._client.request(
                method, url, headers=self._headers, **request_kwargs
            )
        except httpx.TimeoutException as exc:
            raise RetryableError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise RetryableError(f"{method} {path} failed: {exc}") from exc
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Jira rejected the credentials (HTTP {response.status_code}). "
                "Check jira.email and jira.token in the config."
            )
        if response.status_code in _RETRYABLE_STATUS:
            raise RetryableError(
                f"{method} {path} returned HTTP {response.status_code}",
                retry_after=_retry_after(response),
            )
        return response

    async def search(self, keys: Sequence[str]) -> list[dict[str, Any]]:
        """Fetch several issues with one JQL query."""
        jql = f"key in ({', '.join(keys)})"
        response = await self._request(
            "POST",
            "/search",
            json={"jql": jql, "fields": self.fields, "maxResults": len(keys)},
        )
        if 400 <= response.status_code < 500:
            detail = _error_messages(response) or "Jira rejected the search"
            raise BatchRejectedError(
                f"HTTP {response.status_code}: {detail}", status_code=response.status_code
            )
        _raise_for_status(response)
        payload = response.json()
        return list(payload.get("issues") or [])

    async def get_issue(self, key: str) -> Optional[dict[str, Any]]:
        """Fetch one issue, returning None when Jira does not know the key."""
        response = await self._request(
            "GET", f"/issue/{key}", params={"fields": ",".join(self.fields)}
        )
        if response.status_code == 404:
            return None
        _raise_for_status(response)
        return dict(response.json())

    async def update_description(self, ticket_id: str, document: str) -> None:
        """Replace the description of ``ticket_id`` with ``document``."""
        response = await self._request(
            "PUT",
            f"/issue/{ticket_id}",
            json={"fields": {"description": document}},
        )
        if response.status_code == 404:
            raise NotFoundError(f"Release ticket '{ticket_id}' does not exist.")
        _raise_for_status(response)


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _error_messages(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()
    messages = payload.get("errorMessages") or []
    return "; ".join(str(message) for message in messages)


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code >= 400:
        detail = _error_messages(response)
        suffix = f": {detail}" if detail else ""
        raise ChangelogError(
            f"Jira request {response.request.method} {response.request.url.path} "
            f"failed with HTTP {response.status_code}{suffix}"
        )


class TicketResolver:
    """Resolve ticket keys to Jira issues for one run.

    Keys are deduplicated before any request. Unique keys are looked up in
    batched JQL searches; when Jira rejects a batch (it does so for the whole
    query if a single key is unknown) the keys in that batch are fetched one
    by one, at most ``concurrency`` at a time. Any other client error from the
    search endpoint (404, 405, 410) means batching is unavailable, and the
    remaining keys skip straight to single fetches. Unknown keys and keys whose
    retries are exhausted resolve to None and are recorded in ``warnings``.
    Authentication failures abort the resolution.
    """

    def __init__(
        self,
        client: JiraClient,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
        retry_policy: RetryPolicy = RetryPolicy(),
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.client = client
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.retry_policy = retry_policy
        self.warnings: list[str] = []
        self.unresolved: dict[str, str] = {}
        self._batch_supported = True

    async def resolve(self, keys: Iterable[str]) -> dict[str, Optional[Ticket]]:
        unique = sorted(set(keys))
        resolved: dict[str, Optional[Ticket]] = {}
        if not unique:
            return resolved
        log_debug(f"resolving {len(unique)} unique ticket key(s)")
        pending: list[str] = []
        for start in range(0, len(unique), self.batch_size):
            chunk = unique[start : start + self.batch_size]
            found = await self._search_chunk(chunk) if self._batch_supported else None
            if found is None:
                pending.extend(chunk)
                continue
            for key in chunk:
                ticket = found.get(key) or found.get(key.upper())
                if ticket is None:
                    # Moved issues are returned under their new key; a direct
                    # fetch follows the move.
                    pending.append(key)
                else:
                    resolved[key] = ticket
        if pending:
            resolved.update(await self._fetch_individually(pending))
        return {key: resolved.get(key) for key in unique}

    async def _search_chunk(self, chunk: list[str]) -> Optional[dict[str, Ticket]]:
        """Return tickets indexed by key, or None if the batch must be split."""
        try:
            issues = await retry_async(
                lambda: self.client.search(chunk),
                self.retry_policy,
                description=f"search for {len(chunk)} key(s)",
            )
        except BatchRejectedError as exc:
            if exc.status_code != 400:
                self._batch_supported = False
            log_debug(f"batch search rejected, fetching keys individually: {exc}")
            return None
        except RetryableError as exc:
            log_debug(f"batch search kept failing, fetching keys individually: {exc}")
            return None
        found: dict[str, Ticket] = {}
        for issue in issues:
            ticket = self.client.ticket_from_issue(issue)
            found[ticket.key] = ticket
            found.setdefault(ticket.key.upper(), ticket)
        return found

    async def _fetch_individually(self, keys: list[str]) -> dict[str, Optional[Ticket]]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def fetch(key: str) -> tuple[str, Optional[Ticket]]:
            async with semaphore:
                return key, await self._fetch_one(key)

        tasks = [asyncio.ensure_future(fetch(key)) for key in keys]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return dict(results)

    async def _fetch_one(self, key: str) -> Optional[Ticket]:
        try:
            issue = await retry_async(
                lambda: self.client.get_issue(key),
                self.retry_policy,
                description=f"fetch of {key}",
            )
        except RetryableError as exc:
            self._warn(key, f"giving up on ticket {key} after retries: {exc}", "unreachable")
            return None
        if issue is None:
            self._warn(key, f"ticket {key} was not found in Jira.", "not found")
            return None
        ticket = self.client.ticket_from_issue(issue)
        if ticket.key != key:
            log_debug(f"ticket {key} resolved to canonical key {ticket.key}")
        return ticket

    def _warn(self, key: str, message: str, reason: str) -> None:
        self.warnings.append(message)
        self.unresolved[key] = reason
        log_warning(message)


async def writeback(
    client: JiraClient,
    ticket_id: str,
    document: str,
    *,
    retry_policy: RetryPolicy = RetryPolicy(max_attempts=1),
) -> None:
    """Replace the release ticket's description with the rendered changelog.

    Re-running with the same document leaves the ticket in the same state.
    Transient failures are not retried by default and surface as
    :class:`TransientError`.
    """
    try:
        await retry_async(
            lambda: client.update_description(ticket_id, document),
            retry_policy,
            description=f"update of release ticket {ticket_id}",
        )
    except RetryableError as exc:
        raise TransientError(
            f"Could not update release ticket '{ticket_id}': {exc}. Try again later."
        ) from exc

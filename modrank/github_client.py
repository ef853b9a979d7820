"""Async GitHub API client: bulk repository status cache, tree lookups, org listing."""

from __future__ import annotations

import asyncio
import os
import posixpath
import time
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from modrank.core.concurrency import gather_or_cancel
from modrank.core.credentials import AccessToken
from modrank.exceptions import ModRankError, NotPrimedError
from modrank.repository import Repository

log = structlog.get_logger("modrank.github")

GITHUB_API_URL = "https://api.github.com"

PRIME_CHUNK_SIZE = 100

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds

_REPOSITORY_FIELDS = """
    name
    isArchived
    defaultBranchRef {
      target {
        oid
      }
    }
"""

_ORG_REPOSITORIES_QUERY = """
query($organization: String!, $cursor: String) {
  organization(login: $organization) {
    repositories(first: 100, after: $cursor) {
      nodes {
        name
        isArchived
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


class GitHubAPIError(ModRankError):
    """Raised when the GitHub API returns an unusable response."""


def _chunks(items: list[Repository], size: int) -> list[list[Repository]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def build_status_query(repos: list[Repository]) -> tuple[str, dict[str, Repository]]:
    """One GraphQL document querying every repo in *repos* under its own alias."""
    aliases: dict[str, Repository] = {}
    fragments: list[str] = []
    for i, repo in enumerate(repos):
        alias = f"r{i}"
        aliases[alias] = repo
        fragments.append(
            f"  {alias}: repository(owner: {_gql_str(repo.owner)}, name: {_gql_str(repo.name)}) {{"
            f"{_REPOSITORY_FIELDS}  }}"
        )
    return "query {\n" + "\n".join(fragments) + "\n}", aliases


def _gql_str(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class GitHubClient:
    """GitHub REST + GraphQL client.

    ``prime`` fills a per-client cache of (archived, head commit) for a
    batch of repositories; ``is_archived`` and ``head_commit`` only read
    that cache and raise :class:`NotPrimedError` for anything not primed.
    All cache writes happen on the event loop thread without awaiting in
    between, so the cache needs no lock.
    """

    def __init__(
        self,
        token: AccessToken | str | None = None,
        *,
        base_url: str = GITHUB_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = AccessToken.coerce(token or os.environ.get("GITHUB_TOKEN") or None)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=30.0,
            transport=transport,
        )
        self._cache: dict[str, tuple[bool, str]] = {}

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── status cache ───────────────────────────────────────────────────────

    async def prime(self, repos: Iterable[Repository]) -> None:
        """Fetch archived flag and default-branch head for every GitHub repo.

        Chunks of ``PRIME_CHUNK_SIZE`` are queried concurrently; the first
        failing chunk cancels the rest.
        """
        github_repos = [r for r in repos if r.is_github_repository()]
        await gather_or_cancel(
            self._prime_chunk(chunk) for chunk in _chunks(github_repos, PRIME_CHUNK_SIZE)
        )
        log.info("github.primed", repositories=len(github_repos))

    async def _prime_chunk(self, repos: list[Repository]) -> None:
        query, aliases = build_status_query(repos)
        payload = await self.graphql(query)
        data = payload.get("data") or {}
        for alias, stat in data.items():
            repo = aliases.get(alias)
            if repo is None:
                raise GitHubAPIError(f"failed to find repository from {alias}")
            if stat is None:
                log.warning("github.repository_not_found", repo=repo.name_with_owner)
                continue
            branch = stat.get("defaultBranchRef") or {}
            head = (branch.get("target") or {}).get("oid") or ""
            self._cache[repo.name_with_owner] = (bool(stat.get("isArchived")), head)

    def _cached(self, owner: str, repo: str, what: str) -> tuple[bool, str]:
        entry = self._cache.get(f"{owner}/{repo}")
        if entry is None:
            raise NotPrimedError(
                f"cannot use {what} for {owner}/{repo} before the status cache is primed"
            )
        return entry

    def is_archived(self, owner: str, repo: str) -> bool:
        return self._cached(owner, repo, "is_archived")[0]

    def head_commit(self, owner: str, repo: str) -> str:
        return self._cached(owner, repo, "head_commit")[1]

    async def exists_go_mod(self, owner: str, repo: str) -> bool:
        """True if the default branch head contains a go.mod anywhere."""
        head = self.head_commit(owner, repo)
        if not head:
            return False
        try:
            tree = await self.get(
                f"/repos/{owner}/{repo}/git/trees/{head}", params={"recursive": "1"}
            )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return False
            raise
        for entry in tree.get("tree", []):
            if entry.get("type") == "blob" and posixpath.basename(entry.get("path", "")) == "go.mod":
                return True
        return False

    # ── organization ───────────────────────────────────────────────────────

    async def find_repositories_by_owner(self, owner: str) -> list[str]:
        """Names of the organization's non-archived repositories."""
        names: list[str] = []
        cursor: str | None = None
        while True:
            payload = await self.graphql(
                _ORG_REPOSITORIES_QUERY,
                {"organization": owner, "cursor": cursor},
            )
            org = (payload.get("data") or {}).get("organization")
            if org is None:
                raise GitHubAPIError(f"organization not found: {owner}")
            repos = org["repositories"]
            names.extend(n["name"] for n in repos["nodes"] if not n["isArchived"])
            page_info = repos["pageInfo"]
            if not page_info["hasNextPage"]:
                return names
            cursor = page_info["endCursor"]

    # ── transport ──────────────────────────────────────────────────────────

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._request_with_retry("GET", path, params=params)
        return response.json()

    async def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables
        response = await self._request_with_retry("POST", "/graphql", json=body)
        payload = response.json()
        if payload.get("errors") and not payload.get("data"):
            raise GitHubAPIError(f"graphql error: {payload['errors'][0].get('message')}")
        return payload

    async def _auth_headers(self) -> dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": f"Bearer {await self._token.issue()}"}

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Request with exponential backoff on 5xx, 403 rate-limit, and timeout errors."""
        headers = await self._auth_headers()
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.request(
                    method, url, params=params, json=json, headers=headers
                )

                if resp.status_code == 403 and self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    log.warning(
                        "github.rate_limit",
                        url=url,
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=_MAX_RETRIES,
                    )
                    await asyncio.sleep(wait)
                    last_exc = httpx.HTTPStatusError(
                        "rate limit exceeded", request=resp.request, response=resp
                    )
                    continue

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                log.warning(
                    "github.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "github.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                await asyncio.sleep(_RETRY_BASE_DELAY * (2**attempt))

        raise last_exc  # type: ignore[misc]

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.headers.get("X-RateLimit-Remaining") == "0":
            return True
        # secondary rate limits only send Retry-After
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None and retry_after.isdigit():
            return max(int(retry_after), 1)
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None and reset_ts.isdigit():
            return max(int(reset_ts) - int(time.time()), 1)
        return 60

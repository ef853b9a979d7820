"""Access tokens issued on demand for git and the GitHub API."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from modrank.exceptions import TokenIssueError

TokenIssuer = Callable[[], Awaitable[str]]


class AccessToken:
    """Wraps a token issuer so short-lived tokens can be refreshed per use.

    ``lock`` guards ``last_token`` for callers that materialise the token
    somewhere (e.g. a temporary gitconfig) and must only rewrite it when
    the issued value changes.
    """

    def __init__(self, issuer: TokenIssuer) -> None:
        self._issuer = issuer
        self.last_token: str | None = None
        self.lock = asyncio.Lock()

    @classmethod
    def static(cls, token: str) -> AccessToken:
        async def _issue() -> str:
            return token

        return cls(_issue)

    @classmethod
    def coerce(cls, token: AccessToken | str | None) -> AccessToken | None:
        """Accept a ready token, a plain string, or nothing."""
        if token is None or isinstance(token, AccessToken):
            return token
        return cls.static(token)

    async def issue(self) -> str:
        try:
            return await self._issuer()
        except Exception as exc:
            raise TokenIssueError(f"failed to issue access token: {exc}") from exc

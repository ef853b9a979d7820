"""Git clone helpers for scanned repositories."""

from __future__ import annotations

import asyncio
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote, urlsplit, urlunsplit

from modrank.exceptions import CloneError, EmptyRemoteRepositoryError, GitError


@dataclass(frozen=True)
class BasicAuth:
    username: str
    password: str


@runtime_checkable
class Cloner(Protocol):
    """Interface for fetching a repository and reading its HEAD commit."""

    async def head_commit(self, path: Path) -> str: ...

    async def clone(self, path: Path, url: str, auth: BasicAuth | None) -> None: ...


class GitCloner:
    """Shallow clones through the ``git`` CLI."""

    async def head_commit(self, path: Path) -> str:
        """Return the HEAD commit SHA of the clone at *path*.

        Raises ``FileNotFoundError`` if *path* does not exist and
        ``GitError`` if it is not a repository with at least one commit.
        """
        if not Path(path).exists():
            raise FileNotFoundError(str(path))
        code, out, err = await _exec(["git", "-C", str(path), "rev-parse", "HEAD"])
        if code != 0:
            raise GitError(f"git rev-parse failed (exit {code}): {err}")
        return out.strip()

    async def clone(self, path: Path, url: str, auth: BasicAuth | None) -> None:
        """Clone *url* (depth 1) into *path*, replacing whatever is there.

        Raises ``EmptyRemoteRepositoryError`` when the remote has no commits
        and ``CloneError`` for any other failure.
        """
        shutil.rmtree(path, ignore_errors=True)
        code, _, err = await _exec(
            ["git", "clone", "--depth", "1", "--", with_auth(url, auth), str(path)]
        )
        if code != 0:
            if auth is not None:
                err = err.replace(auth.password, "***")
            raise CloneError(f"git clone {url} failed (exit {code}): {err}")

        code, _, _ = await _exec(["git", "-C", str(path), "rev-parse", "--verify", "-q", "HEAD"])
        if code != 0:
            raise EmptyRemoteRepositoryError(f"remote repository is empty: {url}")


def with_auth(url: str, auth: BasicAuth | None) -> str:
    """Embed basic-auth credentials into an http(s) clone URL."""
    if auth is None:
        return url
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return url
    netloc = f"{quote(auth.username, safe='')}:{quote(auth.password, safe='')}@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


async def _exec(cmd: list[str]) -> tuple[int, str, str]:
    """Run a git command and return (exit code, stdout, stderr)."""
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
    )
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise
    return (
        proc.returncode or 0,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace").strip(),
    )

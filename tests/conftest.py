"""Shared fixtures for modrank tests.

Nothing here touches the network or the ``go``/``git`` binaries: clones,
``go mod graph`` and HTTP are replaced by the stubs below.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from modrank.engines.graph_builder.gomod import parse_module_name
from modrank.engines.graph_builder.resolver import HostedRepositoryResolver
from modrank.exceptions import (
    CloneError,
    EmptyRemoteRepositoryError,
    GraphCommandError,
    NotPrimedError,
)
from modrank.repository import Repository
from modrank.storage import SQLStorage


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "modrank.db"


@pytest.fixture
async def storage(db_path, anyio_backend):
    s = SQLStorage(db_path)
    await s.ensure_schemas()
    yield s
    await s.close()


# ── stubs ────────────────────────────────────────────────────────────────


class StubCloner:
    """Writes a fixed file tree instead of cloning.

    *trees* maps a repository URL to ``{relative path: content}``; *heads*
    maps it to the head commit reported after cloning. A URL listed in
    *empty* behaves like a remote without commits, one listed in *broken*
    fails to clone.
    """

    def __init__(
        self,
        trees: dict[str, dict[str, str]] | None = None,
        heads: dict[str, str] | None = None,
        empty: set[str] | None = None,
        broken: set[str] | None = None,
    ) -> None:
        self.trees = trees or {}
        self.heads = heads or {}
        self.empty = empty or set()
        self.broken = broken or set()
        self.cloned: list[str] = []
        self._checkouts: dict[Path, str] = {}

    async def head_commit(self, path: Path) -> str:
        path = Path(path)
        if path not in self._checkouts or not path.exists():
            raise FileNotFoundError(str(path))
        return self.heads.get(self._checkouts[path], "")

    async def clone(self, path: Path, url: str, auth) -> None:
        self.cloned.append(url)
        if url in self.broken:
            raise CloneError(f"git clone {url} failed (exit 128): boom")
        if url in self.empty:
            raise EmptyRemoteRepositoryError(url)
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        for rel, content in self.trees.get(url, {}).items():
            target = path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        self._checkouts[path] = url


class StubGraphRunner:
    """Returns canned ``go mod graph`` output keyed by the go.mod's module name."""

    def __init__(self, outputs: dict[str, str], failing: set[str] | None = None) -> None:
        self.outputs = outputs
        self.failing = failing or set()
        self.calls: list[Path] = []

    async def run(self, go_mod_path: Path) -> str:
        self.calls.append(Path(go_mod_path))
        name = parse_module_name(Path(go_mod_path).read_text())
        if name in self.failing:
            raise GraphCommandError(1, "go: missing go.sum entry")
        return self.outputs.get(name, "")


class FakeGitHub:
    """In-memory stand-in for GitHubClient.

    *repos* maps ``owner/name`` to ``(is_archived, head, has_go_mod)``.
    """

    def __init__(self, repos: dict[str, tuple[bool, str, bool]] | None = None) -> None:
        self.repos = repos or {}
        self.primed = False
        self.tree_lookups: list[str] = []

    async def prime(self, repos) -> None:
        self.primed = True

    def _get(self, owner: str, name: str):
        if not self.primed or f"{owner}/{name}" not in self.repos:
            raise NotPrimedError(f"{owner}/{name}")
        return self.repos[f"{owner}/{name}"]

    def is_archived(self, owner: str, name: str) -> bool:
        return self._get(owner, name)[0]

    def head_commit(self, owner: str, name: str) -> str:
        return self._get(owner, name)[1]

    async def exists_go_mod(self, owner: str, name: str) -> bool:
        self.tree_lookups.append(f"{owner}/{name}")
        return self._get(owner, name)[2]

    async def close(self) -> None:
        pass


class CountingTransport(httpx.MockTransport):
    """MockTransport that records every request it serves."""

    def __init__(self, handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def offline_resolver() -> HostedRepositoryResolver:
    """Resolver whose lookups all 404, so every module resolves to its own name."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda req: httpx.Response(404)))
    return HostedRepositoryResolver(client=client)


def make_repo(tmp_path: Path, url: str, cloner=None, **kwargs) -> Repository:
    return Repository(url, clone_path=tmp_path / "clones", cloner=cloner, **kwargs)

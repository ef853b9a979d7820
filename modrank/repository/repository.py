"""Repository — one source repository to clone and scan for go.mod files."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from modrank.core.credentials import AccessToken
from modrank.core.github import parse_repo_url, url_host
from modrank.repository.cloner import BasicAuth, Cloner, GitCloner

DEFAULT_REPOSITORY_WEIGHT = 1
DEFAULT_CLONE_ROOT = Path(tempfile.gettempdir()) / "go-modrank"

GO_MOD_FILE = "go.mod"
VENDOR_DIR = "vendor"


class Repository:
    """A repository to scan.

    *weight* seeds the score of every root module found in it.
    *auth_token* (string or :class:`AccessToken`) is sent as
    ``x-access-token`` basic auth when cloning.
    """

    def __init__(
        self,
        url: str,
        *,
        weight: int = DEFAULT_REPOSITORY_WEIGHT,
        clone_path: str | Path | None = None,
        cloner: Cloner | None = None,
        auth_token: AccessToken | str | None = None,
    ) -> None:
        self._owner, self._name = parse_repo_url(url)
        self._url = url
        self._weight = weight
        self._clone_path = Path(clone_path) if clone_path else DEFAULT_CLONE_ROOT
        self._cloner = cloner or GitCloner()
        self._auth_token = AccessToken.coerce(auth_token) if auth_token else None

    def __repr__(self) -> str:
        return f"Repository({self._url!r}, weight={self._weight})"

    @property
    def url(self) -> str:
        return self._url

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def name(self) -> str:
        return self._name

    @property
    def name_with_owner(self) -> str:
        return f"{self._owner}/{self._name}"

    @property
    def weight(self) -> int:
        return self._weight

    @property
    def path(self) -> Path:
        """Directory the repository is cloned into."""
        return self._clone_path / self._name

    def is_github_repository(self) -> bool:
        return url_host(self._url) == "github.com"

    async def head_commit(self, path: Path | None = None) -> str:
        return await self._cloner.head_commit(Path(path) if path else self.path)

    async def clone(self, path: Path | None = None) -> None:
        auth = None
        if self._auth_token is not None:
            auth = BasicAuth(username="x-access-token", password=await self._auth_token.issue())
        await self._cloner.clone(Path(path) if path else self.path, self._url, auth)

    def go_mod_paths(self) -> list[Path]:
        """Every go.mod under the clone, skipping vendored copies. Sorted."""
        root = self.path
        paths: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d != VENDOR_DIR)
            if GO_MOD_FILE in filenames:
                paths.append(Path(dirpath) / GO_MOD_FILE)
        return sorted(paths)

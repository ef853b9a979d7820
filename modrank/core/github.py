"""Git hosting URL utilities."""

from __future__ import annotations

from urllib.parse import urlparse

from modrank.exceptions import RepositoryURLError


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """Extract (owner, repo) from a repository URL.

    Handles:
      - https://github.com/owner/repo
      - https://github.com/owner/repo.git
      - git@github.com:owner/repo.git

    Raises ``RepositoryURLError`` if the URL has fewer than three
    ``/``-separated parts once the ``.git`` suffix is dropped.
    """
    trimmed = repo_url.strip().rstrip("/").removesuffix(".git")

    # SSH format: git@github.com:owner/repo
    if trimmed.startswith("git@"):
        trimmed = trimmed.replace(":", "/", 1)

    parts = trimmed.split("/")
    if len(parts) < 3 or not parts[-1] or not parts[-2]:
        raise RepositoryURLError(f"unexpected repository url: {repo_url}")
    return parts[-2], parts[-1]


def url_host(repo_url: str) -> str:
    """Return the lowercase host of *repo_url*, or "" if it has none."""
    if repo_url.startswith("git@"):
        return repo_url[len("git@") :].split(":", 1)[0].lower()
    return (urlparse(repo_url).hostname or "").lower()

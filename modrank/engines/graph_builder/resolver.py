"""Map Go module names to the repository that hosts them."""

from __future__ import annotations

import asyncio
import re
import threading
from collections.abc import Iterable
from html.parser import HTMLParser

import httpx
import structlog

from modrank.engines.graph_builder.models import GoModule

log = structlog.get_logger("modrank.resolver")

DEFAULT_PROXY_URL = "https://proxy.golang.org"

_GOPKG_IN_WITH_OWNER_RE = re.compile(r"gopkg\.in/(.+)/(.+)\.v[0-9]+$")
_GOPKG_IN_RE = re.compile(r"gopkg\.in/(.+)\.v[0-9]+$")


def normalize_module_name(name: str) -> str:
    """Keep at most the first three path segments (host/owner/repo)."""
    parts = name.split("/")
    if len(parts) <= 3:
        return name
    return "/".join(parts[:3])


def hosted_repository_by_gopkg_in(name: str) -> str | None:
    """Rewrite gopkg.in redirector paths to their GitHub repository.

    ``gopkg.in/owner/pkg.vN`` -> ``github.com/owner/pkg``
    ``gopkg.in/pkg.vN``       -> ``github.com/go-pkg/pkg``
    """
    m = _GOPKG_IN_WITH_OWNER_RE.search(name)
    if m:
        return f"github.com/{m.group(1)}/{m.group(2)}"
    m = _GOPKG_IN_RE.search(name)
    if m:
        pkg = m.group(1)
        return f"github.com/go-{pkg}/{pkg}"
    return None


class _GoImportParser(HTMLParser):
    """Collect the repository URL from ``<meta name="go-import" content="...">``."""

    def __init__(self) -> None:
        super().__init__()
        self.repo_url: str | None = None

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag != "meta" or self.repo_url is not None:
            return
        attr_map = dict(attrs)
        if attr_map.get("name") != "go-import":
            return
        content = attr_map.get("content") or ""
        parts = content.split()
        if len(parts) != 3:
            return
        self.repo_url = parts[2].removesuffix(".git")


def parse_go_import_meta(html: str) -> str | None:
    parser = _GoImportParser()
    parser.feed(html)
    parser.close()
    return parser.repo_url


class HostedRepositoryResolver:
    """Resolve module names to hosted repositories, memoising per normalised name.

    Lookup cascade, first hit wins:
      1. module proxy ``/@latest`` metadata (``Origin.URL``)
      2. gopkg.in redirector patterns
      3. ``?go-get=1`` landing page ``go-import`` meta tag

    Falls back to the normalised name. The cache is read and written under
    a lock; concurrent misses for one name may look it up twice.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        proxy_url: str = DEFAULT_PROXY_URL,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=15.0, follow_redirects=True)
        self._proxy_url = proxy_url.rstrip("/")
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HostedRepositoryResolver:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def resolve(self, name: str) -> str:
        """Return the hosted repository for module *name*. Never raises."""
        normalized = normalize_module_name(name)
        with self._lock:
            cached = self._cache.get(normalized)
        if cached is not None:
            return cached
        repo = await self._lookup(normalized)
        with self._lock:
            self._cache[normalized] = repo
        return repo

    async def populate(self, modules: Iterable[GoModule]) -> None:
        """Fill ``hosted_repository`` on every module, one lookup per normalised name."""
        by_name: dict[str, list[GoModule]] = {}
        for mod in modules:
            by_name.setdefault(normalize_module_name(mod.name), []).append(mod)
        names = list(by_name)
        repos = await asyncio.gather(*(self.resolve(name) for name in names))
        for name, repo in zip(names, repos):
            for mod in by_name[name]:
                mod.hosted_repository = repo

    # ── internal ───────────────────────────────────────────────────────────

    async def _lookup(self, name: str) -> str:
        try:
            repo = await self.by_go_proxy(name)
            if repo:
                return repo
        except (httpx.HTTPError, ValueError) as exc:
            log.debug("resolver.proxy_failed", module=name, error=str(exc))

        repo = hosted_repository_by_gopkg_in(name)
        if repo:
            return repo

        try:
            repo = await self.by_go_import_meta_tag(name)
            if repo:
                return repo
        except httpx.HTTPError as exc:
            log.debug("resolver.go_get_failed", module=name, error=str(exc))

        return name

    async def by_go_proxy(self, name: str) -> str | None:
        resp = await self._client.get(f"{self._proxy_url}/{name}/@latest")
        resp.raise_for_status()
        data = resp.json()
        origin = data.get("Origin") if isinstance(data, dict) else None
        url = origin.get("URL") if isinstance(origin, dict) else None
        if not isinstance(url, str):
            return None
        return url.removeprefix("https://") or None

    async def by_go_import_meta_tag(self, name: str) -> str | None:
        resp = await self._client.get(f"https://{name}", params={"go-get": "1"})
        resp.raise_for_status()
        repo = parse_go_import_meta(resp.text)
        if not repo:
            return None
        return repo.removeprefix("https://")

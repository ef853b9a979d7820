"""ModRank — scan repositories into stored module graphs, then score them."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import structlog
from structlog.contextvars import bound_contextvars

from modrank.core.concurrency import gather_or_cancel
from modrank.core.credentials import AccessToken
from modrank.engines.graph_builder.builder import GraphBuilder
from modrank.engines.graph_builder.command import GoModGraphRunner, GraphCommandRunner
from modrank.engines.graph_builder.models import GoModule
from modrank.engines.graph_builder.resolver import HostedRepositoryResolver
from modrank.engines.scanner.models import RepositoryStatus, ScanOutcome, ScanResult
from modrank.engines.scoring.scorer import GoModuleScore, score_modules
from modrank.exceptions import EmptyRemoteRepositoryError, GitError
from modrank.github_client import GitHubClient
from modrank.repository import DEFAULT_CLONE_ROOT, Repository
from modrank.storage import SQLStorage, Storage

log = structlog.get_logger("modrank.scanner")

DEFAULT_WORKER_NUM = 1
DEFAULT_DATABASE_FILE = "tmp.db"


class _Progress:
    def __init__(self, total: int) -> None:
        self.total = total
        self.done = 0

    def step(self) -> None:
        self.done += 1
        ratio = self.done / self.total * 100 if self.total else 100.0
        log.debug("progress", done=self.done, total=self.total, ratio=f"{ratio:.1f}%")


class ModRank:
    """Scans repositories for go.mod files and ranks the modules they use.

    Scanning is resumable: each repository's head commit is stored with
    its modules, and a repository whose head has not moved is skipped.
    Scoring only reads storage, so :meth:`score` can re-rank without
    rescanning.

    Collaborators not passed in are created here and closed by
    :meth:`close`.
    """

    def __init__(
        self,
        *,
        storage: Storage | None = None,
        sqlite_dsn: str | Path | None = None,
        worker_num: int = DEFAULT_WORKER_NUM,
        git_access_token: AccessToken | str | None = None,
        github_token: AccessToken | str | None = None,
        github_api_cache: bool = False,
        cleanup_repo: bool = False,
        tmp_dir: str | Path | None = None,
        github_client: GitHubClient | None = None,
        graph_runner: GraphCommandRunner | None = None,
        resolver: HostedRepositoryResolver | None = None,
    ) -> None:
        if worker_num < 1:
            raise ValueError(f"worker_num must be >= 1, got {worker_num}")
        self._worker_num = worker_num
        self._github_api_cache = github_api_cache
        self._cleanup_repo = cleanup_repo
        self._tmp_dir = Path(tmp_dir) if tmp_dir else DEFAULT_CLONE_ROOT

        self._owned: list = []
        if storage is None:
            if sqlite_dsn is None:
                self._tmp_dir.mkdir(parents=True, exist_ok=True)
                sqlite_dsn = self._tmp_dir / DEFAULT_DATABASE_FILE
                log.debug("scanner.temporary_database", path=str(sqlite_dsn))
            storage = SQLStorage(sqlite_dsn)
            self._owned.append(storage)
        self._storage = storage

        if github_client is None:
            github_client = GitHubClient(github_token)
            self._owned.append(github_client)
        self._github = github_client

        if resolver is None:
            resolver = HostedRepositoryResolver()
            self._owned.append(resolver)
        if graph_runner is None:
            graph_runner = GoModGraphRunner(
                self._tmp_dir, git_access_token=AccessToken.coerce(git_access_token)
            )
        self._builder = GraphBuilder(graph_runner, resolver)

    @property
    def storage(self) -> Storage:
        return self._storage

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        for resource in reversed(self._owned):
            await resource.close()
        self._owned.clear()

    async def __aenter__(self) -> ModRank:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── status precheck ────────────────────────────────────────────────────

    async def update_repository_status(self, repos: list[Repository]) -> None:
        """Record archived / go.mod presence for GitHub repos without cloning.

        A later :meth:`run` then skips archived repositories and
        repositories without a go.mod. Unlike scanning, the first failure
        here cancels the remaining repositories and is re-raised.
        """
        await self._storage.ensure_schemas()
        await self._github.prime(repos)
        progress = _Progress(len(repos))

        async def _update(repo: Repository) -> None:
            try:
                with bound_contextvars(repo=repo.url):
                    await self._update_status(repo)
            finally:
                progress.step()

        await gather_or_cancel((_update(r) for r in repos), limit=self._worker_num)

    async def _update_status(self, repo: Repository) -> None:
        if not repo.is_github_repository():
            return
        status = await self._storage.find_repository_status(repo.name_with_owner)
        if status is not None and status.is_archived:
            log.debug("status.skipped", reason="already archived")
            return
        if status is not None and status.exists_go_mod:
            log.debug("status.skipped", reason="has go.mod")
            return

        last_head = status.head_commit if status is not None else ""
        head = self._github.head_commit(repo.owner, repo.name)
        if head and head == last_head:
            log.debug("status.skipped", reason="head already scanned")
            return

        if self._github.is_archived(repo.owner, repo.name):
            log.debug("status.saved", is_archived=True)
            await self._storage.upsert_repository_status(
                RepositoryStatus(repo.name_with_owner, head_commit=head, is_archived=True)
            )
            return

        exists_go_mod = await self._github.exists_go_mod(repo.owner, repo.name)
        log.debug("status.saved", exists_go_mod=exists_go_mod)
        # Keep the last scanned head so that the next scan is not skipped.
        await self._storage.upsert_repository_status(
            RepositoryStatus(
                repo.name_with_owner,
                head_commit=last_head,
                exists_go_mod=exists_go_mod,
            )
        )

    # ── run / score ────────────────────────────────────────────────────────

    async def run(self, repos: list[Repository]) -> list[GoModuleScore]:
        """Scan *repos*, then score everything stored for them."""
        await self.scan(repos)
        return await self.score(repos)

    async def scan(self, repos: list[Repository]) -> list[ScanResult]:
        """Scan every repository, at most ``worker_num`` at a time.

        A failing repository is logged and reported as ``FAILED``; it never
        affects the others.
        """
        await self._storage.ensure_schemas()
        if self._github_api_cache:
            await self._github.prime(repos)

        sem = asyncio.Semaphore(self._worker_num)
        progress = _Progress(len(repos))

        async def _scan(repo: Repository) -> ScanResult:
            async with sem:
                try:
                    return await self.scan_repository(repo)
                except Exception as exc:
                    log.warning("scan.failed", repo=repo.url, error=str(exc))
                    return ScanResult(repo.name_with_owner, ScanOutcome.FAILED, error=str(exc))
                finally:
                    progress.step()

        return list(await asyncio.gather(*(_scan(r) for r in repos)))

    async def score(self, repos: list[Repository]) -> list[GoModuleScore]:
        """Rank modules from the stored graphs of *repos*.

        Must not overlap with a running :meth:`scan`.
        """
        await self._storage.ensure_schemas()
        weights = {r.name_with_owner: r.weight for r in repos}
        roots = await self._storage.find_root_modules()
        log.debug("score.roots", count=len(roots))
        ranked = score_modules(roots, weights)
        log.debug("score.ranked", count=len(ranked))
        return ranked

    # ── per repository ─────────────────────────────────────────────────────

    async def scan_repository(self, repo: Repository) -> ScanResult:
        with bound_contextvars(repo=repo.url, cloned_path=str(repo.path)):
            return await self._scan_repository(repo)

    async def _scan_repository(self, repo: Repository) -> ScanResult:
        nwo = repo.name_with_owner
        status = await self._storage.find_repository_status(nwo)
        if status is not None and status.is_archived:
            log.debug("scan.skipped", reason="archived", source="db")
            return ScanResult(nwo, ScanOutcome.ARCHIVED)
        if status is not None and not status.exists_go_mod:
            log.debug("scan.skipped", reason="no go.mod", source="db")
            return ScanResult(nwo, ScanOutcome.NO_GO_MOD)

        last_head = status.head_commit if status is not None else ""
        path = repo.path

        local_head = await self._local_head(repo, path)
        if local_head and local_head == last_head:
            log.debug("scan.skipped", reason="head already scanned", source="cloned_repo")
            return ScanResult(nwo, ScanOutcome.UNCHANGED, head_commit=local_head)

        if self._github_api_cache and repo.is_github_repository():
            remote_head = self._github.head_commit(repo.owner, repo.name)
            if remote_head and remote_head == last_head:
                log.debug("scan.skipped", reason="head already scanned", source="github_api")
                return ScanResult(nwo, ScanOutcome.UNCHANGED, head_commit=remote_head)

        try:
            log.debug("scan.cloning")
            try:
                await repo.clone(path)
            except EmptyRemoteRepositoryError:
                log.debug("scan.skipped", reason="empty remote repository")
                return ScanResult(nwo, ScanOutcome.EMPTY_REMOTE)
            return await self._scan_clone(repo, path, last_head)
        finally:
            if self._cleanup_repo:
                await self._remove_clone(path)

    async def _scan_clone(self, repo: Repository, path: Path, last_head: str) -> ScanResult:
        nwo = repo.name_with_owner
        head = await repo.head_commit(path)
        if head and head == last_head:
            log.debug("scan.skipped", reason="head already scanned", source="cloned_repo")
            return ScanResult(nwo, ScanOutcome.UNCHANGED, head_commit=head)

        log.debug("scan.scanning")
        go_mod_paths = repo.go_mod_paths()
        batches = await gather_or_cancel(self._build_graph(repo, p) for p in go_mod_paths)
        modules: list[GoModule] = [mod for batch in batches for mod in batch]

        await self._storage.save_scan(
            RepositoryStatus(nwo, head_commit=head, exists_go_mod=bool(go_mod_paths)),
            modules,
        )
        log.info("scan.saved", head=head, go_mods=len(go_mod_paths), modules=len(modules))
        return ScanResult(
            nwo,
            ScanOutcome.SCANNED,
            go_mod_count=len(go_mod_paths),
            module_count=len(modules),
            head_commit=head,
        )

    async def _build_graph(self, repo: Repository, go_mod_path: Path) -> list[GoModule]:
        with bound_contextvars(go_mod=str(go_mod_path)):
            return await self._builder.build(repo, go_mod_path)

    @staticmethod
    async def _local_head(repo: Repository, path: Path) -> str:
        # No clone yet, or not a git checkout: nothing to compare against.
        try:
            return await repo.head_commit(path)
        except (OSError, GitError) as exc:
            log.debug("scan.no_local_head", error=str(exc))
            return ""

    @staticmethod
    async def _remove_clone(path: Path) -> None:
        if not path.exists():
            return
        log.debug("scan.removing_clone")
        try:
            await asyncio.to_thread(shutil.rmtree, path)
        except OSError as exc:
            log.warning("scan.cleanup_failed", error=str(exc))

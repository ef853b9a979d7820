"""Storage — persistence of module graphs and per-repository scan state."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from modrank.core.database import Base, create_engine, create_session_factory
from modrank.dao.go_module_dao import GoModuleDAO
from modrank.dao.repository_dao import RepositoryDAO
from modrank.engines.graph_builder.models import GoModule
from modrank.engines.scanner.models import RepositoryStatus
from modrank.exceptions import GoModuleNotFoundError
from modrank.models.go_module import GoModuleRecord
from modrank.models.repository import RepositoryRecord

log = structlog.get_logger("modrank.storage")


@runtime_checkable
class Storage(Protocol):
    async def ensure_schemas(self) -> None: ...

    async def find_repository_status(self, name_with_owner: str) -> RepositoryStatus | None: ...

    async def upsert_repository_status(self, status: RepositoryStatus) -> None: ...

    async def find_root_modules(self) -> list[GoModule]: ...

    async def find_module_by_id(self, module_id: str) -> GoModule: ...

    async def upsert_modules(self, name_with_owner: str, modules: list[GoModule]) -> None: ...

    async def save_scan(self, status: RepositoryStatus, modules: list[GoModule]) -> None: ...

    async def close(self) -> None: ...


def _module_row(mod: GoModule) -> dict[str, Any]:
    return {
        "id": mod.id,
        "name_with_owner": mod.repository,
        "go_mod_path": mod.go_mod_path,
        "module_name": mod.name,
        "module_version": mod.version,
        "hosted_repository": mod.hosted_repository or mod.name,
        "is_root": mod.is_root,
        "refers": [m.id for m in mod.refers],
        "referers": [m.id for m in mod.referers],
    }


def _to_status(record: RepositoryRecord) -> RepositoryStatus:
    return RepositoryStatus(
        name_with_owner=record.name_with_owner,
        head_commit=record.head,
        is_archived=record.is_archived,
        exists_go_mod=record.exists_go_mod,
    )


class SQLStorage:
    """SQLAlchemy-backed :class:`Storage` (SQLite via aiosqlite by default).

    Adjacency is stored as ordered id lists. Reads hydrate whole graphs
    breadth-first with batched ``IN`` queries and keep the resulting
    :class:`GoModule` objects in an identity cache, so each id maps to
    exactly one object. The cache is dropped whenever modules are written
    and at the start of every :meth:`find_root_modules`.
    """

    def __init__(
        self,
        dsn: str | Path | None = None,
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        if engine is None and dsn is None:
            raise ValueError("either dsn or engine is required")
        self._owns_engine = engine is None
        self._engine = engine if engine is not None else create_engine(dsn)
        self._session_factory = create_session_factory(self._engine)
        self._modules = GoModuleDAO()
        self._repositories = RepositoryDAO()
        self._cache: dict[str, GoModule] = {}

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    # ── lifecycle ─────────────────────────────────────────────────────────

    async def ensure_schemas(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        self._cache.clear()
        if self._owns_engine:
            await self._engine.dispose()

    async def __aenter__(self) -> SQLStorage:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── repository status ─────────────────────────────────────────────────

    async def find_repository_status(self, name_with_owner: str) -> RepositoryStatus | None:
        async with self._session_factory() as session:
            record = await self._repositories.get_by_id(session, name_with_owner)
            return _to_status(record) if record is not None else None

    async def upsert_repository_status(self, status: RepositoryStatus) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await self._upsert_status(session, status)

    async def _upsert_status(self, session: AsyncSession, status: RepositoryStatus) -> None:
        await self._repositories.upsert(
            session,
            name_with_owner=status.name_with_owner,
            head=status.head_commit,
            is_archived=status.is_archived,
            exists_go_mod=status.exists_go_mod,
        )

    # ── modules ───────────────────────────────────────────────────────────

    async def upsert_modules(self, name_with_owner: str, modules: list[GoModule]) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await self._upsert_modules(session, name_with_owner, modules)

    async def _upsert_modules(
        self,
        session: AsyncSession,
        name_with_owner: str,
        modules: list[GoModule],
    ) -> None:
        self._cache.clear()
        written = await self._modules.batch_upsert(session, [_module_row(m) for m in modules])
        log.debug("storage.modules_upserted", repo=name_with_owner, count=written)

    async def save_scan(self, status: RepositoryStatus, modules: list[GoModule]) -> None:
        """Write a repository's modules and its new status in one transaction."""
        async with self._session_factory() as session:
            async with session.begin():
                await self._upsert_modules(session, status.name_with_owner, modules)
                await self._upsert_status(session, status)

    async def find_root_modules(self) -> list[GoModule]:
        self._cache.clear()
        async with self._session_factory() as session:
            roots = await self._modules.list_roots(session)
            await self._hydrate(session, [r.id for r in roots], known=roots)
        return [self._cache[r.id] for r in roots]

    async def find_module_by_id(self, module_id: str) -> GoModule:
        cached = self._cache.get(module_id)
        if cached is not None:
            return cached
        async with self._session_factory() as session:
            await self._hydrate(session, [module_id])
        return self._cache[module_id]

    async def _hydrate(
        self,
        session: AsyncSession,
        ids: Iterable[str],
        known: Iterable[GoModuleRecord] = (),
    ) -> None:
        """Load *ids* and everything they reach (both directions) into the cache."""
        records: dict[str, GoModuleRecord] = {r.id: r for r in known}
        pending = [i for i in dict.fromkeys(ids) if i not in self._cache and i not in records]
        frontier = list(records.values())

        while pending or frontier:
            if pending:
                loaded = await self._modules.list_by_ids(session, pending)
                found = {r.id for r in loaded}
                missing = [i for i in pending if i not in found]
                if missing:
                    raise GoModuleNotFoundError(f"go module not found: {missing[0]}")
                for record in loaded:
                    records[record.id] = record
                frontier.extend(loaded)

            pending = []
            queued: set[str] = set()
            for record in frontier:
                for ref_id in (*record.refers, *record.referers):
                    if ref_id in self._cache or ref_id in records or ref_id in queued:
                        continue
                    queued.add(ref_id)
                    pending.append(ref_id)
            frontier = []

        new_modules: dict[str, GoModule] = {}
        for record in records.values():
            if record.id in self._cache:
                continue
            new_modules[record.id] = GoModule(
                id=record.id,
                repository=record.name_with_owner,
                go_mod_path=record.go_mod_path,
                name=record.module_name,
                version=record.module_version,
                hosted_repository=record.hosted_repository,
            )
        self._cache.update(new_modules)

        for mod_id, mod in new_modules.items():
            record = records[mod_id]
            mod.refers = [self._cache[i] for i in record.refers]
            mod.referers = [self._cache[i] for i in record.referers]

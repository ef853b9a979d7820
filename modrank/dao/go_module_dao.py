"""GoModuleDAO — go_modules table operations."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modrank.dao.base import BaseDAO
from modrank.models.go_module import GoModuleRecord


class GoModuleDAO(BaseDAO[GoModuleRecord]):
    model = GoModuleRecord

    # ── read ──────────────────────────────────────────────────────────────

    async def list_roots(self, session: AsyncSession) -> list[GoModuleRecord]:
        """All root modules, ordered by id for repeatable hydration."""
        stmt = (
            select(GoModuleRecord)
            .where(GoModuleRecord.is_root.is_(True))
            .order_by(GoModuleRecord.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # ── write ─────────────────────────────────────────────────────────────

    async def batch_upsert(self, session: AsyncSession, rows: list[dict[str, Any]]) -> int:
        """Insert modules; on id conflict only the graph shape is refreshed.

        Identity columns are part of the hashed id, so they never change.
        """
        return await self._upsert(session, rows, ["is_root", "refers", "referers"])

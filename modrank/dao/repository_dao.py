"""RepositoryDAO — repositories table operations."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from modrank.dao.base import BaseDAO
from modrank.models.repository import RepositoryRecord


class RepositoryDAO(BaseDAO[RepositoryRecord]):
    model = RepositoryRecord

    async def upsert(
        self,
        session: AsyncSession,
        *,
        name_with_owner: str,
        head: str,
        is_archived: bool,
        exists_go_mod: bool,
    ) -> None:
        await self._upsert(
            session,
            [
                {
                    "name_with_owner": name_with_owner,
                    "head": head,
                    "is_archived": is_archived,
                    "exists_go_mod": exists_go_mod,
                }
            ],
            ["head", "is_archived", "exists_go_mod"],
        )

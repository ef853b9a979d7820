"""Generic base DAO — primary-key reads and SQLite upserts."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from modrank.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)

# Stay well below SQLite's bound-parameter limit.
IN_CLAUSE_CHUNK = 500
UPSERT_CHUNK = 100


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


class BaseDAO(Generic[ModelT]):
    """Base data-access object. Subclasses set ``model`` class attribute."""

    model: type[ModelT]

    @staticmethod
    def _require_pk(pk: Any) -> None:
        """Raise ValueError if *pk* is None."""
        if pk is None:
            raise ValueError("pk must not be None")

    @classmethod
    def _pk_column(cls):
        return cls.model.__mapper__.primary_key[0]

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_id(self, session: AsyncSession, pk: Any) -> ModelT | None:
        self._require_pk(pk)
        return await session.get(self.model, pk)

    async def list_by_ids(self, session: AsyncSession, pks: Iterable[Any]) -> list[ModelT]:
        """Rows whose primary key is in *pks*, in no particular order."""
        unique = list(dict.fromkeys(pks))
        rows: list[ModelT] = []
        pk_col = self._pk_column()
        for chunk in _chunks(unique, IN_CLAUSE_CHUNK):
            result = await session.execute(select(self.model).where(pk_col.in_(chunk)))
            rows.extend(result.scalars().all())
        return rows

    # ── write ─────────────────────────────────────────────────────────────

    async def _upsert(
        self,
        session: AsyncSession,
        rows: Sequence[dict[str, Any]],
        update_columns: Sequence[str],
    ) -> int:
        """INSERT ... ON CONFLICT (pk) DO UPDATE SET *update_columns*.

        Returns the number of rows written.
        """
        if not rows:
            return 0
        pk_name = self._pk_column().name
        for chunk in _chunks(rows, UPSERT_CHUNK):
            ins = insert(self.model).values(list(chunk))
            stmt = ins.on_conflict_do_update(
                index_elements=[pk_name],
                set_={col: ins.excluded[col] for col in update_columns},
            )
            await session.execute(stmt)
        return len(rows)

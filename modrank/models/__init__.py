"""SQLAlchemy ORM models — one file per table."""

from modrank.models.go_module import GoModuleRecord
from modrank.models.repository import RepositoryRecord

__all__ = [
    "GoModuleRecord",
    "RepositoryRecord",
]

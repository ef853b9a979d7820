"""repositories table."""

from sqlalchemy import Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from modrank.core.database import Base


class RepositoryRecord(Base):
    __tablename__ = "repositories"

    name_with_owner: Mapped[str] = mapped_column(Text, primary_key=True)
    head: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    exists_go_mod: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

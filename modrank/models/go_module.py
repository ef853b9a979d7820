"""go_modules table."""

from sqlalchemy import JSON, Boolean, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from modrank.core.database import Base


class GoModuleRecord(Base):
    __tablename__ = "go_modules"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name_with_owner: Mapped[str] = mapped_column(Text, nullable=False)
    go_mod_path: Mapped[str] = mapped_column(Text, nullable=False)
    module_name: Mapped[str] = mapped_column(Text, nullable=False)
    module_version: Mapped[str] = mapped_column(Text, nullable=False)
    hosted_repository: Mapped[str] = mapped_column(Text, nullable=False)
    is_root: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Ordered module ids, same order as GoModule.refers / GoModule.referers.
    refers: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    referers: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("idx_go_modules_root", "is_root"),
        Index("idx_go_modules_repo", "name_with_owner"),
    )

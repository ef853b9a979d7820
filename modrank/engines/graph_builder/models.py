"""Data models for the module graph."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field


def module_id(repository: str, go_mod_path: str, name: str, version: str) -> str:
    """Content hash identifying one module occurrence in one go.mod of one repository."""
    key = f"{repository}/{go_mod_path}/{name}/{version}"
    return hashlib.sha256(key.encode()).hexdigest()


@dataclass(eq=False)
class GoModule:
    """A Go module as used from one go.mod in one repository.

    Equality and hashing are by object identity; the storage layer and the
    per-manifest build cache both guarantee one object per ``id``.
    """

    id: str
    repository: str
    go_mod_path: str
    name: str
    version: str
    hosted_repository: str = ""
    refers: list[GoModule] = field(default_factory=list, repr=False)
    referers: list[GoModule] = field(default_factory=list, repr=False)

    _refer_set: set[GoModule] = field(default_factory=set, init=False, repr=False)
    _referer_set: set[GoModule] = field(default_factory=set, init=False, repr=False)

    @property
    def mod_path(self) -> str:
        """``name@version``, the sort key for adjacency lists."""
        return f"{self.name}@{self.version}"

    @property
    def is_root(self) -> bool:
        return not self.referers

    def add_refer(self, callee: GoModule) -> None:
        """Record that this module directly depends on *callee*."""
        self._refer_set.add(callee)
        callee._referer_set.add(self)

    def finalize(self) -> None:
        """Freeze the accumulated edge sets into sorted adjacency lists."""
        self.refers = sorted(self._refer_set, key=_sort_key)
        self.referers = sorted(self._referer_set, key=_sort_key)


def _sort_key(mod: GoModule) -> str:
    return mod.mod_path

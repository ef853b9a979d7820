"""Data models for the scan orchestrator."""

from __future__ import annotations

import enum
from dataclasses import dataclass


@dataclass
class RepositoryStatus:
    """What the last scan (or status precheck) learned about a repository."""

    name_with_owner: str
    head_commit: str = ""
    is_archived: bool = False
    exists_go_mod: bool = False


class ScanOutcome(str, enum.Enum):
    ARCHIVED = "archived"
    NO_GO_MOD = "no_go_mod"
    UNCHANGED = "unchanged"
    EMPTY_REMOTE = "empty_remote"
    SCANNED = "scanned"
    FAILED = "failed"


@dataclass
class ScanResult:
    """Result of scanning one repository."""

    repository: str
    outcome: ScanOutcome
    go_mod_count: int = 0
    module_count: int = 0
    head_commit: str = ""
    error: str | None = None

    @property
    def skipped(self) -> bool:
        return self.outcome not in (ScanOutcome.SCANNED, ScanOutcome.FAILED)

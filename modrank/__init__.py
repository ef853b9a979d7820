"""go-modrank: rank Go modules by how deeply repositories depend on them."""

__version__ = "0.1.0"

from modrank.engines.graph_builder.models import GoModule
from modrank.engines.scanner.models import RepositoryStatus, ScanOutcome, ScanResult
from modrank.engines.scanner.runner import ModRank
from modrank.engines.scoring.scorer import GoModuleScore
from modrank.repository import Repository
from modrank.storage import SQLStorage, Storage

__all__ = [
    "GoModule",
    "GoModuleScore",
    "ModRank",
    "Repository",
    "RepositoryStatus",
    "SQLStorage",
    "ScanOutcome",
    "ScanResult",
    "Storage",
]

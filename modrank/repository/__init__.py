"""Repository accessors: URL parsing, cloning, go.mod discovery."""

from modrank.repository.cloner import BasicAuth, Cloner, GitCloner
from modrank.repository.repository import (
    DEFAULT_CLONE_ROOT,
    DEFAULT_REPOSITORY_WEIGHT,
    Repository,
)

__all__ = [
    "BasicAuth",
    "Cloner",
    "DEFAULT_CLONE_ROOT",
    "DEFAULT_REPOSITORY_WEIGHT",
    "GitCloner",
    "Repository",
]

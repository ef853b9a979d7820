"""Custom exceptions for modrank."""


class ModRankError(Exception):
    """Base exception for all modrank errors."""


class ModuleFormatError(ModRankError):
    """Raised when a module token is not in ``name@version`` form."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"unexpected go module format: {token}")


class GraphFormatError(ModRankError):
    """Raised when a ``go mod graph`` line is not a caller/callee pair."""

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"unexpected go mod graph format: {line!r}")


class GraphCommandError(ModRankError):
    """Raised when the dependency graph command exits non-zero."""

    def __init__(self, returncode: int, output: str):
        self.returncode = returncode
        self.output = output
        super().__init__(f"go mod graph failed (exit {returncode})")


class NotPrimedError(ModRankError):
    """Raised when the remote status cache is read before it was primed."""


class GoModuleNotFoundError(ModRankError, LookupError):
    """Raised when a persisted module identity cannot be found."""


class GitError(ModRankError):
    """Raised when a git command fails."""


class CloneError(GitError):
    """Raised when a repository cannot be cloned."""


class EmptyRemoteRepositoryError(CloneError):
    """Raised when the remote repository has no commits yet."""


class TokenIssueError(ModRankError):
    """Raised when an access token cannot be issued."""


class ConfigError(ModRankError):
    """Raised when a configuration file is missing or invalid."""


class RepositoryURLError(ModRankError, ValueError):
    """Raised when a repository URL cannot be split into host/owner/name."""

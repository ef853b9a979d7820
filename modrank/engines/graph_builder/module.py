"""Resolve ``go mod graph`` tokens into deduplicated GoModule nodes."""

from __future__ import annotations

from modrank.engines.graph_builder.models import GoModule, module_id
from modrank.exceptions import ModuleFormatError

# Pseudo-modules go mod graph emits for the language and toolchain version.
TOOLCHAIN_KEYWORDS = frozenset({"go", "toolchain"})


def split_mod_path(token: str) -> tuple[str, str]:
    """Split ``name@version`` into its parts.

    Raises ``ModuleFormatError`` unless there is exactly one ``@``.
    """
    parts = token.split("@")
    if len(parts) != 2:
        raise ModuleFormatError(token)
    return parts[0], parts[1]


def resolve_module(
    token: str,
    root_mod_name: str,
    go_mod_path: str,
    repository: str,
    cache: dict[str, GoModule],
) -> GoModule | None:
    """Return the node for *token*, creating and caching it on first sight.

    *cache* is keyed by the raw token and must be scoped to one go.mod.
    The go.mod's own module may appear bare (``example.com/m``) and gets an
    empty version. Toolchain keywords yield ``None``.
    """
    cached = cache.get(token)
    if cached is not None:
        return cached

    if token == root_mod_name:
        name, version = token, ""
    else:
        name, version = split_mod_path(token)
    if name in TOOLCHAIN_KEYWORDS:
        return None

    node = GoModule(
        id=module_id(repository, go_mod_path, name, version),
        repository=repository,
        go_mod_path=go_mod_path,
        name=name,
        version=version,
        hosted_repository=name,
    )
    cache[token] = node
    return node

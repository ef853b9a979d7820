"""GraphBuilder — turn ``go mod graph`` output into a module graph per go.mod."""

from __future__ import annotations

from pathlib import Path

import structlog
from structlog.contextvars import bound_contextvars

from modrank.engines.graph_builder.command import GraphCommandRunner
from modrank.engines.graph_builder.gomod import parse_module_name
from modrank.engines.graph_builder.models import GoModule
from modrank.engines.graph_builder.module import resolve_module
from modrank.engines.graph_builder.resolver import HostedRepositoryResolver
from modrank.exceptions import GraphCommandError, GraphFormatError, ModuleFormatError
from modrank.repository import Repository

log = structlog.get_logger("modrank.graph")


def build_module_graph(
    output: str,
    repository: str,
    go_mod_path: str,
    root_mod_name: str,
) -> list[GoModule]:
    """Build the deduplicated module graph for one go.mod from its edge list.

    Each non-empty line must be ``caller callee``; anything else raises
    ``GraphFormatError``. Tokens that cannot be resolved are logged and
    skipped together with their edge. Edges into the go.mod's own root
    token are dropped so that it always stays the root of its graph; other
    versions of the same module name are ordinary dependencies.
    """
    edges: list[tuple[str, str]] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split()
        if len(parts) != 2:
            raise GraphFormatError(line)
        edges.append((parts[0], parts[1]))

    root_token = _root_token(edges, root_mod_name)
    cache: dict[str, GoModule] = {}
    for caller_token, callee_token in edges:
        caller = _resolve_or_none(caller_token, root_mod_name, go_mod_path, repository, cache)
        if callee_token == root_token:
            continue
        callee = _resolve_or_none(callee_token, root_mod_name, go_mod_path, repository, cache)
        if caller is None or callee is None or caller is callee:
            continue
        caller.add_refer(callee)

    modules = list(cache.values())
    for mod in modules:
        mod.finalize()
    return modules


def _root_token(edges: list[tuple[str, str]], root_mod_name: str) -> str | None:
    # go mod graph prints the main module bare; fall back to the first
    # versioned caller carrying the go.mod's module name.
    callers = [caller for caller, _ in edges]
    if root_mod_name in callers:
        return root_mod_name
    prefix = root_mod_name + "@"
    return next((c for c in callers if c.startswith(prefix)), None)


def _resolve_or_none(
    token: str,
    root_mod_name: str,
    go_mod_path: str,
    repository: str,
    cache: dict[str, GoModule],
) -> GoModule | None:
    try:
        return resolve_module(token, root_mod_name, go_mod_path, repository, cache)
    except ModuleFormatError as exc:
        log.warning("graph.invalid_module", target_mod=token, error=str(exc))
        return None


class GraphBuilder:
    """Build one go.mod's module graph: parse, run the graph command, link, resolve hosts."""

    def __init__(
        self,
        runner: GraphCommandRunner,
        resolver: HostedRepositoryResolver,
    ) -> None:
        self._runner = runner
        self._resolver = resolver

    async def build(self, repo: Repository, go_mod_path: Path) -> list[GoModule]:
        """Return every module reachable from *go_mod_path*.

        Soft failures (unparseable go.mod, failing graph command, malformed
        output) are logged and yield ``[]``. I/O errors reading the go.mod
        propagate.
        """
        content = Path(go_mod_path).read_text(encoding="utf-8", errors="replace")
        mod_name = parse_module_name(content)
        if mod_name is None:
            log.warning("graph.invalid_go_mod", error="module directive not found")
            return []

        rel_path = _relative_path(go_mod_path, repo.path)
        with bound_contextvars(modname=mod_name):
            try:
                output = await self._runner.run(Path(go_mod_path))
            except GraphCommandError as exc:
                log.warning(
                    "graph.command_failed",
                    returncode=exc.returncode,
                    output=exc.output,
                )
                return []

            try:
                modules = build_module_graph(output, repo.name_with_owner, rel_path, mod_name)
            except GraphFormatError as exc:
                log.warning("graph.unexpected_format", line=exc.line)
                return []

            await self._resolver.populate(modules)
            log.debug("graph.scanned", modules=len(modules))
            return modules


def _relative_path(go_mod_path: Path, repo_root: Path) -> str:
    try:
        return Path(go_mod_path).relative_to(repo_root).as_posix()
    except ValueError:
        return Path(go_mod_path).as_posix().lstrip("/")

"""Depth-based scoring of module graphs.

Two stages, kept separate on purpose:

1. ``accumulate_scores`` walks every root's refer graph and adds the walk
   depth to a score keyed by module *id*.
2. ``rank_by_name`` folds those per-id scores by module *name*, dropping
   version, go.mod path and owning repository, then sorts descending.

The accumulator is plain dicts and is never shared between tasks; scoring
must only start once every scan has finished writing.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from pydantic import BaseModel

from modrank.engines.graph_builder.models import GoModule


class GoModuleScore(BaseModel):
    """One line of the ranking."""

    name: str
    repository: str
    score: int


@dataclass
class ScoreAccumulator:
    scores: dict[str, int] = field(default_factory=dict)
    modules: dict[str, GoModule] = field(default_factory=dict)

    def add(self, mod: GoModule, value: int) -> None:
        self.modules.setdefault(mod.id, mod)
        self.scores[mod.id] = self.scores.get(mod.id, 0) + value

    def seed(self, mod: GoModule, value: int) -> None:
        self.modules.setdefault(mod.id, mod)
        self.scores[mod.id] = value


def _walk(root: GoModule, weight: int, acc: ScoreAccumulator) -> None:
    # Depth-first in sorted refer order; a stack of iterators keeps deep
    # graphs off the interpreter's recursion limit.
    visited = {root.id}
    stack = [(iter(root.refers), weight + 1)]
    while stack:
        refers, depth = stack[-1]
        mod = next(refers, None)
        if mod is None:
            stack.pop()
            continue
        if mod.id in visited:
            continue
        visited.add(mod.id)
        acc.add(mod, depth)
        stack.append((iter(mod.refers), depth + 1))


def accumulate_scores(
    roots: Iterable[GoModule],
    weights: Mapping[str, int],
) -> ScoreAccumulator:
    """Score every module reachable from *roots*.

    *weights* maps a repository's ``name_with_owner`` to its weight; roots
    of repositories missing from it are ignored.
    """
    acc = ScoreAccumulator()
    for root in roots:
        weight = weights.get(root.repository)
        if weight is None:
            continue
        acc.seed(root, weight)
        _walk(root, weight, acc)
    return acc


def rank_by_name(acc: ScoreAccumulator) -> list[GoModuleScore]:
    """Fold per-id scores by module name and sort by score, then name."""
    totals: dict[str, int] = {}
    hosted: dict[str, str] = {}
    for mod_id, score in acc.scores.items():
        mod = acc.modules[mod_id]
        totals[mod.name] = totals.get(mod.name, 0) + score
        hosted.setdefault(mod.name, mod.hosted_repository or mod.name)

    ranked = [
        GoModuleScore(name=name, repository=hosted[name], score=score)
        for name, score in totals.items()
    ]
    ranked.sort(key=lambda s: (-s.score, s.name))
    return ranked


def score_modules(
    roots: Iterable[GoModule],
    weights: Mapping[str, int],
) -> list[GoModuleScore]:
    return rank_by_name(accumulate_scores(roots, weights))

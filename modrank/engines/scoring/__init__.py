from modrank.engines.scoring.scorer import (
    GoModuleScore,
    ScoreAccumulator,
    accumulate_scores,
    rank_by_name,
    score_modules,
)

__all__ = [
    "GoModuleScore",
    "ScoreAccumulator",
    "accumulate_scores",
    "rank_by_name",
    "score_modules",
]

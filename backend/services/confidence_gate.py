"""Minimum-score cutoff and the low-confidence verdict."""
from typing import List

from config import LEXICAL_CONFIDENCE_FLOOR
from models.candidate import ScoredCandidate


def apply_cutoff(ranked: List[ScoredCandidate], minimum_score: float, count: int) -> List[ScoredCandidate]:
    """Drop candidates below the score floor, then keep the first `count`."""
    return [s for s in ranked if s.score >= minimum_score][:count]


def is_low_confidence(
    results: List[ScoredCandidate],
    threshold: float,
    lexical_floor: float = LEXICAL_CONFIDENCE_FLOOR
) -> bool:
    """
    True when there are no results, or when the top result is weak on both
    signals: cosine below `threshold` and BM25 below `lexical_floor`.
    """
    if not results:
        return True
    top = results[0]
    return top.cosine_score < threshold and top.bm25_score < lexical_floor

"""Unit tests for the cutoff and low-confidence verdict."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from models.candidate import Candidate, ScoredCandidate
from services.confidence_gate import apply_cutoff, is_low_confidence


def _scored(cid, score, bm25=0.0, cos=0.0):
    return ScoredCandidate(
        candidate=Candidate(id=cid, title=cid, text="", source=""),
        bm25_score=bm25,
        cosine_score=cos,
        score=score,
        excerpt=""
    )


class TestApplyCutoff:

    def test_drops_below_minimum_then_truncates(self):
        ranked = [_scored("a", 0.9), _scored("b", 0.5), _scored("c", 0.2), _scored("d", 0.1)]

        kept = apply_cutoff(ranked, minimum_score=0.15, count=3)

        assert [s.id for s in kept] == ["a", "b", "c"]

    def test_minimum_is_inclusive(self):
        assert len(apply_cutoff([_scored("a", 0.3)], minimum_score=0.3, count=3)) == 1

    def test_keeps_order_after_rerank(self):
        ranked = [_scored("b", 0.5), _scored("a", 0.9)]

        assert [s.id for s in apply_cutoff(ranked, 0.0, 3)] == ["b", "a"]


class TestIsLowConfidence:

    def test_empty_results(self):
        assert is_low_confidence([], threshold=0.35) is True

    def test_both_signals_weak(self):
        assert is_low_confidence([_scored("a", 0.1, bm25=0.05, cos=0.2)], threshold=0.35) is True

    def test_strong_lexical_alone_is_enough(self):
        assert is_low_confidence([_scored("a", 1.0, bm25=2.0, cos=0.0)], threshold=0.35) is False

    def test_strong_semantic_alone_is_enough(self):
        assert is_low_confidence([_scored("a", 0.5, bm25=0.0, cos=0.6)], threshold=0.35) is False

    @pytest.mark.parametrize("bm25,cos,expected", [
        (0.1, 0.0, False),   # lexical exactly at floor
        (0.0, 0.35, False),  # semantic exactly at threshold
        (0.099, 0.349, True),
    ])
    def test_boundaries(self, bm25, cos, expected):
        assert is_low_confidence([_scored("a", 1.0, bm25=bm25, cos=cos)], threshold=0.35) is expected

    def test_only_top_result_matters(self):
        results = [_scored("a", 1.0, bm25=0.0, cos=0.1), _scored("b", 0.9, bm25=5.0, cos=0.9)]

        assert is_low_confidence(results, threshold=0.35) is True

"""Unit tests for score fusion, boosts, excerpts and badges."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from models.candidate import Candidate
from services.score_fusion import (
    fuse_score,
    apply_boosts,
    phrase_present,
    pick_excerpt,
    badge_for,
    score_candidates,
    rank,
    to_hit,
)

BOOSTS = dict(subject_boost=1.2, plane_boost=1.3, phrase_boost=1.5)


def _candidate(cid="c", text="some text", subject=None, plane=None, source="Album"):
    return Candidate(id=cid, title=cid.upper(), text=text, source=source, subject=subject, plane=plane)


class TestFuseScore:

    def test_weighted_sum(self):
        assert fuse_score(0.5, 2.0, alpha=0.7, beta=0.3) == pytest.approx(0.95)

    def test_weights_need_not_sum_to_one(self):
        assert fuse_score(1.0, 1.0, alpha=2.0, beta=3.0) == pytest.approx(5.0)

    @pytest.mark.parametrize("low,high", [(0.0, 0.1), (0.2, 0.9), (-0.5, 0.5)])
    def test_monotonic_in_each_component(self, low, high):
        assert fuse_score(high, 1.0, 0.7, 0.3) >= fuse_score(low, 1.0, 0.7, 0.3)
        assert fuse_score(0.5, high, 0.7, 0.3) >= fuse_score(0.5, low, 0.7, 0.3)


class TestBoosts:

    def test_no_boost_without_filters_or_phrase(self):
        c = _candidate(subject="Math", plane="6-12")

        assert apply_boosts(1.0, c, "other words", None, None, **BOOSTS) == 1.0

    def test_subject_boost(self):
        c = _candidate(subject="Math")

        assert apply_boosts(1.0, c, "q", "Math", None, **BOOSTS) == pytest.approx(1.2)
        assert apply_boosts(1.0, c, "q", "Language", None, **BOOSTS) == 1.0

    def test_untagged_candidate_gets_no_subject_boost(self):
        assert apply_boosts(1.0, _candidate(), "q", "Math", "6-12", **BOOSTS) == 1.0

    def test_plane_boost(self):
        c = _candidate(plane="6-12")

        assert apply_boosts(1.0, c, "q", None, "6-12", **BOOSTS) == pytest.approx(1.3)

    def test_phrase_boost_is_case_insensitive(self):
        c = _candidate(text="The child Counts By Tens with the chain.")

        assert apply_boosts(1.0, c, "counts by tens", None, None, **BOOSTS) == pytest.approx(1.5)

    def test_boosts_compound(self):
        c = _candidate(text="golden beads exchange", subject="Math", plane="0-6")

        score = apply_boosts(2.0, c, "golden beads", "Math", "0-6", **BOOSTS)

        assert score == pytest.approx(2.0 * 1.2 * 1.3 * 1.5)

    def test_phrase_present_ignores_blank_query(self):
        assert not phrase_present("   ", "anything")
        assert phrase_present("  Bead ", "golden bead")


class TestExcerpt:

    def test_short_text_verbatim(self):
        assert pick_excerpt("  Short passage.  ", "passage") == "Short passage."

    def test_exactly_500_chars_verbatim(self):
        text = "a" * 500
        assert pick_excerpt(text, "zzz") == text

    def test_window_centered_on_first_query_token(self):
        text = "x" * 600 + "bead" + "y" * 600

        excerpt = pick_excerpt(text, "Bead chain")

        assert len(excerpt) == 500
        assert excerpt.startswith("x" * 200 + "bead")

    def test_window_clamped_at_start(self):
        text = "bead " + "z" * 900

        assert pick_excerpt(text, "bead") == text[:500]

    def test_missing_token_takes_prefix(self):
        text = "q" * 900

        assert pick_excerpt(text, "bead") == text[:500]

    def test_query_without_tokens_takes_prefix(self):
        text = "q" * 900

        assert pick_excerpt(text, "!!!") == text[:500]


class TestBadge:

    def test_page_citation_is_album_sourced(self):
        assert badge_for("Elementary Math Album · p.212") == "Album-sourced | AMI"

    def test_other_sources_are_trainer_reviewed(self):
        assert badge_for("Trainer notes, 2023") == "Trainer-reviewed"


class TestScoreCandidates:

    def _score(self, candidates, bm25=None, cos=None, query="q", subject=None, plane=None):
        return score_candidates(
            candidates, query, bm25 or {}, cos or {}, subject, plane,
            alpha=0.7, beta=0.3, **BOOSTS
        )

    def test_missing_components_count_as_zero(self):
        (scored,) = self._score([_candidate("a")])

        assert scored.bm25_score == 0.0
        assert scored.cosine_score == 0.0
        assert scored.score == 0.0

    def test_scores_every_candidate_in_order(self):
        candidates = [_candidate("a"), _candidate("b"), _candidate("c")]

        scored = self._score(candidates, bm25={"b": 1.0}, cos={"c": 0.5})

        assert [s.id for s in scored] == ["a", "b", "c"]
        assert scored[1].score == pytest.approx(0.3)
        assert scored[2].score == pytest.approx(0.35)

    def test_subject_boost_breaks_lexical_tie(self):
        candidates = [_candidate("plain"), _candidate("math", subject="Math")]

        ranked = rank(self._score(candidates, bm25={"plain": 1.0, "math": 1.0}, subject="Math"))

        assert [s.id for s in ranked] == ["math", "plain"]

    def test_equal_boost_preserves_order(self):
        candidates = [
            _candidate("low", subject="Math"),
            _candidate("high", subject="Math"),
        ]
        bm25 = {"low": 0.5, "high": 1.5}

        unboosted = [s.id for s in rank(self._score(candidates, bm25=bm25))]
        boosted = [s.id for s in rank(self._score(candidates, bm25=bm25, subject="Math"))]

        assert unboosted == boosted == ["high", "low"]

    def test_rank_is_stable_for_ties(self):
        candidates = [_candidate("first"), _candidate("second"), _candidate("third")]

        ranked = rank(self._score(candidates, bm25={"first": 1.0, "second": 1.0, "third": 1.0}))

        assert [s.id for s in ranked] == ["first", "second", "third"]

    def test_to_hit_exposes_no_scores(self):
        (scored,) = self._score([_candidate("a", text="golden bead", source="Album · p.4")], bm25={"a": 2.0})

        hit = to_hit(scored)

        assert hit.id == "a"
        assert hit.title == "A"
        assert hit.excerpt == "golden bead"
        assert hit.badge == "Album-sourced | AMI"
        assert not hasattr(hit, "score")

"""Score fusion, multiplicative boosts, excerpts and badges."""
import logging
from typing import Dict, List, Optional

from models.candidate import Candidate, ScoredCandidate
from models.search import SearchHit
from services.candidate_assembler import PAGE_MARKER
from services.tokenizer import tokenize

logger = logging.getLogger(__name__)

EXCERPT_MAX_CHARS = 500
EXCERPT_LEAD_CHARS = 200

ALBUM_BADGE = "Album-sourced | AMI"
TRAINER_BADGE = "Trainer-reviewed"


def fuse_score(cosine_score: float, bm25_score: float, alpha: float, beta: float) -> float:
    return alpha * cosine_score + beta * bm25_score


def phrase_present(query: str, text: str) -> bool:
    q = query.strip().lower()
    return bool(q) and q in text.lower()


def apply_boosts(
    score: float,
    candidate: Candidate,
    query: str,
    subject: Optional[str],
    plane: Optional[str],
    subject_boost: float,
    plane_boost: float,
    phrase_boost: float
) -> float:
    """Apply subject, plane and phrase boosts; each is checked independently and they compound."""
    if subject and candidate.subject == subject:
        score *= subject_boost
    if plane and candidate.plane == plane:
        score *= plane_boost
    if phrase_present(query, candidate.text):
        score *= phrase_boost
    return score


def pick_excerpt(text: str, query: str) -> str:
    """
    Window long text around the query's first token.

    Text of at most 500 characters is returned trimmed but otherwise
    verbatim. Longer text yields a 500 character window starting 200
    characters before the first case-insensitive occurrence of the first
    query token, or the first 500 characters when it does not occur.
    """
    t = text.strip()
    if len(t) <= EXCERPT_MAX_CHARS:
        return t
    tokens = tokenize(query)
    idx = t.lower().find(tokens[0]) if tokens else -1
    if idx > -1:
        start = max(0, idx - EXCERPT_LEAD_CHARS)
        return t[start:start + EXCERPT_MAX_CHARS]
    return t[:EXCERPT_MAX_CHARS]


def badge_for(source: str) -> str:
    """Page citations come from ingested albums; everything else is trainer-reviewed corpus."""
    return ALBUM_BADGE if PAGE_MARKER in source else TRAINER_BADGE


def score_candidates(
    candidates: List[Candidate],
    query: str,
    bm25_scores: Dict[str, float],
    cosine_scores: Dict[str, float],
    subject: Optional[str],
    plane: Optional[str],
    alpha: float,
    beta: float,
    subject_boost: float,
    plane_boost: float,
    phrase_boost: float
) -> List[ScoredCandidate]:
    """
    Score every candidate; missing component scores count as 0.

    Returns:
        ScoredCandidates in candidate order (unsorted)
    """
    scored = []
    for c in candidates:
        bm = bm25_scores.get(c.id, 0.0)
        co = cosine_scores.get(c.id, 0.0)
        score = apply_boosts(
            fuse_score(co, bm, alpha, beta),
            c, query, subject, plane,
            subject_boost, plane_boost, phrase_boost
        )
        scored.append(ScoredCandidate(
            candidate=c,
            bm25_score=bm,
            cosine_score=co,
            score=score,
            excerpt=pick_excerpt(c.text, query)
        ))
    return scored


def rank(scored: List[ScoredCandidate]) -> List[ScoredCandidate]:
    """Stable sort by descending fused score."""
    return sorted(scored, key=lambda s: s.score, reverse=True)


def to_hit(scored: ScoredCandidate) -> SearchHit:
    c = scored.candidate
    return SearchHit(
        id=c.id,
        title=c.title,
        excerpt=scored.excerpt,
        source=c.source,
        badge=badge_for(c.source)
    )

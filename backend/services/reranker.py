"""LLM-assisted reordering of the best fused candidates."""
import json
import logging
from typing import List, Optional

from models.candidate import ScoredCandidate
from models.capability import CapabilityResult, Success, Unavailable, Malformed
from services.llm_client import BaseLLMClient, LLMClientError

logger = logging.getLogger(__name__)

RERANK_PROMPT = """Re-rank the following candidate excerpts by relevance to the query.
Return strict JSON of the form {"order": [candidate ids, best to worst]}. No commentary."""


def parse_order(text: str) -> Optional[List[str]]:
    """Accept {"order": [...]} or a bare JSON array of id strings; None otherwise."""
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    if isinstance(parsed, dict):
        parsed = parsed.get("order")
    if not isinstance(parsed, list) or not all(isinstance(i, str) for i in parsed):
        return None
    return parsed


def merge_order(ranked: List[ScoredCandidate], order: List[str], top_k: int) -> List[ScoredCandidate]:
    """
    Apply a model ordering to the top-K slice of a fused ranking.

    Ids the model returned come first in its order (unknown and repeated ids
    are ignored), then subset members it omitted in fused order, then the
    candidates beyond top-K unchanged.
    """
    head, tail = ranked[:top_k], ranked[top_k:]
    by_id = {s.id: s for s in head}
    placed = []
    seen = set()
    for cid in order:
        if cid in by_id and cid not in seen:
            placed.append(by_id[cid])
            seen.add(cid)
    # head is already in descending fused-score order
    omitted = [s for s in head if s.id not in seen]
    return placed + omitted + tail


class Reranker:
    """Best-effort reranking of the top-K candidates."""

    def __init__(self, llm_client: Optional[BaseLLMClient], top_k: int = 8):
        self.llm_client = llm_client
        self.top_k = top_k

    def rerank(self, query: str, ranked: List[ScoredCandidate]) -> CapabilityResult[List[ScoredCandidate]]:
        """
        Reorder the top-K of `ranked` by the model's relevance judgment.

        Returns:
            Success(full reordered list), Unavailable, or Malformed. Callers
            keep the fused order on anything but Success.
        """
        if self.llm_client is None:
            return Unavailable("no language model configured")
        if self.top_k <= 1 or len(ranked) <= 1:
            return Success(list(ranked))

        head = ranked[:self.top_k]
        user = json.dumps({
            "query": query,
            "candidates": [
                {
                    "id": s.id,
                    "title": s.candidate.title,
                    "source": s.candidate.source,
                    "excerpt": s.excerpt
                }
                for s in head
            ]
        })

        try:
            response = self.llm_client.complete_json(RERANK_PROMPT, user, max_tokens=512)
        except LLMClientError as e:
            logger.warning(f"Rerank unavailable: {e.error.code}")
            return Unavailable(e.error.message)

        order = parse_order(response.text)
        if order is None:
            logger.warning("Rerank returned an unusable ordering")
            return Malformed("expected a JSON list of candidate ids", response.text)

        logger.debug(f"Reranked top {len(head)} candidates")
        return Success(merge_order(ranked, order, self.top_k))

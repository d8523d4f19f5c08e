"""BM25 lexical index built fresh for every search request.

score(Q, D) = sum over unique q in Q of
    idf(q) * tf(q, D) * (k1 + 1) / (tf(q, D) + k1 * (1 - b + b * |D| / avgdl))

with idf(q) = ln((N - df + 0.5) / (df + 0.5) + 1). Very common terms can
yield a slightly negative contribution; this is left unclamped.
"""
import logging
import math
from collections import Counter
from typing import Dict, Iterable, List, Tuple

from services.tokenizer import tokenize

logger = logging.getLogger(__name__)


class BM25Index:
    """Inverted index over one request's candidate set."""

    DEFAULT_K1: float = 1.5
    DEFAULT_B: float = 0.75

    def __init__(self):
        # term -> candidate id -> term frequency (insertion ordered)
        self.postings: Dict[str, Dict[str, int]] = {}
        self.doc_lengths: Dict[str, int] = {}
        self.doc_freq: Dict[str, int] = {}
        self.n_docs: int = 0
        self.avgdl: float = 1.0
        # candidate id -> insertion position, used to break score ties
        self._order: Dict[str, int] = {}

    @classmethod
    def build(cls, docs: Iterable[Tuple[str, str]]) -> "BM25Index":
        """
        Build an index from (candidate_id, text) pairs.

        Args:
            docs: Candidates in insertion order

        Returns:
            A populated BM25Index
        """
        index = cls()
        for doc_id, text in docs:
            tokens = tokenize(text)
            index._order[doc_id] = len(index._order)
            index.doc_lengths[doc_id] = len(tokens)
            for term, tf in Counter(tokens).items():
                index.postings.setdefault(term, {})[doc_id] = tf

        index.doc_freq = {term: len(plist) for term, plist in index.postings.items()}
        index.n_docs = len(index.doc_lengths)
        total = sum(index.doc_lengths.values())
        index.avgdl = (total / max(1, index.n_docs)) or 1.0

        logger.debug(
            f"Built BM25 index: {index.n_docs} docs, {len(index.postings)} terms, "
            f"avgdl={index.avgdl:.1f}"
        )
        return index

    def idf(self, term: str) -> float:
        df = self.doc_freq.get(term, 0)
        return math.log((self.n_docs - df + 0.5) / (df + 0.5) + 1)

    def score(
        self,
        query: str,
        limit: int = 50,
        k1: float = DEFAULT_K1,
        b: float = DEFAULT_B,
    ) -> List[Tuple[str, float]]:
        """
        Score candidates against a query.

        Duplicate query terms count once; terms absent from the index add
        nothing; candidates matching no term are left out.

        Args:
            query: Free-text query
            limit: Maximum number of results
            k1: Term frequency saturation parameter
            b: Document length normalization parameter

        Returns:
            (candidate_id, score) pairs, best first, ties in insertion order
        """
        terms = dict.fromkeys(tokenize(query))
        scores: Dict[str, float] = {}

        for term in terms:
            plist = self.postings.get(term)
            if not plist:
                continue
            idf = self.idf(term)
            for doc_id, tf in plist.items():
                dl = self.doc_lengths.get(doc_id, 0)
                denom = tf + k1 * (1 - b + b * (dl / self.avgdl))
                scores[doc_id] = scores.get(doc_id, 0.0) + idf * (tf * (k1 + 1)) / max(denom, 1e-6)

        ranked = sorted(scores.items(), key=lambda item: (-item[1], self._order[item[0]]))
        return ranked[:limit]

    def __len__(self) -> int:
        return self.n_docs

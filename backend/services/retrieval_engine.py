"""Retrieval engine: hybrid BM25 + embedding search with a confidence gate."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from config import RetrievalSettings
from models.candidate import Candidate
from models.capability import Success
from models.search import EscalationRecord, SearchResult
from services.bm25_index import BM25Index
from services.candidate_assembler import assemble_candidates, apply_filters
from services.confidence_gate import apply_cutoff, is_low_confidence
from services.embedding_model import EmbeddingProvider, cosine, embed_safely
from services.knowledge_store import KnowledgeStore
from services.llm_client import BaseLLMClient
from services.query_canonicalizer import QueryCanonicalizer
from services.reranker import Reranker
from services.score_fusion import score_candidates, rank, to_hit
from services.trainer_queue import TrainerQueue

logger = logging.getLogger(__name__)


class InvalidSearchRequest(ValueError):
    """The request cannot be scored (empty query, bad result count)."""


class RetrievalEngine:
    """Orchestrate canonicalization, hybrid scoring, reranking and the confidence gate."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedding_provider: Optional[EmbeddingProvider] = None,
        llm_client: Optional[BaseLLMClient] = None,
        settings: Optional[RetrievalSettings] = None,
        escalation_queue: Optional[TrainerQueue] = None
    ):
        """
        Initialize the retrieval engine.

        Args:
            store: Source of corpus entries, chunks and document titles
            embedding_provider: Semantic signal; None disables it
            llm_client: Language model for canonicalization/rerank; None disables both
            settings: Weights, boosts, thresholds and feature toggles
            escalation_queue: Receives low-confidence queries; None skips escalation
        """
        self.store = store
        self.embedding_provider = embedding_provider
        self.settings = settings or RetrievalSettings()
        self.escalation_queue = escalation_queue
        self.canonicalizer = QueryCanonicalizer(llm_client)
        self.reranker = Reranker(llm_client, top_k=self.settings.rerank_top_k)
        logger.info(
            f"Initialized RetrievalEngine (lexical={self.settings.use_lexical}, "
            f"embeddings={self.settings.use_embeddings and embedding_provider is not None}, "
            f"canonicalize={self.settings.use_llm_canonicalization and llm_client is not None}, "
            f"rerank={self.settings.use_llm_rerank and llm_client is not None})"
        )

    def search(
        self,
        query: str,
        subject: Optional[str] = None,
        plane: Optional[str] = None,
        result_count: Optional[int] = None
    ) -> SearchResult:
        """
        Run one independent search request.

        1. Validate the request
        2. Canonicalize the query (optional); its subject/plane override the hints
        3. Assemble candidates and apply subject/plane filters
        4. Score lexically and semantically in parallel
        5. Fuse, boost and sort
        6. Rerank the top-K (optional, best effort)
        7. Apply the minimum-score cutoff and result count
        8. Decide confidence; escalate weak results for trainer review

        Args:
            query: Free-text observation or question
            subject: Subject filter
            plane: Plane-of-development filter
            result_count: Number of hits to return (default from settings)

        Returns:
            SearchResult with hits and the low-confidence verdict

        Raises:
            InvalidSearchRequest: If the query is empty or result_count < 1
        """
        if not query or not query.strip():
            raise InvalidSearchRequest("Query is required and cannot be empty")
        count = self.settings.default_result_count if result_count is None else result_count
        if count < 1:
            raise InvalidSearchRequest("result_count must be at least 1")

        start_time = time.time()
        raw_query = query.strip()
        scored_query, lexical_query, active_subject, active_plane = self._canonicalize(
            raw_query, subject or None, plane or None
        )

        candidates = apply_filters(
            assemble_candidates(
                self.store.list_corpus(),
                self.store.list_chunks(),
                self.store.list_documents()
            ),
            active_subject,
            active_plane
        )

        # The two signals are independent; fusion waits for both.
        with ThreadPoolExecutor(max_workers=2) as pool:
            lexical_future = pool.submit(self._lexical_scores, candidates, lexical_query)
            semantic_future = pool.submit(self._semantic_scores, candidates, scored_query)
            bm25_scores = lexical_future.result()
            cosine_scores = semantic_future.result()

        s = self.settings
        ranked = rank(score_candidates(
            candidates, scored_query, bm25_scores, cosine_scores,
            active_subject, active_plane,
            s.score_alpha, s.score_beta,
            s.subject_boost, s.plane_boost, s.phrase_boost
        ))

        if s.use_llm_rerank and ranked:
            reranked = self.reranker.rerank(scored_query, ranked)
            if isinstance(reranked, Success):
                ranked = reranked.value
            else:
                logger.warning(f"Keeping fused order; rerank skipped: {reranked.reason}")

        results = apply_cutoff(ranked, s.minimum_final_score, count)
        low_confidence = is_low_confidence(results, s.low_confidence_threshold)

        if low_confidence:
            self._escalate(raw_query, subject, plane)

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Search returned {len(results)}/{len(candidates)} candidates in {elapsed_ms}ms "
            f"(low_confidence={low_confidence}, top score: "
            f"{results[0].score if results else 0.0:.3f})"
        )

        return SearchResult(
            hits=[to_hit(r) for r in results],
            low_confidence=low_confidence,
            query=scored_query,
            subject=active_subject,
            plane=active_plane
        )

    def _canonicalize(
        self,
        query: str,
        subject: Optional[str],
        plane: Optional[str]
    ) -> Tuple[str, str, Optional[str], Optional[str]]:
        """Return (scored query, lexical query, subject, plane)."""
        if not self.settings.use_llm_canonicalization:
            return query, query, subject, plane

        result = self.canonicalizer.canonicalize(query, subject, plane)
        if not isinstance(result, Success):
            logger.warning(f"Using raw query; canonicalization skipped: {result.reason}")
            return query, query, subject, plane

        canonical = result.value
        lexical_query = " ".join([canonical.normalized_query, *canonical.keywords])
        return canonical.normalized_query, lexical_query, canonical.subject, canonical.plane

    def _lexical_scores(self, candidates: List[Candidate], query: str) -> Dict[str, float]:
        if not self.settings.use_lexical or not candidates:
            return {}
        index = BM25Index.build((c.id, c.text) for c in candidates)
        return dict(index.score(query, limit=self.settings.bm25_candidate_limit))

    def _semantic_scores(self, candidates: List[Candidate], query: str) -> Dict[str, float]:
        if not self.settings.use_embeddings or self.embedding_provider is None:
            return {}
        embedded = [c for c in candidates if c.embedding]
        if not embedded:
            return {}

        result = embed_safely(self.embedding_provider, [query])
        if not isinstance(result, Success):
            logger.warning(f"Continuing without vectors: {result.reason}")
            return {}

        query_vector = result.value[0]
        return {c.id: cosine(query_vector, c.embedding) for c in embedded}

    def _escalate(self, query: str, subject: Optional[str], plane: Optional[str]) -> None:
        if self.escalation_queue is None:
            return
        record = EscalationRecord(
            query=query,
            subject=subject,
            plane=plane,
            created_at=datetime.now(timezone.utc)
        )
        try:
            self.escalation_queue.escalate(record)
        except Exception as e:
            logger.error(f"Failed to escalate low-confidence query: {e}", exc_info=True)

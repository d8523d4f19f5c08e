"""Tests for the end-to-end retrieval pipeline."""
import sys
import json
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock
from config import RetrievalSettings
from models.corpus import CorpusEntry, DocChunk, IngestedDocument
from services.llm_client import LLMResponse, LLMError, LLMClientError
from services.retrieval_engine import RetrievalEngine, InvalidSearchRequest


def _settings(**overrides):
    values = dict(
        use_embeddings=False,
        use_lexical=True,
        use_llm_canonicalization=False,
        use_llm_rerank=False,
        score_alpha=0.7,
        score_beta=0.3,
        subject_boost=1.2,
        plane_boost=1.2,
        phrase_boost=1.2,
        low_confidence_threshold=0.35,
        minimum_final_score=0.01,
        rerank_top_k=8,
        default_result_count=3,
        bm25_candidate_limit=50
    )
    values.update(overrides)
    return RetrievalSettings(**values)


def _store(corpus=(), chunks=(), documents=()):
    store = Mock()
    store.list_corpus.return_value = list(corpus)
    store.list_chunks.return_value = list(chunks)
    store.list_documents.return_value = list(documents)
    return store


def _entry(eid, text, subject=None, plane=None, embedding=None):
    return CorpusEntry(
        id=eid, title=eid.title(), text=text, source="Trainer notes",
        subject=subject, plane=plane, embedding=embedding
    )


def _llm_answer(text):
    return LLMResponse(text=text, tokens_input=0, tokens_output=0, latency_ms=1, model_used="test")


def _ids(result):
    return [h.id for h in result.hits]


CORPUS = [
    _entry("beads", "Golden beads introduce the decimal system with units tens hundreds."),
    _entry("stamps", "The stamp game continues the decimal system with small tiles."),
    _entry("letters", "Sandpaper letters connect sound and symbol for the young child."),
    _entry("greeting", "Grace and courtesy lessons model greeting a visitor."),
]


class TestValidation:

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_empty_query_rejected(self, query):
        engine = RetrievalEngine(_store(CORPUS), settings=_settings())

        with pytest.raises(InvalidSearchRequest):
            engine.search(query)

    def test_result_count_must_be_positive(self):
        engine = RetrievalEngine(_store(CORPUS), settings=_settings())

        with pytest.raises(InvalidSearchRequest):
            engine.search("beads", result_count=0)


class TestScenarios:

    def test_exact_phrase_ranks_first(self):
        corpus = [
            _entry("shuffled", "tens by counts with the bead chain"),
            _entry("exact", "counts by tens with the bead chain"),
        ]
        engine = RetrievalEngine(_store(corpus), settings=_settings())

        result = engine.search("counts by tens")

        assert _ids(result) == ["corpus-exact", "corpus-shuffled"]
        assert result.low_confidence is False

    def test_single_exact_match(self):
        engine = RetrievalEngine(_store([_entry("only", "counts by tens")]), settings=_settings())

        result = engine.search("Counts by tens")

        assert _ids(result) == ["corpus-only"]

    def test_no_matching_terms_is_empty_and_low_confidence(self):
        queue = Mock()
        engine = RetrievalEngine(_store(CORPUS), settings=_settings(), escalation_queue=queue)

        result = engine.search("zebra xylophone")

        assert result.hits == []
        assert result.low_confidence is True
        queue.escalate.assert_called_once()

    def test_subject_boost_breaks_lexical_tie(self):
        corpus = [
            _entry("untagged", "golden bead exchange"),
            _entry("math", "golden bead exchange", subject="Math"),
        ]
        engine = RetrievalEngine(_store(corpus), settings=_settings())

        assert _ids(engine.search("golden bead")) == ["corpus-untagged", "corpus-math"]
        assert _ids(engine.search("golden bead", subject="Math")) == ["corpus-math", "corpus-untagged"]

    def test_rerank_failure_keeps_fused_order(self):
        llm = Mock()
        llm.complete_json.side_effect = LLMClientError(
            LLMError(code="CONNECTION_ERROR", message="Could not reach Groq API.", details={})
        )
        fused = RetrievalEngine(_store(CORPUS), settings=_settings())
        reranked = RetrievalEngine(_store(CORPUS), llm_client=llm, settings=_settings(use_llm_rerank=True))

        expected = fused.search("decimal system tens", result_count=4)
        result = reranked.search("decimal system tens", result_count=4)

        assert _ids(result) == _ids(expected)
        llm.complete_json.assert_called_once()

    def test_rerank_malformed_keeps_fused_order(self):
        llm = Mock()
        llm.complete_json.return_value = _llm_answer("no idea")
        fused = RetrievalEngine(_store(CORPUS), settings=_settings())
        reranked = RetrievalEngine(_store(CORPUS), llm_client=llm, settings=_settings(use_llm_rerank=True))

        assert _ids(reranked.search("decimal system")) == _ids(fused.search("decimal system"))


class TestPipeline:

    def test_repeated_searches_are_identical(self):
        engine = RetrievalEngine(_store(CORPUS), settings=_settings())

        first = engine.search("decimal system", result_count=4)
        second = engine.search("decimal system", result_count=4)

        assert first.hits == second.hits
        assert first.low_confidence == second.low_confidence

    def test_result_count_truncates(self):
        engine = RetrievalEngine(_store(CORPUS), settings=_settings())

        assert len(engine.search("the", result_count=1).hits) == 1

    def test_default_result_count(self):
        corpus = [_entry(f"e{i}", f"bead number {i}") for i in range(6)]
        engine = RetrievalEngine(_store(corpus), settings=_settings(default_result_count=2))

        assert len(engine.search("bead").hits) == 2

    def test_filters_exclude_other_tags(self):
        corpus = [
            _entry("math", "bead work", subject="Math"),
            _entry("language", "bead work", subject="Language"),
            _entry("untagged", "bead work"),
        ]
        engine = RetrievalEngine(_store(corpus), settings=_settings())

        result = engine.search("bead work", subject="Math")

        assert set(_ids(result)) == {"corpus-math", "corpus-untagged"}
        assert result.subject == "Math"

    def test_chunks_are_searchable_with_album_badge(self):
        documents = [IngestedDocument(id="doc_1", title="Math Album", filename="1_math.pdf",
                                      pages=4, created_at="2024-01-01T00:00:00Z")]
        chunks = [DocChunk(doc_id="doc_1", page=4, seq=0, text="Checkerboard multiplication layout.")]
        engine = RetrievalEngine(_store(CORPUS, chunks, documents), settings=_settings())

        (hit,) = engine.search("checkerboard", result_count=1).hits

        assert hit.id == "chunk-doc_1-4-0"
        assert hit.source == "Math Album · p.4"
        assert hit.badge == "Album-sourced | AMI"

    def test_lexical_disabled_without_embeddings_finds_nothing(self):
        engine = RetrievalEngine(_store(CORPUS), settings=_settings(use_lexical=False))

        result = engine.search("decimal system")

        assert result.hits == []
        assert result.low_confidence is True


class TestSemanticSignal:

    def _corpus(self):
        return [
            _entry("near", "alpha", embedding=[1.0, 0.0]),
            _entry("far", "beta", embedding=[0.0, 1.0]),
            _entry("none", "gamma"),
        ]

    def test_cosine_scores_rank_candidates(self):
        provider = Mock()
        provider.embed_batch.return_value = [[1.0, 0.0]]
        engine = RetrievalEngine(
            _store(self._corpus()),
            embedding_provider=provider,
            settings=_settings(use_embeddings=True, use_lexical=False)
        )

        result = engine.search("something close")

        assert _ids(result) == ["corpus-near"]
        assert result.low_confidence is False
        provider.embed_batch.assert_called_once_with(["something close"])

    def test_embedding_failure_falls_back_to_lexical(self):
        provider = Mock()
        provider.embed_batch.side_effect = RuntimeError("model loading")
        engine = RetrievalEngine(
            _store(self._corpus()),
            embedding_provider=provider,
            settings=_settings(use_embeddings=True)
        )

        result = engine.search("gamma")

        assert _ids(result) == ["corpus-none"]

    def test_no_embedded_candidates_skips_provider(self):
        provider = Mock()
        engine = RetrievalEngine(
            _store(CORPUS),
            embedding_provider=provider,
            settings=_settings(use_embeddings=True)
        )

        engine.search("decimal")

        provider.embed_batch.assert_not_called()


class TestCanonicalization:

    def test_model_subject_overrides_hint_and_keywords_reach_lexical_only(self):
        llm = Mock()
        llm.complete_json.return_value = _llm_answer(json.dumps({
            "normalized_query": "golden bead",
            "subject": "Math",
            "keywords": ["decimal"]
        }))
        corpus = [
            _entry("story", "golden bead story", subject="Language"),
            _entry("decimal", "decimal layout", subject="Math"),
            _entry("beads", "golden bead tray", subject="Math"),
        ]
        engine = RetrievalEngine(
            _store(corpus), llm_client=llm,
            settings=_settings(use_llm_canonicalization=True)
        )

        result = engine.search("gold beeds", subject="Language")

        assert result.query == "golden bead"
        assert result.subject == "Math"
        assert "corpus-story" not in _ids(result)
        assert _ids(result)[0] == "corpus-beads"
        assert "corpus-decimal" in _ids(result)

    def test_unavailable_model_uses_raw_query(self):
        llm = Mock()
        llm.complete_json.side_effect = LLMClientError(
            LLMError(code="TIMEOUT_ERROR", message="Request timed out.", details={})
        )
        engine = RetrievalEngine(
            _store(CORPUS), llm_client=llm,
            settings=_settings(use_llm_canonicalization=True)
        )

        result = engine.search("sandpaper letters", subject="Language")

        assert result.query == "sandpaper letters"
        assert result.subject == "Language"
        assert _ids(result)[0] == "corpus-letters"


class TestEscalation:

    def test_records_raw_query_and_caller_filters(self):
        queue = Mock()
        llm = Mock()
        llm.complete_json.return_value = _llm_answer(json.dumps({"normalized_query": "zebra", "subject": "Math"}))
        engine = RetrievalEngine(
            _store(CORPUS), llm_client=llm,
            settings=_settings(use_llm_canonicalization=True),
            escalation_queue=queue
        )

        engine.search("  Zebras?  ", subject="Language", plane="6-12")

        record = queue.escalate.call_args[0][0]
        assert record.query == "Zebras?"
        assert record.subject == "Language"
        assert record.plane == "6-12"
        assert record.status == "open"

    def test_confident_results_not_escalated(self):
        queue = Mock()
        engine = RetrievalEngine(_store(CORPUS), settings=_settings(), escalation_queue=queue)

        engine.search("sandpaper letters")

        queue.escalate.assert_not_called()

    def test_escalation_failure_does_not_fail_search(self):
        queue = Mock()
        queue.escalate.side_effect = RuntimeError("queue offline")
        engine = RetrievalEngine(_store(CORPUS), settings=_settings(), escalation_queue=queue)

        result = engine.search("zebra")

        assert result.low_confidence is True
        assert result.hits == []

"""Services for the Album Guidance search backend."""
from .tokenizer import tokenize
from .bm25_index import BM25Index
from .embedding_model import EmbeddingProvider, EmbeddingModel, LocalEmbeddingModel, create_embedding_provider, cosine
from .llm_client import BaseLLMClient, LLMClient, OllamaClient, LLMResponse, LLMError, LLMClientError, create_llm_client
from .candidate_assembler import assemble_candidates, apply_filters, parse_candidate_id
from .query_canonicalizer import QueryCanonicalizer
from .score_fusion import score_candidates, rank, pick_excerpt, badge_for
from .reranker import Reranker
from .confidence_gate import apply_cutoff, is_low_confidence
from .knowledge_store import KnowledgeStore
from .trainer_queue import TrainerQueue
from .retrieval_engine import RetrievalEngine, InvalidSearchRequest
from .document_loader import DocumentLoader
from .chunking_engine import ChunkingEngine
from .ingestion_pipeline import IngestionPipeline, DocumentTooLarge

__all__ = ['tokenize', 'BM25Index', 'EmbeddingProvider', 'EmbeddingModel', 'LocalEmbeddingModel', 'create_embedding_provider', 'cosine', 'BaseLLMClient', 'LLMClient', 'OllamaClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'create_llm_client', 'assemble_candidates', 'apply_filters', 'parse_candidate_id', 'QueryCanonicalizer', 'score_candidates', 'rank', 'pick_excerpt', 'badge_for', 'Reranker', 'apply_cutoff', 'is_low_confidence', 'KnowledgeStore', 'TrainerQueue', 'RetrievalEngine', 'InvalidSearchRequest', 'DocumentLoader', 'ChunkingEngine', 'IngestionPipeline', 'DocumentTooLarge']

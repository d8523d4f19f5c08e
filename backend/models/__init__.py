"""Data models for the Album Guidance search backend."""
from .corpus import CorpusEntry, DocChunk, IngestedDocument
from .candidate import Candidate, ScoredCandidate
from .capability import CapabilityResult, Success, Unavailable, Malformed
from .document import Document, Page
from .search import (
    SearchHit,
    SearchResult,
    CanonicalQuery,
    EscalationRecord,
    TrainerQueueItem,
    TrainerReply,
    ItemDetail,
)

__all__ = [
    "CorpusEntry",
    "DocChunk",
    "IngestedDocument",
    "Candidate",
    "ScoredCandidate",
    "CapabilityResult",
    "Success",
    "Unavailable",
    "Malformed",
    "Document",
    "Page",
    "SearchHit",
    "SearchResult",
    "CanonicalQuery",
    "EscalationRecord",
    "TrainerQueueItem",
    "TrainerReply",
    "ItemDetail",
]

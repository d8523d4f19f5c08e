"""Per-request retrieval candidates."""
from dataclasses import dataclass
from typing import Optional, List


@dataclass(frozen=True)
class Candidate:
    """Uniform projection of a corpus entry or document chunk for one request."""
    id: str  # "corpus-<id>" or "chunk-<docId>-<page>-<seq>"
    title: str
    text: str
    source: str
    subject: Optional[str] = None
    plane: Optional[str] = None
    embedding: Optional[List[float]] = None


@dataclass(frozen=True)
class ScoredCandidate:
    """Candidate with its component scores and fused score."""
    candidate: Candidate
    bm25_score: float
    cosine_score: float
    score: float
    excerpt: str

    @property
    def id(self) -> str:
        return self.candidate.id

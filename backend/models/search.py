"""Search results, escalation and trainer review models."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List


@dataclass(frozen=True)
class SearchHit:
    """Public result shape; scores are never exposed."""
    id: str
    title: str
    excerpt: str
    source: str  # citation string
    badge: str  # "Album-sourced | AMI" | "Trainer-reviewed"


@dataclass
class SearchResult:
    """Outcome of one search request."""
    hits: List[SearchHit]
    low_confidence: bool
    query: str  # query actually scored (after canonicalization)
    subject: Optional[str] = None  # resolved filters
    plane: Optional[str] = None


@dataclass(frozen=True)
class CanonicalQuery:
    """Normalized query produced by the language model."""
    normalized_query: str
    subject: Optional[str] = None
    plane: Optional[str] = None
    keywords: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EscalationRecord:
    """Low-confidence query queued for trainer review."""
    query: str
    created_at: datetime
    subject: Optional[str] = None
    plane: Optional[str] = None
    status: str = "open"


@dataclass
class TrainerQueueItem:
    id: str
    query: str
    created_at: str  # ISO
    status: str  # "open" | "resolved"
    subject: Optional[str] = None
    plane: Optional[str] = None


@dataclass
class TrainerReply:
    id: str
    text: str
    created_at: str  # ISO
    queue_id: Optional[str] = None


@dataclass
class ItemDetail:
    """Full text behind a search hit, with a locator for document chunks."""
    id: str
    title: str
    text: str
    source: str
    document_id: Optional[str] = None
    filename: Optional[str] = None
    page: Optional[int] = None

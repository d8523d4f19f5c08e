"""Reference corpus and ingested document models."""
from dataclasses import dataclass
from typing import Optional, List


@dataclass(frozen=True)
class CorpusEntry:
    """Curated reference passage loaded from the knowledge store."""
    id: str
    title: str
    text: str
    source: str  # e.g. "Elementary Math Album · Golden Beads"
    subject: Optional[str] = None
    plane: Optional[str] = None
    embedding: Optional[List[float]] = None


@dataclass(frozen=True)
class DocChunk:
    """Segment of an ingested document; owned by the ingestion pipeline."""
    doc_id: str
    page: int  # 1-based
    seq: int  # position within the page
    text: str
    heading: Optional[str] = None
    subject: Optional[str] = None
    plane: Optional[str] = None
    embedding: Optional[List[float]] = None
    token_count: int = 0


@dataclass
class IngestedDocument:
    """Metadata record for an uploaded document."""
    id: str
    title: str  # doc title or filename stem
    filename: str  # stored filename
    pages: int
    created_at: str  # ISO
    chunk_count: int = 0

"""Request and response schemas for the HTTP API."""
from typing import List, Optional
from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    """Body of POST /search. `q` is validated by the endpoint so an empty query is a 400."""
    q: Optional[str] = None
    subject: Optional[str] = None
    plane: Optional[str] = None
    result_count: Optional[int] = Field(default=None, ge=1, le=20)


class SearchHitOut(BaseModel):
    id: str
    title: str
    excerpt: str
    source: str
    badge: str


class ItemDetailOut(BaseModel):
    id: str
    title: str
    text: str
    source: str
    document_id: Optional[str] = None
    filename: Optional[str] = None
    page: Optional[int] = None
    file_url: Optional[str] = None


class TrainerQueueItemOut(BaseModel):
    id: str
    query: str
    subject: Optional[str] = None
    plane: Optional[str] = None
    created_at: str
    status: str


class TrainerReplyIn(BaseModel):
    queue_id: Optional[str] = None
    text: Optional[str] = None


class TrainerReplyOut(BaseModel):
    id: str
    queue_id: Optional[str] = None
    text: str
    created_at: str


class DocumentOut(BaseModel):
    id: str
    title: str
    filename: str
    pages: int
    created_at: str
    chunk_count: int = 0


class ChunkOut(BaseModel):
    doc_id: str
    page: int
    seq: int
    heading: Optional[str] = None
    text: str
    subject: Optional[str] = None
    plane: Optional[str] = None


__all__ = [
    "SearchRequest",
    "SearchHitOut",
    "ItemDetailOut",
    "TrainerQueueItemOut",
    "TrainerReplyIn",
    "TrainerReplyOut",
    "DocumentOut",
    "ChunkOut",
]

"""Supabase-backed store for the reference corpus and ingested documents."""
import json
import logging
from typing import Any, Dict, List, Optional
from supabase import create_client, Client

from config import SUPABASE_URL, SUPABASE_KEY
from models.corpus import CorpusEntry, DocChunk, IngestedDocument
from models.search import ItemDetail
from services.candidate_assembler import parse_candidate_id, chunk_source, FALLBACK_DOCUMENT_TITLE

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000  # PostgREST default row cap per request


def _vector(value: Any) -> Optional[List[float]]:
    """pgvector columns come back as '[0.1,0.2,...]' strings; float8[] as lists."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("Ignoring unparseable embedding column")
            return None
    if not isinstance(value, list) or not value:
        return None
    return [float(x) for x in value]


def _corpus_from_row(row: Dict[str, Any]) -> CorpusEntry:
    return CorpusEntry(
        id=str(row["id"]),
        title=row.get("title") or "",
        text=row.get("text") or "",
        source=row.get("source") or "",
        subject=row.get("subject"),
        plane=row.get("plane"),
        embedding=_vector(row.get("embedding"))
    )


def _chunk_from_row(row: Dict[str, Any]) -> DocChunk:
    return DocChunk(
        doc_id=row["doc_id"],
        page=int(row["page"]),
        seq=int(row.get("seq") or 0),
        text=row.get("text") or "",
        heading=row.get("heading"),
        subject=row.get("subject"),
        plane=row.get("plane"),
        embedding=_vector(row.get("embedding")),
        token_count=int(row.get("token_count") or 0)
    )


def _document_from_row(row: Dict[str, Any]) -> IngestedDocument:
    return IngestedDocument(
        id=row["id"],
        title=row.get("title") or "",
        filename=row.get("filename") or "",
        pages=int(row.get("pages") or 0),
        created_at=row.get("created_at") or "",
        chunk_count=int(row.get("chunk_count") or 0)
    )


def _chunk_record(chunk: DocChunk, created_at: str) -> Dict[str, Any]:
    return {
        "doc_id": chunk.doc_id,
        "page": chunk.page,
        "seq": chunk.seq,
        "heading": chunk.heading,
        "text": chunk.text,
        "subject": chunk.subject,
        "plane": chunk.plane,
        "embedding": chunk.embedding,
        "token_count": chunk.token_count,
        "created_at": created_at
    }


class KnowledgeStore:
    """Read access for retrieval, write access for the ingestion pipeline."""

    CORPUS_TABLE = "corpus_entries"
    DOCUMENTS_TABLE = "documents"
    CHUNKS_TABLE = "document_chunks"

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        client: Optional[Client] = None
    ):
        """
        Initialize the store with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            client: Pre-built client (skips credential checks)

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)
        self.client: Client = client
        logger.info("Initialized KnowledgeStore")

    def _select_all(self, table: str, order: List[str]) -> List[Dict[str, Any]]:
        """Page through a table so large corpora are not truncated at the row cap."""
        rows: List[Dict[str, Any]] = []
        start = 0
        try:
            while True:
                query = self.client.table(table).select("*")
                for column in order:
                    query = query.order(column)
                response = query.range(start, start + PAGE_SIZE - 1).execute()
                batch = response.data or []
                rows.extend(batch)
                if len(batch) < PAGE_SIZE:
                    return rows
                start += PAGE_SIZE
        except Exception as e:
            error_msg = f"Failed to read {table}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    # Reads used by retrieval

    def list_corpus(self) -> List[CorpusEntry]:
        return [_corpus_from_row(r) for r in self._select_all(self.CORPUS_TABLE, ["id"])]

    def list_chunks(self) -> List[DocChunk]:
        return [
            _chunk_from_row(r)
            for r in self._select_all(self.CHUNKS_TABLE, ["doc_id", "page", "seq"])
        ]

    def list_documents(self) -> List[IngestedDocument]:
        return [_document_from_row(r) for r in self._select_all(self.DOCUMENTS_TABLE, ["created_at"])]

    def get_document(self, doc_id: str) -> Optional[IngestedDocument]:
        try:
            response = self.client.table(self.DOCUMENTS_TABLE).select("*").eq("id", doc_id).execute()
        except Exception as e:
            error_msg = f"Failed to read document {doc_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        return _document_from_row(response.data[0]) if response.data else None

    def recent_chunks(self, limit: int = 5) -> List[DocChunk]:
        """Last `limit` chunks by upload time, oldest first."""
        if limit <= 0:
            return []
        try:
            response = (
                self.client.table(self.CHUNKS_TABLE).select("*")
                .order("created_at", desc=True)
                .order("page", desc=True)
                .order("seq", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            error_msg = f"Failed to read recent chunks: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        return [_chunk_from_row(r) for r in reversed(response.data or [])]

    # Writes owned by ingestion

    def add_document(self, document: IngestedDocument, chunks: List[DocChunk]) -> None:
        """
        Persist a document record and its chunks.

        Raises:
            RuntimeError: If the database operation fails
        """
        document.chunk_count = len(chunks)
        try:
            self.client.table(self.DOCUMENTS_TABLE).insert({
                "id": document.id,
                "title": document.title,
                "filename": document.filename,
                "pages": document.pages,
                "created_at": document.created_at,
                "chunk_count": document.chunk_count
            }).execute()
            if chunks:
                self.client.table(self.CHUNKS_TABLE).insert(
                    [_chunk_record(c, document.created_at) for c in chunks]
                ).execute()
        except Exception as e:
            error_msg = f"Failed to store document {document.id}: {str(e)}"
            logger.error(error_msg)
            self._discard_document(document.id)
            raise RuntimeError(error_msg)
        logger.info(f"Stored document {document.id} with {len(chunks)} chunks")

    def _discard_document(self, doc_id: str) -> None:
        """Remove a document row whose chunks could not be stored."""
        try:
            self.client.table(self.DOCUMENTS_TABLE).delete().eq("id", doc_id).execute()
        except Exception as e:
            logger.error(f"Failed to remove partial document {doc_id}: {str(e)}")

    def delete_document(self, doc_id: str) -> bool:
        """
        Remove a document record and its chunks; the uploaded file is kept.

        Returns:
            False if no such document exists
        """
        if self.get_document(doc_id) is None:
            return False
        try:
            self.client.table(self.CHUNKS_TABLE).delete().eq("doc_id", doc_id).execute()
            self.client.table(self.DOCUMENTS_TABLE).delete().eq("id", doc_id).execute()
        except Exception as e:
            error_msg = f"Failed to delete document {doc_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        logger.info(f"Deleted document {doc_id}")
        return True

    def corpus_missing_embeddings(self) -> List[CorpusEntry]:
        return [e for e in self.list_corpus() if e.embedding is None and e.text.strip()]

    def set_corpus_embeddings(self, vectors: Dict[str, List[float]]) -> None:
        try:
            for entry_id, vector in vectors.items():
                self.client.table(self.CORPUS_TABLE).update(
                    {"embedding": vector}
                ).eq("id", entry_id).execute()
        except Exception as e:
            error_msg = f"Failed to store corpus embeddings: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        logger.info(f"Stored embeddings for {len(vectors)} corpus entries")

    # Item lookup for the reader view

    def lookup_item(self, hit_id: str) -> Optional[ItemDetail]:
        """
        Resolve a search hit id to its full text and, for chunks, a locator.

        Returns:
            ItemDetail, or None when the id is malformed or no longer exists
        """
        origin = parse_candidate_id(hit_id)
        if origin is None:
            return None

        try:
            if origin[0] == "corpus":
                response = self.client.table(self.CORPUS_TABLE).select("*").eq("id", origin[1]).execute()
                if not response.data:
                    return None
                entry = _corpus_from_row(response.data[0])
                return ItemDetail(id=hit_id, title=entry.title, text=entry.text, source=entry.source)

            _, doc_id, page, seq = origin
            response = (
                self.client.table(self.CHUNKS_TABLE).select("*")
                .eq("doc_id", doc_id).eq("page", page).eq("seq", seq)
                .execute()
            )
        except Exception as e:
            error_msg = f"Failed to look up item {hit_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        if not response.data:
            return None
        chunk = _chunk_from_row(response.data[0])
        document = self.get_document(doc_id)
        doc_title = (document.title if document else None) or chunk.heading or FALLBACK_DOCUMENT_TITLE
        return ItemDetail(
            id=hit_id,
            title=chunk.heading or doc_title,
            text=chunk.text,
            source=chunk_source(doc_title, page),
            document_id=doc_id,
            filename=document.filename if document else None,
            page=page
        )

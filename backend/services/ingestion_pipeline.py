"""Document ingestion and corpus embedding warm-up."""
import logging
import os
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from config import MAX_PAGES
from models.capability import Success
from models.corpus import DocChunk, IngestedDocument
from services.chunking_engine import ChunkingEngine
from services.document_loader import DocumentLoader
from services.embedding_model import EmbeddingProvider, embed_safely
from services.knowledge_store import KnowledgeStore

logger = logging.getLogger(__name__)

EMBED_BATCH_SIZE = 32


class DocumentTooLarge(ValueError):
    """The document exceeds the configured page limit."""


class IngestionPipeline:
    """Turns uploaded PDFs into stored, optionally embedded, page chunks."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedding_provider: Optional[EmbeddingProvider] = None,
        loader: Optional[DocumentLoader] = None,
        chunker: Optional[ChunkingEngine] = None,
        max_pages: int = MAX_PAGES
    ):
        self.store = store
        self.embedding_provider = embedding_provider
        self.loader = loader or DocumentLoader()
        self.chunker = chunker or ChunkingEngine()
        self.max_pages = max_pages

    def ingest_pdf(
        self,
        path: str,
        original_name: Optional[str] = None,
        subject: Optional[str] = None,
        plane: Optional[str] = None
    ) -> IngestedDocument:
        """
        Load, chunk, embed and store one PDF.

        Args:
            path: Stored file path
            original_name: Uploaded filename, used for the document title
            subject: Optional subject tag for every chunk
            plane: Optional plane tag for every chunk

        Returns:
            The stored document record

        Raises:
            DocumentTooLarge: If the PDF has more than `max_pages` pages
            RuntimeError: If the PDF cannot be read or storage fails
        """
        document = self.loader.load_pdf(path)
        if document.total_pages > self.max_pages:
            raise DocumentTooLarge(f"Max {self.max_pages} pages")

        doc_id = f"doc_{uuid.uuid4().hex[:12]}"
        chunks = self.chunker.chunk_document(doc_id, document, subject=subject, plane=plane)
        chunks = self._embed_chunks(chunks)

        record = IngestedDocument(
            id=doc_id,
            title=Path(original_name).stem if original_name else document.title,
            filename=os.path.basename(path),
            pages=document.total_pages,
            created_at=datetime.now(timezone.utc).isoformat()
        )
        self.store.add_document(record, chunks)
        logger.info(f"Ingested {record.title!r} as {doc_id}: {record.pages} pages, {len(chunks)} chunks")
        return record

    def _embed_chunks(self, chunks: List[DocChunk]) -> List[DocChunk]:
        """Attach vectors when a provider is configured; on failure store chunks without them."""
        if self.embedding_provider is None or not chunks:
            return chunks

        embedded: List[DocChunk] = []
        for start in range(0, len(chunks), EMBED_BATCH_SIZE):
            batch = chunks[start:start + EMBED_BATCH_SIZE]
            result = embed_safely(self.embedding_provider, [c.text for c in batch])
            if not isinstance(result, Success):
                logger.warning(f"Storing chunks without embeddings: {result.reason}")
                return chunks
            embedded.extend(replace(c, embedding=v) for c, v in zip(batch, result.value))
        return embedded

    def ensure_corpus_embeddings(self) -> int:
        """
        Embed corpus entries that have no stored vector yet.

        Returns:
            Number of entries embedded
        """
        if self.embedding_provider is None:
            return 0
        try:
            missing = self.store.corpus_missing_embeddings()
        except RuntimeError as e:
            logger.error(f"Skipping corpus embedding warm-up: {e}")
            return 0
        if not missing:
            return 0

        done = 0
        for start in range(0, len(missing), EMBED_BATCH_SIZE):
            batch = missing[start:start + EMBED_BATCH_SIZE]
            result = embed_safely(self.embedding_provider, [e.text for e in batch])
            if not isinstance(result, Success):
                logger.warning(f"Corpus embedding warm-up stopped: {result.reason}")
                break
            try:
                self.store.set_corpus_embeddings({e.id: v for e, v in zip(batch, result.value)})
            except RuntimeError as e:
                logger.error(f"Corpus embedding warm-up stopped: {e}")
                break
            done += len(batch)

        logger.info(f"Embedded {done}/{len(missing)} corpus entries")
        return done

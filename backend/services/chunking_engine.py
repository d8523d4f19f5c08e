"""Splits page text into retrievable chunks."""
import logging
from typing import List, Optional
import tiktoken

from config import CHUNK_MIN_CHARS, CHUNK_MAX_CHARS
from models.corpus import DocChunk
from models.document import Document

logger = logging.getLogger(__name__)


class ChunkingEngine:
    """Character-bounded chunking that prefers sentence boundaries."""

    def __init__(
        self,
        min_chars: int = CHUNK_MIN_CHARS,
        max_chars: int = CHUNK_MAX_CHARS,
        encoding_name: str = "cl100k_base"
    ):
        """
        Initialize ChunkingEngine.

        Args:
            min_chars: A sentence break is only used past this offset
            max_chars: Hard upper bound on chunk length
            encoding_name: tiktoken encoding used for chunk token counts
        """
        if min_chars >= max_chars:
            raise ValueError("min_chars must be smaller than max_chars")
        self.min_chars = min_chars
        self.max_chars = max_chars
        self.encoder = tiktoken.get_encoding(encoding_name)

    def chunk_page(self, text: str) -> List[str]:
        """
        Split one page of text.

        Each piece is at most `max_chars`; when a ". " occurs after
        `min_chars` within the window, the piece ends at the last one.
        """
        t = text.strip()
        if not t:
            return []
        if len(t) <= self.max_chars:
            return [t]

        pieces = []
        i = 0
        while i < len(t):
            window = t[i:i + self.max_chars]
            last_dot = window.rfind(". ")
            if last_dot > self.min_chars:
                window = window[:last_dot + 1]
            piece = window.strip()
            if piece:
                pieces.append(piece)
            i += len(window)
        return pieces

    def chunk_document(
        self,
        doc_id: str,
        document: Document,
        subject: Optional[str] = None,
        plane: Optional[str] = None
    ) -> List[DocChunk]:
        """
        Chunk every page, numbering pieces within each page from 0.

        Args:
            doc_id: Owning document id
            document: Loaded PDF
            subject: Optional subject tag applied to every chunk
            plane: Optional plane tag applied to every chunk
        """
        chunks = []
        for page in document.pages:
            for seq, piece in enumerate(self.chunk_page(page.text)):
                chunks.append(DocChunk(
                    doc_id=doc_id,
                    page=page.page_number,
                    seq=seq,
                    text=piece,
                    heading=page.heading,
                    subject=subject,
                    plane=plane,
                    token_count=len(self.encoder.encode(piece))
                ))
        logger.info(f"Created {len(chunks)} chunks from {document.total_pages} pages of {document.title}")
        return chunks

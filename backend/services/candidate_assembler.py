"""Merges curated corpus entries and ingested chunks into one candidate list."""
import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union

from models.candidate import Candidate
from models.corpus import CorpusEntry, DocChunk, IngestedDocument

logger = logging.getLogger(__name__)

CORPUS_PREFIX = "corpus-"
CHUNK_PREFIX = "chunk-"
FALLBACK_DOCUMENT_TITLE = "Ingested Document"
PAGE_MARKER = "· p."


def corpus_candidate_id(entry_id: str) -> str:
    return f"{CORPUS_PREFIX}{entry_id}"


def chunk_candidate_id(doc_id: str, page: int, seq: int) -> str:
    return f"{CHUNK_PREFIX}{doc_id}-{page}-{seq}"


def parse_candidate_id(candidate_id: str) -> Optional[Union[Tuple[str, str], Tuple[str, str, int, int]]]:
    """
    Map a candidate id back to its origin.

    Returns:
        ("corpus", entry_id), ("chunk", doc_id, page, seq), or None if the id
        follows neither scheme
    """
    if candidate_id.startswith(CORPUS_PREFIX):
        entry_id = candidate_id[len(CORPUS_PREFIX):]
        return ("corpus", entry_id) if entry_id else None
    if candidate_id.startswith(CHUNK_PREFIX):
        # doc ids may contain hyphens; page and seq never do
        parts = candidate_id[len(CHUNK_PREFIX):].rsplit("-", 2)
        if len(parts) != 3 or not parts[0]:
            return None
        doc_id, page, seq = parts
        if not (page.isdigit() and seq.isdigit()):
            return None
        return ("chunk", doc_id, int(page), int(seq))
    return None


def chunk_source(document_title: str, page: int) -> str:
    return f"{document_title} {PAGE_MARKER}{page}"


def assemble_candidates(
    corpus: Iterable[CorpusEntry],
    chunks: Iterable[DocChunk],
    documents: Iterable[IngestedDocument]
) -> List[Candidate]:
    """
    Project corpus entries and document chunks into the common shape.

    Corpus entries come first, then chunks, each in store order.

    Args:
        corpus: Curated reference passages
        chunks: Ingested document chunks
        documents: Document records, used for chunk titles and citations

    Returns:
        Unified candidate list with namespaced ids
    """
    candidates: List[Candidate] = []
    for entry in corpus:
        candidates.append(Candidate(
            id=corpus_candidate_id(entry.id),
            title=entry.title,
            text=entry.text,
            source=entry.source,
            subject=entry.subject,
            plane=entry.plane,
            embedding=entry.embedding
        ))

    title_by_doc: Dict[str, str] = {d.id: d.title for d in documents}
    for chunk in chunks:
        doc_title = title_by_doc.get(chunk.doc_id) or chunk.heading or FALLBACK_DOCUMENT_TITLE
        candidates.append(Candidate(
            id=chunk_candidate_id(chunk.doc_id, chunk.page, chunk.seq),
            title=chunk.heading or doc_title,
            text=chunk.text,
            source=chunk_source(doc_title, chunk.page),
            subject=chunk.subject,
            plane=chunk.plane,
            embedding=chunk.embedding
        ))
    return candidates


def _passes(tag: Optional[str], wanted: Optional[str]) -> bool:
    return not wanted or not tag or tag == wanted


def apply_filters(
    candidates: List[Candidate],
    subject: Optional[str] = None,
    plane: Optional[str] = None
) -> List[Candidate]:
    """Exclude candidates tagged with a different subject or plane; untagged ones pass."""
    filtered = [
        c for c in candidates
        if _passes(c.subject, subject) and _passes(c.plane, plane)
    ]
    if len(filtered) != len(candidates):
        logger.debug(
            f"Filters subject={subject!r} plane={plane!r} kept "
            f"{len(filtered)}/{len(candidates)} candidates"
        )
    return filtered

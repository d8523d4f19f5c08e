"""Main entry point for the Album Guidance search API."""
import logging
import os
import re
import time
from typing import List, Optional
from fastapi import FastAPI, File, Form, HTTPException, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import (
    PORT,
    LOG_LEVEL,
    LOG_FORMAT,
    CORS_ORIGINS,
    EMBEDDING_PROVIDER,
    LLM_PROVIDER,
    MAX_UPLOAD_MB,
    UPLOAD_DIR,
    RetrievalSettings,
)
from logger import setup_logging
from models.api import (
    SearchRequest,
    SearchHitOut,
    ItemDetailOut,
    TrainerQueueItemOut,
    TrainerReplyIn,
    TrainerReplyOut,
    DocumentOut,
    ChunkOut,
)
from services.embedding_model import create_embedding_provider
from services.llm_client import create_llm_client
from services.knowledge_store import KnowledgeStore
from services.trainer_queue import TrainerQueue
from services.retrieval_engine import RetrievalEngine, InvalidSearchRequest
from services.ingestion_pipeline import IngestionPipeline, DocumentTooLarge

# Initialize logging
logger = logging.getLogger(__name__)

LOW_CONFIDENCE_HEADER = "X-Low-Confidence"

# Initialize FastAPI app
app = FastAPI(
    title="Album Guidance Search",
    description="Hybrid retrieval over Montessori album excerpts with trainer escalation",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded PDFs, opened by the reader view at a page anchor
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")

# Initialize services (will be done on startup)
knowledge_store: KnowledgeStore = None
trainer_queue: TrainerQueue = None
retrieval_engine: RetrievalEngine = None
ingestion_pipeline: IngestionPipeline = None


@app.on_event("startup")
async def startup_event():
    """Resolve providers once and initialize services."""
    global knowledge_store, trainer_queue, retrieval_engine, ingestion_pipeline

    if LOG_FORMAT == "json":
        setup_logging(LOG_LEVEL)

    logger.info("Initializing Album Guidance search services...")

    try:
        os.makedirs(UPLOAD_DIR, exist_ok=True)

        embedding_provider = create_embedding_provider(EMBEDDING_PROVIDER)
        llm_client = create_llm_client(LLM_PROVIDER)

        knowledge_store = KnowledgeStore()
        trainer_queue = TrainerQueue(client=knowledge_store.client)

        retrieval_engine = RetrievalEngine(
            store=knowledge_store,
            embedding_provider=embedding_provider,
            llm_client=llm_client,
            settings=RetrievalSettings(),
            escalation_queue=trainer_queue
        )

        ingestion_pipeline = IngestionPipeline(knowledge_store, embedding_provider)
        ingestion_pipeline.ensure_corpus_embeddings()

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Album Guidance Search API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "album-guidance-search",
        "version": "1.0.0"
    }


@app.post("/search", response_model=List[SearchHitOut])
def search_endpoint(request: SearchRequest, response: Response) -> List[SearchHitOut]:
    """
    Hybrid search over the reference corpus and ingested albums.

    The hit list is the body; the confidence verdict travels in the
    X-Low-Confidence header. Low-confidence queries are escalated to the
    trainer queue by the engine.

    Raises:
        HTTPException: 400 for an empty query, 500 for storage failures
    """
    try:
        result = retrieval_engine.search(
            query=request.q or "",
            subject=request.subject,
            plane=request.plane,
            result_count=request.result_count
        )
    except InvalidSearchRequest as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error during search: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={"error": "search_failed", "detail": str(e)}
        )

    response.headers[LOW_CONFIDENCE_HEADER] = "true" if result.low_confidence else "false"
    return [SearchHitOut(**vars(hit)) for hit in result.hits]


@app.get("/items/{hit_id}", response_model=ItemDetailOut)
def item_endpoint(hit_id: str) -> ItemDetailOut:
    """Full text of a search hit, plus the file locator for document chunks."""
    try:
        item = knowledge_store.lookup_item(hit_id)
    except Exception as e:
        logger.error(f"Item lookup failed for {hit_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={"error": "lookup_failed", "detail": str(e)}
        )
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")

    file_url = None
    if item.filename:
        file_url = f"/uploads/{item.filename}#page={item.page}"
    return ItemDetailOut(**vars(item), file_url=file_url)


@app.get("/trainer/queue", response_model=List[TrainerQueueItemOut])
def trainer_queue_endpoint() -> List[TrainerQueueItemOut]:
    try:
        items = trainer_queue.list_queue()
    except Exception as e:
        logger.error(f"Failed to read trainer queue: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={"error": "queue_failed", "detail": str(e)}
        )
    return [TrainerQueueItemOut(**vars(item)) for item in items]


@app.post("/trainer/replies", response_model=TrainerReplyOut, status_code=201)
def trainer_reply_endpoint(request: TrainerReplyIn) -> TrainerReplyOut:
    try:
        reply = trainer_queue.add_reply(request.text or "", queue_id=request.queue_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TrainerReplyOut(**vars(reply))


@app.post("/documents", response_model=DocumentOut, status_code=201)
def upload_document_endpoint(
    file: UploadFile = File(...),
    subject: Optional[str] = Form(None),
    plane: Optional[str] = Form(None)
) -> DocumentOut:
    """
    Ingest an album PDF.

    Raises:
        HTTPException: 415 for non-PDF uploads, 413 when over the size or
        page limit, 500 when ingestion fails
    """
    filename = file.filename or "upload.pdf"
    if file.content_type != "application/pdf" and not filename.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=415,
            detail={"error": "unsupported_media_type", "detail": "PDF required"}
        )

    content = file.file.read()
    if len(content) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail={"error": "too_large", "detail": f"Max {MAX_UPLOAD_MB} MB"}
        )

    os.makedirs(UPLOAD_DIR, exist_ok=True)
    stored_name = f"{int(time.time() * 1000)}_{re.sub(r'[^A-Za-z0-9._-]+', '_', os.path.basename(filename))}"
    path = os.path.join(UPLOAD_DIR, stored_name)
    with open(path, "wb") as out:
        out.write(content)

    try:
        document = ingestion_pipeline.ingest_pdf(path, original_name=filename, subject=subject, plane=plane)
    except DocumentTooLarge as e:
        os.remove(path)
        raise HTTPException(status_code=413, detail={"error": "too_large", "detail": str(e)})
    except Exception as e:
        logger.error(f"Ingestion failed for {filename}: {e}", exc_info=True)
        os.remove(path)
        raise HTTPException(status_code=500, detail={"error": "ingest_failed", "detail": str(e)})

    return DocumentOut(**vars(document))


@app.get("/documents", response_model=List[DocumentOut])
def list_documents_endpoint() -> List[DocumentOut]:
    return [DocumentOut(**vars(d)) for d in knowledge_store.list_documents()]


@app.get("/documents/chunks", response_model=List[ChunkOut])
def recent_chunks_endpoint(limit: int = 5) -> List[ChunkOut]:
    return [
        ChunkOut(
            doc_id=c.doc_id,
            page=c.page,
            seq=c.seq,
            heading=c.heading,
            text=c.text,
            subject=c.subject,
            plane=c.plane
        )
        for c in knowledge_store.recent_chunks(limit)
    ]


@app.delete("/documents/{doc_id}")
def delete_document_endpoint(doc_id: str):
    """Remove a document's record and chunks; the uploaded file is kept for audit."""
    if not knowledge_store.delete_document(doc_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Album Guidance Search API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)

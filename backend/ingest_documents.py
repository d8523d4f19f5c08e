"""
Bulk Album Ingestion Script.

This script:
1. Embeds any corpus entries still missing vectors
2. Copies every PDF of a directory into the upload directory
3. Chunks each album page by page
4. Embeds chunks with the configured provider (if any)
5. Stores documents and chunks in Supabase

Usage:
    python ingest_documents.py path/to/albums --subject Math --plane 6-12
"""
import sys
import argparse
import logging
import os
import shutil
import time
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.embedding_model import create_embedding_provider
from services.knowledge_store import KnowledgeStore
from services.ingestion_pipeline import IngestionPipeline, DocumentTooLarge
from config import EMBEDDING_PROVIDER, UPLOAD_DIR

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a directory of album PDFs")
    parser.add_argument("directory", help="Directory containing PDF files")
    parser.add_argument("--subject", default=None, help="Subject tag for every chunk")
    parser.add_argument("--plane", default=None, help="Plane tag for every chunk")
    parser.add_argument(
        "--skip-corpus",
        action="store_true",
        help="Do not embed corpus entries missing vectors"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main ingestion process; returns the exit status (1 if any file failed)."""
    args = parse_args(argv)

    if not os.path.isdir(args.directory):
        logger.error(f"Not a directory: {args.directory}")
        return 1

    logger.info("=" * 60)
    logger.info("Starting album ingestion")
    logger.info("=" * 60)

    store = KnowledgeStore()
    pipeline = IngestionPipeline(store, create_embedding_provider(EMBEDDING_PROVIDER))

    if not args.skip_corpus:
        pipeline.ensure_corpus_embeddings()

    os.makedirs(UPLOAD_DIR, exist_ok=True)
    pdf_files = sorted(f for f in os.listdir(args.directory) if f.lower().endswith(".pdf"))
    logger.info(f"Found {len(pdf_files)} PDF files in {args.directory}")

    failures = 0
    for filename in pdf_files:
        stored = os.path.join(UPLOAD_DIR, f"{int(time.time() * 1000)}_{filename.replace(' ', '_')}")
        shutil.copy2(os.path.join(args.directory, filename), stored)
        try:
            document = pipeline.ingest_pdf(stored, original_name=filename, subject=args.subject, plane=args.plane)
            logger.info(f"✓ {filename}: {document.pages} pages, {document.chunk_count} chunks")
        except (DocumentTooLarge, RuntimeError) as e:
            failures += 1
            os.remove(stored)
            logger.error(f"✗ {filename}: {e}")

    logger.info(f"Ingestion complete: {len(pdf_files) - failures} succeeded, {failures} failed")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())

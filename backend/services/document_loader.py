"""PDF loading for album ingestion."""
import logging
import re
from typing import Optional
import fitz  # PyMuPDF

from models.document import Document, Page

logger = logging.getLogger(__name__)

HEADING_MIN_FONT_SIZE = 12.0


class DocumentLoader:
    """Loads PDFs page by page with a best-effort heading per page."""

    def load_pdf(self, filepath: str) -> Document:
        """
        Extract whitespace-normalized text and a heading for each page.

        Raises:
            RuntimeError: If the file cannot be opened or read as a PDF
        """
        try:
            pdf_document = fitz.open(filepath)
        except Exception as e:
            raise RuntimeError(f"Failed to open PDF {filepath}: {str(e)}") from e

        pages = []
        try:
            for page_num in range(len(pdf_document)):
                page = pdf_document[page_num]
                text = re.sub(r"\s+", " ", page.get_text()).strip()
                pages.append(Page(
                    page_number=page_num + 1,
                    text=text,
                    heading=self._page_heading(page)
                ))
        finally:
            pdf_document.close()

        logger.info(f"Loaded {filepath}: {len(pages)} pages")
        return Document(source_path=filepath, pages=pages)

    def _page_heading(self, page) -> Optional[str]:
        """Largest-font span above body size on the page, if any."""
        best_text, best_size = None, HEADING_MIN_FONT_SIZE
        try:
            blocks = page.get_text("dict")["blocks"]
        except Exception as e:
            logger.debug(f"Could not read layout for heading detection: {e}")
            return None

        for block in blocks:
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "").strip()
                    size = span.get("size", 0)
                    if size > best_size and len(text) > 2:
                        best_text, best_size = text, size
        return best_text

"""Loaded PDF models handed from the document loader to the chunker."""
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass
class Page:
    """Text of one PDF page plus the most prominent heading found on it."""
    page_number: int  # 1-based
    text: str
    heading: Optional[str] = None


@dataclass
class Document:
    """A PDF read from disk, page by page."""
    source_path: str
    pages: List[Page]

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @property
    def title(self) -> str:
        """Filename without directory or .pdf suffix."""
        return Path(self.source_path).stem

"""Page chunking for vector store ingestion."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.storage import DocumentationPage

logger = logging.getLogger(__name__)


@dataclass
class TextChunk:
    """One window of a page's text with its position and vector metadata."""

    text: str
    start: int
    end: int
    metadata: Dict[str, Any]

    @property
    def chunk_number(self) -> int:
        return self.metadata["chunk"]


def split_text(text: str, chunk_size: int, chunk_overlap: int) -> List[tuple[int, int]]:
    """Return ``(start, end)`` windows of ``chunk_size`` stepping by ``chunk_size - chunk_overlap``.

    A text no longer than ``chunk_size`` is one window; the last window may be
    shorter. The loop stops as soon as the next start reaches the end of the
    text, so every window is emitted exactly once.
    """
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    length = len(text)
    if length <= chunk_size:
        return [(0, length)]

    step = chunk_size - chunk_overlap
    windows = []
    position = 0
    while position < length:
        end = min(position + chunk_size, length)
        windows.append((position, end))
        position += step
        if position >= length:
            break
    return windows


class DocumentProcessor:
    """Turns documentation pages into embedding chunks."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = {
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            **(config or {}),
        }

    @staticmethod
    def page_text(page: DocumentationPage) -> str:
        return f"# {page.title}\n\n{page.content}"

    def chunk_page(self, page: DocumentationPage) -> List[TextChunk]:
        """Split a page into chunks carrying page id, url, title and 1-based chunk numbers."""
        text = self.page_text(page)
        windows = split_text(text, self.config["chunk_size"], self.config["chunk_overlap"])

        chunks = []
        for index, (start, end) in enumerate(windows):
            chunks.append(
                TextChunk(
                    text=text[start:end],
                    start=start,
                    end=end,
                    metadata={
                        "page_id": page.id,
                        "url": page.url,
                        "title": page.title,
                        "chunk": index + 1,
                        "total_chunks": len(windows),
                    },
                )
            )
        logger.debug(f"Split page {page.id} ({len(text)} chars) into {len(chunks)} chunks")
        return chunks

    @staticmethod
    def vector_id(page_id: str, chunk_number: int) -> str:
        return f"{page_id}_chunk{chunk_number}"

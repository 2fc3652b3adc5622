"""Text chunking for RAG."""

import re
from dataclasses import dataclass
from typing import List

from ..errors import ChunkingError
from ..logging import get_logger

logger = get_logger(__name__)

SENTENCE_TERMINATORS = (".", "!", "?")


@dataclass
class TextChunk:
    """A text segment with its position in the source text."""

    text: str
    chunk_index: int
    start_char: int = 0
    end_char: int = 0


class TextChunker:
    """Sliding-window chunking that cuts at natural boundaries.

    Boundary preference: sentence end, then paragraph break, then word
    boundary, then a hard cut at max_chunk_size.
    """

    def __init__(
        self,
        max_chunk_size: int = 1000,
        overlap: int = 200,
        min_chunk_size: int = 100,
    ):
        if max_chunk_size <= 0:
            raise ChunkingError("max_chunk_size must be positive")
        if overlap < 0 or min_chunk_size < 0:
            raise ChunkingError("overlap and min_chunk_size must not be negative")

        self.max_chunk_size = max_chunk_size
        self.overlap = overlap
        self.min_chunk_size = min_chunk_size

    @staticmethod
    def clean_text(text: str) -> str:
        """Normalize line endings and squeeze blank-line runs."""
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = re.sub(r'\n{3,}', '\n\n', text)
        return text.strip()

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into ordered, overlapping chunks."""
        if not text or not text.strip():
            return []

        text = self.clean_text(text)
        length = len(text)

        if length <= self.max_chunk_size:
            return [TextChunk(text=text, chunk_index=0, start_char=0, end_char=length)]

        chunks = []
        start = 0

        while start < length:
            end = min(start + self.max_chunk_size, length)
            if end < length:
                end = self._find_boundary(text, start, end)

            piece = text[start:end].strip()
            if len(piece) >= self.min_chunk_size:
                chunks.append(TextChunk(
                    text=piece,
                    chunk_index=len(chunks),
                    start_char=start,
                    end_char=end,
                ))

            if end >= length:
                break
            # max() keeps the window moving even when overlap >= max_chunk_size
            start = max(start + 1, end - self.overlap)

        logger.debug(f"Created {len(chunks)} chunks from {length} chars")
        return chunks

    def _find_boundary(self, text: str, start: int, end: int) -> int:
        """Pick the cut position for the window [start, end)."""
        floor = start + self.min_chunk_size

        sentence_end = max(text.rfind(t, start, end) for t in SENTENCE_TERMINATORS)
        if sentence_end > floor:
            return sentence_end + 1

        paragraph = text.rfind("\n\n", start, end)
        if paragraph > floor:
            return paragraph

        space = text.rfind(" ", start, end)
        if space > floor:
            return space

        return end

"""Context assembly and citation records for grounded answers."""

from dataclasses import dataclass
from typing import List, Sequence

from .vector_store import SearchResult

SNIPPET_LENGTH = 200
TRUNCATION_MARKER = "..."
UNKNOWN_TITLE = "Unknown Document"


@dataclass
class Citation:
    """A numbered source backing an answer.

    `index` matches the `Source n` label the chunk had in the context block.
    """

    index: int
    chunk_id: str
    document_id: str
    document_title: str
    snippet: str

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "chunk_id": self.chunk_id,
            "document_id": self.document_id,
            "document_title": self.document_title,
            "snippet": self.snippet,
        }


def make_snippet(text: str, length: int = SNIPPET_LENGTH) -> str:
    """Truncate text to a preview, marking the cut."""
    if len(text) <= length:
        return text
    return text[:length] + TRUNCATION_MARKER


def build_context(chunks: Sequence[SearchResult]) -> str:
    """Concatenate chunks under numbered `Source n` headers, in order."""
    parts = []
    for i, chunk in enumerate(chunks, start=1):
        title = chunk.document_title or UNKNOWN_TITLE
        parts.append(f"# Source {i} ({title})\n{chunk.text}")
    return "\n\n".join(parts)


def build_citations(
    chunks: Sequence[SearchResult],
    snippet_length: int = SNIPPET_LENGTH,
) -> List[Citation]:
    """One citation per context chunk, numbered like build_context."""
    return [
        Citation(
            index=i,
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            document_title=chunk.document_title or UNKNOWN_TITLE,
            snippet=make_snippet(chunk.text, snippet_length),
        )
        for i, chunk in enumerate(chunks, start=1)
    ]

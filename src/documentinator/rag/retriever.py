"""Document retriever for RAG."""

import os
from dataclasses import dataclass
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from ..database import DocumentRepository
from ..errors import RetrievalError
from ..logging import get_logger
from .embeddings import OllamaEmbeddings
from .vector_store import ChromaVectorStore, SearchResult

logger = get_logger(__name__)

METHOD_SIMILARITY = "similarity"
METHOD_FALLBACK = "fallback_unranked"


@dataclass
class RetrievalResult:
    """Result of document retrieval."""

    chunks: List[SearchResult]
    method: str = METHOD_SIMILARITY
    degraded: bool = False

    @property
    def has_results(self) -> bool:
        return bool(self.chunks)


class DocumentRetriever:
    """Retrieves relevant document chunks for a question."""

    def __init__(
        self,
        embeddings: OllamaEmbeddings,
        vector_store: ChromaVectorStore,
        repository: DocumentRepository,
        top_k: int = None,
    ):
        self.embeddings = embeddings
        self.vector_store = vector_store
        self.repository = repository
        self.top_k = top_k or int(os.getenv("RAG_TOP_K", "6"))

    def retrieve(
        self,
        question: str,
        workspace_id: str,
        top_k: int = None,
    ) -> RetrievalResult:
        """Retrieve the chunks most similar to a question.

        If similarity search is unavailable, falls back to the first chunks
        of the workspace in storage order. Those results are not ranked and
        are flagged degraded.

        Raises:
            EmbeddingError: If the question cannot be embedded
            RetrievalError: If both search paths fail
        """
        limit = top_k or self.top_k
        query_embedding = self.embeddings.embed(question)

        try:
            chunks = self.vector_store.search(workspace_id, query_embedding, limit=limit)
            logger.debug(f"Similarity search returned {len(chunks)} chunks for {workspace_id}")
            return RetrievalResult(chunks=chunks)
        except RetrievalError as e:
            logger.warning(f"Similarity search unavailable, using unranked fallback: {e}")

        return RetrievalResult(
            chunks=self._fallback(workspace_id, limit),
            method=METHOD_FALLBACK,
            degraded=True,
        )

    def _fallback(self, workspace_id: str, limit: int) -> List[SearchResult]:
        try:
            rows = self.repository.get_workspace_chunks(workspace_id, limit)
        except SQLAlchemyError as e:
            raise RetrievalError(f"Fallback retrieval failed: {e}") from e

        return [
            SearchResult(
                chunk_id=chunk.id,
                document_id=chunk.document_id,
                document_title=title or "Unknown Document",
                chunk_index=chunk.chunk_index,
                text=chunk.text,
            )
            for chunk, title in rows
        ]

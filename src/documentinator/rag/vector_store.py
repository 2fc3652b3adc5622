"""ChromaDB similarity index over document chunks."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import chromadb
from chromadb.config import Settings

from ..errors import RetrievalError
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass
class SearchResult:
    """A chunk returned by retrieval."""

    chunk_id: str
    document_id: str
    document_title: str
    chunk_index: int
    text: str
    similarity: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ChromaVectorStore:
    """ChromaDB vector store for document chunks.

    Chunk IDs match the relational store's chunk IDs.
    """

    DEFAULT_COLLECTION = "documentinator"

    def __init__(
        self,
        persist_directory: str = None,
        collection_name: str = None,
        client=None,
    ):
        self.persist_directory = persist_directory or os.getenv(
            "CHROMADB_PATH", "/data/chromadb"
        )
        self.collection_name = collection_name or self.DEFAULT_COLLECTION

        self.client = client or chromadb.PersistentClient(
            path=self.persist_directory,
            settings=Settings(anonymized_telemetry=False),
        )

        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add_chunk(
        self,
        chunk_id: str,
        document_id: str,
        document_title: str,
        workspace_id: str,
        chunk_index: int,
        text: str,
        embedding: List[float],
    ):
        """Index one chunk."""
        self.collection.add(
            ids=[chunk_id],
            embeddings=[embedding],
            documents=[text],
            metadatas=[{
                "document_id": document_id,
                "document_title": document_title or "",
                "workspace_id": workspace_id,
                "chunk_index": chunk_index,
            }],
        )

    def search(
        self,
        workspace_id: str,
        query_embedding: List[float],
        limit: int = 6,
    ) -> List[SearchResult]:
        """Find the chunks of a workspace closest to a query vector.

        Raises:
            RetrievalError: If the index cannot be queried
        """
        try:
            if self.collection.count() == 0:
                return []
            results = self.collection.query(
                query_embeddings=[query_embedding],
                n_results=limit,
                where={"workspace_id": workspace_id},
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            raise RetrievalError(f"Similarity search failed: {e}") from e

        search_results = []
        if not results or not results.get("ids") or not results["ids"][0]:
            return search_results

        ids = results["ids"][0]
        documents = results["documents"][0]
        metadatas = results["metadatas"][0]
        distances = results["distances"][0]

        for i, chunk_id in enumerate(ids):
            metadata = metadatas[i] or {}
            search_results.append(SearchResult(
                chunk_id=chunk_id,
                document_id=metadata.get("document_id", ""),
                document_title=metadata.get("document_title") or "Unknown Document",
                chunk_index=metadata.get("chunk_index", 0),
                text=documents[i],
                # cosine space: distance = 1 - similarity
                similarity=1.0 - distances[i],
                metadata=metadata,
            ))

        return search_results

    def delete_chunk(self, chunk_id: str):
        """Remove one chunk from the index."""
        self.collection.delete(ids=[chunk_id])

    def delete_document(self, document_id: str) -> int:
        """Remove all chunks of a document from the index."""
        results = self.collection.get(where={"document_id": document_id}, include=[])
        ids = results.get("ids", []) if results else []
        if ids:
            self.collection.delete(ids=ids)
            logger.debug(f"Deleted {len(ids)} indexed chunks for {document_id}")
        return len(ids)

    def count(self, workspace_id: str = None) -> int:
        """Get indexed chunk count."""
        if workspace_id:
            results = self.collection.get(where={"workspace_id": workspace_id}, include=[])
            return len(results.get("ids", []))
        return self.collection.count()

"""Document ingestion pipeline.

extract -> chunk -> embed -> persist, driving the document status machine:
uploading -> processing -> ready | failed.
"""

import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..database import Document, DocumentRepository, DocumentStatus
from ..errors import (
    ChunkingError,
    ClaimLostError,
    EmbeddingError,
    ExtractionError,
    StorageError,
)
from ..logging import get_logger
from ..storage import LocalObjectStore
from .embeddings import OllamaEmbeddings
from .text_chunker import TextChunk, TextChunker
from .text_extractor import TextExtractor, document_extension
from .vector_store import ChromaVectorStore

logger = get_logger(__name__)


class IngestStatus:
    """Outcome of one process_document call."""

    READY = DocumentStatus.READY
    FAILED = DocumentStatus.FAILED
    SKIPPED = "skipped"  # chunks already exist
    ALREADY_PROCESSING = "already_processing"
    ABORTED = "aborted"  # claim lost mid-run
    MISSING = "missing"


@dataclass
class IngestResult:
    """Result of document ingestion."""

    document_id: str
    status: str
    chunk_count: int = 0
    failed_chunks: int = 0
    processing_time: float = 0.0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == IngestStatus.READY


class IngestionCoordinator:
    """Runs the ingestion pipeline for stored documents."""

    def __init__(
        self,
        repository: DocumentRepository,
        storage: LocalObjectStore,
        extractor: TextExtractor,
        chunker: TextChunker,
        embeddings: OllamaEmbeddings,
        vector_store: ChromaVectorStore,
        embed_batch_size: int = None,
    ):
        self.repository = repository
        self.storage = storage
        self.extractor = extractor
        self.chunker = chunker
        self.embeddings = embeddings
        self.vector_store = vector_store
        self.embed_batch_size = max(1, embed_batch_size or int(os.getenv("EMBED_BATCH_SIZE", "8")))

    def process_document(
        self,
        document_id: str,
        force: bool = False,
        progress_callback: Callable[[str], None] = None,
    ) -> IngestResult:
        """Ingest one document.

        Without force, a document that already has chunks is left untouched.
        """
        start_time = time.time()

        def log_progress(msg: str):
            if progress_callback:
                progress_callback(msg)
            logger.debug(msg)

        if not force and self.repository.has_chunks(document_id):
            logger.info(f"Document {document_id} already has chunks, skipping")
            return IngestResult(
                document_id=document_id,
                status=IngestStatus.SKIPPED,
                chunk_count=self.repository.count_chunks(document_id),
            )

        token = self.repository.claim_document(document_id, reprocess=force)
        if token is None:
            doc = self.repository.get_document(document_id)
            if doc is None:
                logger.warning(f"Document {document_id} not found")
                return IngestResult(document_id, IngestStatus.MISSING, error="document not found")
            if doc.status == DocumentStatus.READY:
                logger.info(f"Document {document_id} finished by another request, skipping")
                return IngestResult(
                    document_id=document_id,
                    status=IngestStatus.SKIPPED,
                    chunk_count=self.repository.count_chunks(document_id),
                )
            logger.info(f"Document {document_id} is already being processed, skipping")
            return IngestResult(document_id, IngestStatus.ALREADY_PROCESSING)

        try:
            result = self._run(document_id, token, force, log_progress)
        except ClaimLostError as e:
            logger.warning(f"Stopped processing {document_id}: {e}")
            self._drop_indexed_chunks(document_id)
            result = IngestResult(document_id, IngestStatus.ABORTED, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error processing {document_id}")
            result = self._fail(document_id, token, f"unexpected error: {e}")

        result.processing_time = time.time() - start_time
        log_progress(f"Document {document_id}: {result.status} ({result.processing_time:.1f}s)")
        return result

    def _run(self, document_id: str, token: str, force: bool, log_progress) -> IngestResult:
        doc = self.repository.get_document(document_id)
        if doc is None:
            raise ClaimLostError("document deleted")

        if force:
            removed = self.repository.delete_chunks(document_id)
            self.vector_store.delete_document(document_id)
            if removed:
                log_progress(f"Removed {removed} existing chunks")

        self._check_claim(document_id, token)
        log_progress(f"Extracting {doc.title}...")

        try:
            data = self.storage.get(doc.storage_path)
            extraction = self.extractor.extract(data, document_extension(doc.storage_path, doc.title))
        except (StorageError, ExtractionError) as e:
            logger.warning(f"Extraction failed for {document_id}: {e}")
            return self._fail(document_id, token, str(e))

        log_progress(f"Chunking {len(extraction.text)} chars...")
        try:
            chunks = self.chunker.chunk_text(extraction.text)
        except ChunkingError as e:
            return self._fail(document_id, token, str(e))

        if not chunks:
            return self._fail(document_id, token, "no valid chunks")

        log_progress(f"Embedding {len(chunks)} chunks...")
        stored, failed = self._embed_and_store(doc, token, chunks)

        if stored > 0:
            error = f"{failed} chunks failed to process" if failed else None
            self._finish(document_id, token, DocumentStatus.READY, error)
            logger.info(f"Indexed document {document_id}: {stored} chunks, {failed} failed")
            return IngestResult(
                document_id=document_id,
                status=IngestStatus.READY,
                chunk_count=stored,
                failed_chunks=failed,
                error=error,
            )

        result = self._fail(document_id, token, "all chunks failed")
        result.failed_chunks = failed
        return result

    def _embed_and_store(self, doc: Document, token: str, chunks: List[TextChunk]):
        """Embed chunks batch by batch in index order and persist them.

        Returns:
            (stored count, failed count)
        """
        stored = 0
        failed = 0

        for offset in range(0, len(chunks), self.embed_batch_size):
            self._check_claim(doc.id, token)
            batch = chunks[offset:offset + self.embed_batch_size]

            try:
                vectors = self.embeddings.embed_batch([c.text for c in batch])
            except EmbeddingError as e:
                if len(batch) == 1:
                    logger.warning(f"Chunk {batch[0].chunk_index} of {doc.id} failed to embed: {e}")
                    vectors = [None]
                else:
                    logger.warning(f"Batch at chunk {offset} of {doc.id} failed, embedding individually: {e}")
                    vectors = [self._embed_single(doc.id, c) for c in batch]

            for chunk, vector in zip(batch, vectors):
                # Failed chunks are left out of the index, never given a stand-in vector
                if vector is not None and self._store_chunk(doc, chunk, vector):
                    stored += 1
                else:
                    failed += 1

        return stored, failed

    def _embed_single(self, document_id: str, chunk: TextChunk) -> Optional[List[float]]:
        try:
            return self.embeddings.embed(chunk.text)
        except EmbeddingError as e:
            logger.warning(f"Chunk {chunk.chunk_index} of {document_id} failed to embed: {e}")
            return None

    def _store_chunk(self, doc: Document, chunk: TextChunk, vector: List[float]) -> bool:
        try:
            record = self.repository.add_chunk(doc.id, chunk.chunk_index, chunk.text, vector)
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert chunk {chunk.chunk_index} of {doc.id}: {e}")
            return False

        try:
            self.vector_store.add_chunk(
                chunk_id=record.id,
                document_id=doc.id,
                document_title=doc.title,
                workspace_id=doc.workspace_id,
                chunk_index=chunk.chunk_index,
                text=chunk.text,
                embedding=vector,
            )
        except Exception as e:
            logger.error(f"Failed to index chunk {chunk.chunk_index} of {doc.id}: {e}")
            self.repository.delete_chunk(record.id)
            return False

        return True

    def _check_claim(self, document_id: str, token: str):
        if not self.repository.is_claim_held(document_id, token):
            raise ClaimLostError("document was deleted or reclaimed")

    def _finish(self, document_id: str, token: str, status: str, error: str = None):
        if not self.repository.finish_document(document_id, token, status, error):
            raise ClaimLostError("document was deleted or reclaimed before completion")

    def _drop_indexed_chunks(self, document_id: str):
        """Remove vectors written before the document was deleted."""
        if self.repository.get_document(document_id) is not None:
            return
        try:
            removed = self.vector_store.delete_document(document_id)
        except Exception as e:
            logger.error(f"Failed to remove indexed chunks of deleted document {document_id}: {e}")
            return
        if removed:
            logger.info(f"Removed {removed} indexed chunks of deleted document {document_id}")

    def _fail(self, document_id: str, token: str, error: str) -> IngestResult:
        if not self.repository.finish_document(document_id, token, DocumentStatus.FAILED, error):
            logger.warning(f"Could not record failure for {document_id}: claim no longer held")
        return IngestResult(document_id=document_id, status=IngestStatus.FAILED, error=error)

    # ==================== Batch processing ====================

    def process_documents(
        self,
        document_ids: Iterable[str],
        force: bool = False,
        max_workers: int = None,
        progress_callback: Callable[[str], None] = None,
    ) -> List[IngestResult]:
        """Ingest several documents with a bounded worker pool.

        Chunks within one document are still processed in order by one worker.
        Results come back in input order.
        """
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return []

        workers = max(1, max_workers or int(os.getenv("INGEST_WORKERS", "2")))
        results = {}

        with ThreadPoolExecutor(max_workers=min(workers, len(ids)), thread_name_prefix="ingest") as pool:
            futures = {
                pool.submit(self.process_document, doc_id, force, progress_callback): doc_id
                for doc_id in ids
            }
            for future in as_completed(futures):
                doc_id = futures[future]
                try:
                    results[doc_id] = future.result()
                except Exception as e:
                    logger.exception(f"Processing {doc_id} raised")
                    results[doc_id] = IngestResult(
                        document_id=doc_id,
                        status=IngestStatus.FAILED,
                        error=f"unexpected error: {e}",
                    )

        ready = sum(1 for r in results.values() if r.success)
        chunks = sum(r.chunk_count for r in results.values() if r.success)
        logger.info(f"Processed {ready}/{len(ids)} documents, {chunks} chunks")

        return [results[doc_id] for doc_id in ids]

    def process_pending(
        self,
        workspace_id: str = None,
        include_failed: bool = True,
        max_workers: int = None,
        progress_callback: Callable[[str], None] = None,
    ) -> List[IngestResult]:
        """Ingest every document still uploading (and, optionally, failed)."""
        statuses = [DocumentStatus.UPLOADING]
        if include_failed:
            statuses.append(DocumentStatus.FAILED)

        docs = self.repository.get_documents(workspace_id=workspace_id, statuses=statuses)
        logger.info(f"Found {len(docs)} documents to process")
        return self.process_documents(
            [d.id for d in docs],
            max_workers=max_workers,
            progress_callback=progress_callback,
        )

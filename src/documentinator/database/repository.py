"""Repository for Documentinator database operations."""

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import sessionmaker, Session

from ..logging import get_logger
from .models import Base, Chunk, Document, DocumentStatus, Query

logger = get_logger(__name__)


class DocumentRepository:
    """Relational store for documents, chunks and queries."""

    def __init__(self, engine):
        self.engine = engine
        Base.metadata.create_all(engine)
        self.Session = sessionmaker(bind=engine)

    @contextmanager
    def get_session(self) -> Session:
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ==================== Documents ====================

    def create_document(
        self,
        title: str,
        storage_path: str,
        workspace_id: str,
        owner_id: str,
        document_id: str = None,
    ) -> Document:
        """Create a document record in the uploading state."""
        with self.get_session() as session:
            doc = Document(
                id=document_id or str(uuid.uuid4()),
                title=title,
                storage_path=storage_path,
                workspace_id=workspace_id,
                owner_id=owner_id,
                status=DocumentStatus.UPLOADING,
            )
            session.add(doc)
            session.flush()
            session.expunge(doc)
            return doc

    def get_document(self, document_id: str) -> Optional[Document]:
        """Get a document by ID."""
        with self.get_session() as session:
            doc = session.query(Document).filter_by(id=document_id).first()
            if doc:
                session.expunge(doc)
            return doc

    def get_documents(
        self,
        workspace_id: str = None,
        statuses: Iterable[str] = None,
    ) -> List[Document]:
        """Get documents with optional filters, oldest first."""
        with self.get_session() as session:
            query = session.query(Document)
            if workspace_id:
                query = query.filter_by(workspace_id=workspace_id)
            if statuses:
                query = query.filter(Document.status.in_(list(statuses)))
            docs = query.order_by(Document.created_at.asc()).all()
            for d in docs:
                session.expunge(d)
            return docs

    def get_document_titles(self, document_ids: Iterable[str]) -> Dict[str, str]:
        """Map document IDs to titles."""
        ids = list(set(document_ids))
        if not ids:
            return {}
        with self.get_session() as session:
            rows = session.query(Document.id, Document.title).filter(Document.id.in_(ids)).all()
            return {row.id: row.title for row in rows}

    def update_storage_path(self, document_id: str, storage_path: str) -> bool:
        """Point a document at a new storage path."""
        with self.get_session() as session:
            updated = session.query(Document).filter_by(id=document_id).update(
                {"storage_path": storage_path},
                synchronize_session=False,
            )
            return updated > 0

    def delete_document(self, document_id: str) -> bool:
        """Delete a document record. Chunks cascade."""
        with self.get_session() as session:
            session.query(Chunk).filter_by(document_id=document_id).delete()
            result = session.query(Document).filter_by(id=document_id).delete()
            return result > 0

    # ==================== Status state machine ====================

    def claim_document(self, document_id: str, reprocess: bool = False) -> Optional[str]:
        """Atomically move a document into processing.

        The update only matches rows not already in processing, so two
        concurrent claims cannot both succeed. Ready documents are only
        claimed when reprocess is set.

        Returns:
            Claim token, or None if the document is missing, already
            claimed, or ready without reprocess
        """
        if reprocess:
            claimable = Document.status != DocumentStatus.PROCESSING
        else:
            claimable = Document.status.in_([DocumentStatus.UPLOADING, DocumentStatus.FAILED])

        token = str(uuid.uuid4())
        with self.get_session() as session:
            updated = session.query(Document).filter(
                Document.id == document_id,
                claimable,
            ).update(
                {
                    "status": DocumentStatus.PROCESSING,
                    "claim_token": token,
                    "error": None,
                    "updated_at": datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        if updated != 1:
            return None
        logger.debug(f"Claimed document {document_id}")
        return token

    def is_claim_held(self, document_id: str, token: str) -> bool:
        """Check the document still exists and is held by this claim."""
        with self.get_session() as session:
            count = session.query(Document).filter(
                Document.id == document_id,
                Document.status == DocumentStatus.PROCESSING,
                Document.claim_token == token,
            ).count()
            return count == 1

    def finish_document(
        self,
        document_id: str,
        token: str,
        status: str,
        error: str = None,
    ) -> bool:
        """Release a claim with a terminal status (ready or failed)."""
        if status not in (DocumentStatus.READY, DocumentStatus.FAILED):
            raise ValueError(f"Not a terminal status: {status}")

        now = datetime.now(timezone.utc)
        with self.get_session() as session:
            updated = session.query(Document).filter(
                Document.id == document_id,
                Document.claim_token == token,
            ).update(
                {
                    "status": status,
                    "error": error,
                    "claim_token": None,
                    "updated_at": now,
                    "processed_at": now,
                },
                synchronize_session=False,
            )
            return updated > 0

    # ==================== Chunks ====================

    def has_chunks(self, document_id: str) -> bool:
        """Check whether any chunk exists for a document."""
        with self.get_session() as session:
            return session.query(Chunk.id).filter_by(document_id=document_id).first() is not None

    def count_chunks(self, document_id: str = None) -> int:
        """Count chunks, for one document or overall."""
        with self.get_session() as session:
            query = session.query(func.count(Chunk.id))
            if document_id:
                query = query.filter(Chunk.document_id == document_id)
            return query.scalar() or 0

    def add_chunk(
        self,
        document_id: str,
        chunk_index: int,
        text: str,
        embedding: List[float],
    ) -> Chunk:
        """Insert one embedded chunk."""
        with self.get_session() as session:
            chunk = Chunk(
                document_id=document_id,
                chunk_index=chunk_index,
                text=text,
                embedding=list(embedding),
            )
            session.add(chunk)
            session.flush()
            session.expunge(chunk)
            return chunk

    def delete_chunk(self, chunk_id: str) -> bool:
        """Delete a single chunk."""
        with self.get_session() as session:
            return session.query(Chunk).filter_by(id=chunk_id).delete() > 0

    def delete_chunks(self, document_id: str) -> int:
        """Delete every chunk of a document."""
        with self.get_session() as session:
            return session.query(Chunk).filter_by(document_id=document_id).delete()

    def get_chunks(self, document_id: str) -> List[Chunk]:
        """Get a document's chunks in index order."""
        with self.get_session() as session:
            chunks = (
                session.query(Chunk)
                .filter_by(document_id=document_id)
                .order_by(Chunk.chunk_index.asc())
                .all()
            )
            for c in chunks:
                session.expunge(c)
            return chunks

    def get_workspace_chunks(self, workspace_id: str, limit: int) -> List[Tuple[Chunk, str]]:
        """Get the first chunks of a workspace with their document titles.

        No similarity ordering: documents oldest first, chunks in index order.
        """
        with self.get_session() as session:
            rows = (
                session.query(Chunk, Document.title)
                .join(Document, Chunk.document_id == Document.id)
                .filter(Document.workspace_id == workspace_id)
                .order_by(Document.created_at.asc(), Chunk.chunk_index.asc())
                .limit(limit)
                .all()
            )
            results = []
            for chunk, title in rows:
                session.expunge(chunk)
                results.append((chunk, title))
            return results

    # ==================== Queries ====================

    def record_query(
        self,
        workspace_id: str,
        user_id: str,
        question: str,
        model_used: str = None,
    ) -> Query:
        """Record a question."""
        with self.get_session() as session:
            query = Query(
                workspace_id=workspace_id,
                user_id=user_id,
                question=question,
                model_used=model_used,
            )
            session.add(query)
            session.flush()
            session.expunge(query)
            return query

    def get_query_count(self, workspace_id: str = None) -> int:
        """Count recorded questions."""
        with self.get_session() as session:
            query = session.query(func.count(Query.id))
            if workspace_id:
                query = query.filter(Query.workspace_id == workspace_id)
            return query.scalar() or 0

    # ==================== Status report ====================

    def get_status_summary(self, workspace_id: str = None) -> dict:
        """Summarize processing state: documents per status, chunks, queries."""
        with self.get_session() as session:
            doc_query = session.query(Document.status, func.count(Document.id))
            chunk_query = session.query(func.count(Chunk.id)).join(
                Document, Chunk.document_id == Document.id
            )
            if workspace_id:
                doc_query = doc_query.filter(Document.workspace_id == workspace_id)
                chunk_query = chunk_query.filter(Document.workspace_id == workspace_id)

            by_status = {status: 0 for status in DocumentStatus.ALL}
            for status, count in doc_query.group_by(Document.status).all():
                by_status[status] = count

            total_chunks = chunk_query.scalar() or 0

        return {
            "documents": sum(by_status.values()),
            "by_status": by_status,
            "chunks": total_chunks,
            "queries": self.get_query_count(workspace_id),
        }

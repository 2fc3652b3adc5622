"""Database models for Documentinator."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class DocumentStatus:
    """Document processing states.

    uploading -> processing -> ready | failed; ready and failed re-enter
    processing only on an explicit reprocessing request.
    """

    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    ALL = (UPLOADING, PROCESSING, READY, FAILED)


class Document(Base):
    """Uploaded document and its processing state."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    storage_path = Column(String(500), nullable=False)
    workspace_id = Column(String(36), nullable=False, index=True)
    owner_id = Column(String(36), nullable=False)
    status = Column(String(20), nullable=False, default=DocumentStatus.UPLOADING, index=True)
    error = Column(Text)
    claim_token = Column(String(36))  # set while a worker holds the document
    created_at = Column(DateTime, default=_utc_now)
    updated_at = Column(DateTime, default=_utc_now, onupdate=_utc_now)
    processed_at = Column(DateTime)

    chunks = relationship(
        "Chunk",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Document(id={self.id}, title={self.title}, status={self.status})>"


class Chunk(Base):
    """Embedded text segment of a document. Immutable once written."""

    __tablename__ = "document_chunks"
    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_chunk_document_index"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    document_id = Column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chunk_index = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=_utc_now)

    document = relationship("Document", back_populates="chunks")


class Query(Base):
    """A question asked against a workspace."""

    __tablename__ = "queries"

    id = Column(String(36), primary_key=True, default=_new_id)
    workspace_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    question = Column(Text, nullable=False)
    model_used = Column(String(100))
    created_at = Column(DateTime, default=_utc_now)

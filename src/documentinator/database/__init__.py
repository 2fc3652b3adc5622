"""Database models and repository for Documentinator."""

from .models import Base, Document, DocumentStatus, Chunk, Query
from .engine import create_database_engine
from .repository import DocumentRepository

__all__ = [
    "Base",
    "Document",
    "DocumentStatus",
    "Chunk",
    "Query",
    "create_database_engine",
    "DocumentRepository",
]

"""Shared fixtures for Documentinator tests."""

import os
import pytest
from unittest.mock import MagicMock

# Set test environment variables before imports
os.environ.setdefault('LOG_LEVEL', 'DEBUG')
os.environ.setdefault('EMBED_RATE_PER_SECOND', '0')

from documentinator.database import DocumentRepository, create_database_engine
from documentinator.rag.vector_store import SearchResult
from documentinator.storage import LocalObjectStore

EMBEDDING_DIM = 8


@pytest.fixture
def sample_workspace_id():
    """Sample workspace ID."""
    return "3f1c2a9e-7b4d-4e2a-9c1f-0a1b2c3d4e5f"


@pytest.fixture
def sample_user_id():
    """Sample user ID."""
    return "9a8b7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"


@pytest.fixture
def scenario_a_text():
    """2500 characters of repeated sentences."""
    return ("The quick brown fox jumps over the lazy dog. " * 56)[:2500]


@pytest.fixture
def sample_document_text():
    """Sample document text for chunking tests."""
    return """
Introduction to Document Processing

This is the first paragraph of the document. It contains some text that we want to process.

The second paragraph has more information about the topic. We need to split this into chunks.



Technical Details

Here we discuss the technical implementation details. This is a longer section with more content.
"""


@pytest.fixture
def repo(tmp_path):
    """Repository on a file-backed SQLite database."""
    engine = create_database_engine(f"sqlite:///{tmp_path / 'test.db'}")
    return DocumentRepository(engine)


@pytest.fixture
def store(tmp_path):
    """Object store rooted in a temp directory."""
    return LocalObjectStore(str(tmp_path / "storage"))


@pytest.fixture
def mock_embeddings():
    """Mocked OllamaEmbeddings client."""
    mock = MagicMock()
    mock.is_available.return_value = True
    mock.dimension = EMBEDDING_DIM
    mock.embed.return_value = [0.1] * EMBEDDING_DIM
    mock.embed_batch.side_effect = lambda texts: [[0.1] * EMBEDDING_DIM for _ in texts]
    mock.get_dimension.return_value = EMBEDDING_DIM
    return mock


@pytest.fixture
def mock_vector_store():
    """Mocked vector store."""
    mock = MagicMock()
    mock.search.return_value = []
    mock.delete_document.return_value = 0
    return mock


@pytest.fixture
def mock_chat_client():
    """Mocked OllamaChatClient."""
    mock = MagicMock()
    mock.model = "test-model"
    mock.complete.return_value = "Generated answer [Source 1]."
    return mock


@pytest.fixture
def make_search_result():
    """Factory for SearchResult objects."""
    def _make(n, title=None, text=None, document_id=None):
        return SearchResult(
            chunk_id=f"chunk-{n}",
            document_id=document_id or f"doc-{n}",
            document_title=title if title is not None else f"doc{n}.pdf",
            chunk_index=n,
            text=text or f"Text of chunk {n}.",
            similarity=1.0 - n * 0.1,
        )
    return _make

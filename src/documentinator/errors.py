"""Exception taxonomy for the ingestion and question-answering pipeline."""


class DocumentinatorError(Exception):
    """Base class for pipeline errors."""

    pass


class ExtractionError(DocumentinatorError):
    """Raised when a file is corrupt, unsupported or yields no text."""

    pass


class ChunkingError(DocumentinatorError):
    """Raised for degenerate chunker input or parameters."""

    pass


class EmbeddingError(DocumentinatorError):
    """Raised when the embedding provider fails for an item or a batch."""

    pass


class StorageError(DocumentinatorError):
    """Raised when an object is missing or cannot be written."""

    pass


class RetrievalError(DocumentinatorError):
    """Raised when similarity search is unavailable."""

    pass


class GenerationError(DocumentinatorError):
    """Raised when the generation provider call fails."""

    pass


class ClaimLostError(DocumentinatorError):
    """Raised when a document was deleted or reclaimed mid-processing."""

    pass

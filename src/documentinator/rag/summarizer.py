"""Short document summaries."""

from dataclasses import dataclass

from ..database import DocumentRepository
from ..errors import ExtractionError, StorageError
from ..logging import get_logger
from ..storage import LocalObjectStore
from .generation import OllamaChatClient
from .text_extractor import TextExtractor, document_extension, normalize_whitespace

logger = get_logger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates concise summaries of documents. "
    "Create a clear, informative summary in 2-3 sentences that captures the main points of the document."
)

# Characters of document text sent to the model
SUMMARY_INPUT_LIMIT = 4000

SOURCE_STORAGE = "storage"
SOURCE_CHUNKS = "chunks"


@dataclass
class DocumentSummary:
    document_id: str
    summary: str
    content_source: str
    content_length: int


class DocumentSummarizer:
    """Summarizes a stored document with the chat model."""

    def __init__(
        self,
        repository: DocumentRepository,
        storage: LocalObjectStore,
        extractor: TextExtractor,
        chat_client: OllamaChatClient,
    ):
        self.repository = repository
        self.storage = storage
        self.extractor = extractor
        self.chat_client = chat_client

    def summarize(self, document_id: str) -> DocumentSummary:
        """Summarize a document.

        Text comes from the stored file, falling back to the document's
        chunks in index order.

        Raises:
            LookupError: If the document does not exist
            ExtractionError: If no text is available from either source
            GenerationError: If the model call fails
        """
        doc = self.repository.get_document(document_id)
        if doc is None:
            raise LookupError(f"Document {document_id} not found")

        text, source = self._load_text(doc)
        if not text:
            raise ExtractionError("No text content found in document")

        logger.info(f"Summarizing {document_id} from {source} ({len(text)} chars)")
        summary = self.chat_client.complete(
            [
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": f"Please summarize this document:\n\n{text[:SUMMARY_INPUT_LIMIT]}"},
            ],
            temperature=0.3,
            max_tokens=200,
        )
        return DocumentSummary(
            document_id=document_id,
            summary=summary,
            content_source=source,
            content_length=len(text),
        )

    def _load_text(self, doc):
        try:
            data = self.storage.get(doc.storage_path)
            extension = document_extension(doc.storage_path, doc.title)
            return self.extractor.extract(data, extension).text, SOURCE_STORAGE
        except (StorageError, ExtractionError) as e:
            logger.warning(f"Could not read {doc.id} from storage, using chunks: {e}")

        chunks = self.repository.get_chunks(doc.id)
        return normalize_whitespace(" ".join(c.text for c in chunks)), SOURCE_CHUNKS

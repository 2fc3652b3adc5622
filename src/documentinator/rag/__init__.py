"""RAG (Retrieval-Augmented Generation) pipeline for Documentinator."""

from .pdf_extractor import OcrPdfExtractor, PdfExtraction, PdfPage, TesseractOcr
from .text_extractor import TextExtractor, ExtractionResult
from .text_chunker import TextChunker, TextChunk
from .rate_limiter import RateLimiter
from .embeddings import OllamaEmbeddings
from .generation import OllamaChatClient
from .vector_store import ChromaVectorStore, SearchResult
from .ingestion import IngestionCoordinator, IngestResult, IngestStatus
from .retriever import DocumentRetriever, RetrievalResult
from .citations import Citation, build_citations, build_context
from .intent import classify_question
from .qa_engine import AnswerGenerator, GeneratedAnswer, QAEngine, QAResponse
from .summarizer import DocumentSummarizer, DocumentSummary

__all__ = [
    "OcrPdfExtractor",
    "PdfExtraction",
    "PdfPage",
    "TesseractOcr",
    "TextExtractor",
    "ExtractionResult",
    "TextChunker",
    "TextChunk",
    "RateLimiter",
    "OllamaEmbeddings",
    "OllamaChatClient",
    "ChromaVectorStore",
    "SearchResult",
    "IngestionCoordinator",
    "IngestResult",
    "IngestStatus",
    "DocumentRetriever",
    "RetrievalResult",
    "Citation",
    "build_citations",
    "build_context",
    "classify_question",
    "AnswerGenerator",
    "GeneratedAnswer",
    "QAEngine",
    "QAResponse",
    "DocumentSummarizer",
    "DocumentSummary",
]

"""Documentinator - document ingestion and question answering.

Extracts text from uploaded documents (OCR for scanned PDFs), chunks and
embeds it, and answers questions from the indexed chunks with citations.
"""

__version__ = "0.1.0"

from .errors import DocumentinatorError
from .logging import setup_logging, get_logger

__all__ = ["DocumentinatorError", "setup_logging", "get_logger", "__version__"]

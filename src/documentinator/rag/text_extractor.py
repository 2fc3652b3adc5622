"""Text extraction from raw document bytes."""

import io
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, Optional

from ..errors import ExtractionError
from ..logging import get_logger
from .pdf_extractor import OcrPdfExtractor, PdfExtraction, TesseractOcr

logger = get_logger(__name__)


def normalize_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return " ".join(text.split())


def document_extension(storage_path: str, title: str = "") -> str:
    """File extension of a stored document, from its path or else its title."""
    return PurePosixPath(storage_path or "").suffix or PurePosixPath(title or "").suffix


@dataclass
class ExtractionResult:
    """Extracted, normalized document text."""

    text: str
    document_type: str
    page_count: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)
    pdf: Optional[PdfExtraction] = None


class TextExtractor:
    """Multi-format text extractor, dispatching on file extension."""

    SUPPORTED_EXTENSIONS = {
        ".pdf": "pdf",
        ".docx": "docx",
        ".pptx": "pptx",
        ".txt": "txt",
        ".md": "txt",
        ".csv": "txt",
        ".json": "txt",
        ".yaml": "txt",
        ".yml": "txt",
        ".log": "txt",
    }

    def __init__(
        self,
        pdf_extractor: OcrPdfExtractor = None,
        ocr_factory: Callable[[], TesseractOcr] = None,
    ):
        self.pdf_extractor = pdf_extractor or OcrPdfExtractor()
        self.ocr_factory = ocr_factory or TesseractOcr

    def extract(self, data: bytes, extension: str) -> ExtractionResult:
        """Extract normalized text from file bytes.

        Args:
            data: Raw file contents
            extension: Declared file extension (".pdf", "docx", ...)

        Raises:
            ExtractionError: If decoding fails or no text remains
        """
        ext = self.normalize_extension(extension)
        doc_type = self.SUPPORTED_EXTENSIONS.get(ext, "raw")

        try:
            if doc_type == "pdf":
                result = self._extract_pdf(data)
            elif doc_type == "docx":
                result = self._extract_docx(data)
            elif doc_type == "pptx":
                result = self._extract_pptx(data)
            else:
                result = self._extract_text(data, doc_type)
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"Failed to extract {doc_type} content: {e}") from e

        result.text = normalize_whitespace(result.text)
        if not result.text:
            raise ExtractionError("No text content found in document")

        logger.debug(f"Extracted {len(result.text)} chars from {doc_type} document")
        return result

    def _extract_pdf(self, data: bytes) -> ExtractionResult:
        # OCR engine lives exactly as long as this document's extraction
        with self.ocr_factory() as ocr:
            pdf = self.pdf_extractor.extract(data, ocr)

        return ExtractionResult(
            text=pdf.text,
            document_type="pdf",
            page_count=pdf.page_count,
            metadata=pdf.metadata,
            pdf=pdf,
        )

    def _extract_docx(self, data: bytes) -> ExtractionResult:
        from docx import Document

        doc = Document(io.BytesIO(data))
        parts = [p.text for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        props = doc.core_properties
        return ExtractionResult(
            text="\n\n".join(parts),
            document_type="docx",
            metadata={"title": props.title or None, "author": props.author or None},
        )

    def _extract_pptx(self, data: bytes) -> ExtractionResult:
        from pptx import Presentation

        prs = Presentation(io.BytesIO(data))
        slides = []

        for slide in prs.slides:
            texts = [
                shape.text for shape in slide.shapes
                if hasattr(shape, "text") and shape.text.strip()
            ]
            if texts:
                slides.append("\n".join(texts))

        return ExtractionResult(
            text="\n\n".join(slides),
            document_type="pptx",
            page_count=len(prs.slides),
        )

    def _extract_text(self, data: bytes, doc_type: str) -> ExtractionResult:
        try:
            content = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ExtractionError(f"File is not valid UTF-8 text: {e}")

        return ExtractionResult(text=content, document_type=doc_type)

    @staticmethod
    def normalize_extension(extension: str) -> str:
        """Turn "PDF", ".pdf" or "report.pdf" into ".pdf"."""
        ext = (extension or "").strip().lower()
        if "." in ext[1:]:
            ext = PurePosixPath(ext).suffix
        if ext and not ext.startswith("."):
            ext = f".{ext}"
        return ext

    @classmethod
    def is_supported(cls, filename: str) -> bool:
        """Check if file type has a dedicated extractor."""
        return PurePosixPath(filename.lower()).suffix in cls.SUPPORTED_EXTENSIONS

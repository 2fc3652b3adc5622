"""PDF text extraction with an OCR pass over rendered pages.

Each page is rendered to an image, read through its text layer and through
OCR, and the two results are merged. Digitally authored pages keep their
text layer; scanned pages fall back to OCR.
"""

import io
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import fitz  # PyMuPDF
import pytesseract
from PIL import Image

from ..errors import ExtractionError
from ..logging import get_logger

logger = get_logger(__name__)

# Upscale factor for rendering; 2x (144 DPI) keeps small print legible to OCR
RENDER_ZOOM = 2.0

# A source wins when its length is at least this share of the other's
MERGE_RATIO = 0.8

PARAGRAPH_TARGET = 200

SOURCE_TEXT_LAYER = "text_layer"
SOURCE_OCR = "ocr"
SOURCE_COMBINED = "combined"

_OCR_FIXES = [
    (re.compile(r'([a-z])([0-9])'), r'\1 \2'),
    (re.compile(r'([0-9])([A-Z])'), r'\1 \2'),
    (re.compile(r'([.!?])([A-Z])'), r'\1 \2'),
]
_SENTENCE_SPLIT = re.compile(r'(?<=[.!?])\s+')
_PARAGRAPH_SPLIT = re.compile(r'\n\s*\n')


class TesseractOcr:
    """Tesseract OCR engine, scoped to one document-processing run.

    Use as a context manager; the engine refuses work outside its scope.
    When the tesseract binary is missing, OCR yields empty text and pages
    rely on their text layer.
    """

    def __init__(self, lang: str = None, config: str = ""):
        self.lang = lang or "eng"
        self.config = config
        self.available = False
        self._active = False

    def open(self) -> "TesseractOcr":
        try:
            version = pytesseract.get_tesseract_version()
            self.available = True
            logger.debug(f"Tesseract {version} ready")
        except (pytesseract.TesseractNotFoundError, OSError):
            self.available = False
            logger.warning("Tesseract not available - scanned pages will have no text")
        self._active = True
        return self

    def close(self):
        self._active = False

    def __enter__(self) -> "TesseractOcr":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def active(self) -> bool:
        return self._active

    def image_to_text(self, png_bytes: bytes) -> str:
        """Run OCR over a PNG image."""
        if not self._active:
            raise RuntimeError("OCR engine used outside its processing scope")
        if not self.available:
            return ""
        try:
            with Image.open(io.BytesIO(png_bytes)) as image:
                return pytesseract.image_to_string(image, lang=self.lang, config=self.config)
        except (pytesseract.TesseractError, OSError) as e:
            logger.warning(f"OCR failed for page: {e}")
            return ""


@dataclass
class PdfPage:
    """Per-page processing artifacts."""

    page_number: int
    text: str
    formatted_text: str
    source: str
    text_layer: str = ""
    ocr_text: str = ""
    image_png: Optional[bytes] = None


@dataclass
class PdfExtraction:
    """Result of extracting a whole PDF."""

    text: str
    formatted_text: str
    pages: List[PdfPage]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return len(self.pages)


def merge_page_text(text_layer: str, ocr_text: str, ratio: float = MERGE_RATIO) -> Tuple[str, str]:
    """Pick the text for one page.

    At a ratio of 1.0 or below one source always dominates, so combined
    text is only produced with a stricter ratio.

    Returns:
        (text, source) where source is text_layer, ocr or combined
    """
    text_layer = (text_layer or "").strip()
    ocr_text = (ocr_text or "").strip()
    l_text = len(text_layer)
    l_ocr = len(ocr_text)

    if l_text >= ratio * l_ocr:
        return text_layer, SOURCE_TEXT_LAYER
    if l_ocr >= ratio * l_text:
        return ocr_text, SOURCE_OCR
    # Neither dominates; keep both and let chunking absorb the redundancy
    return f"{text_layer}\n\n{ocr_text}", SOURCE_COMBINED


def format_text(text: str, paragraph_target: int = PARAGRAPH_TARGET) -> str:
    """Repair common OCR artifacts and rebuild paragraph structure.

    Sentences accumulate into a paragraph until it exceeds paragraph_target
    characters, then a paragraph break is emitted.
    """
    if not text:
        return ""

    for pattern, replacement in _OCR_FIXES:
        text = pattern.sub(replacement, text)

    paragraphs = []
    for block in _PARAGRAPH_SPLIT.split(text.replace("\r\n", "\n")):
        current = ""
        for sentence in _SENTENCE_SPLIT.split(block):
            sentence = " ".join(sentence.split())
            if not sentence:
                continue
            current = f"{current} {sentence}" if current else sentence
            if len(current) > paragraph_target:
                paragraphs.append(current)
                current = ""
        if current:
            paragraphs.append(current)

    return "\n\n".join(paragraphs)


def _read_metadata(doc: "fitz.Document") -> Dict[str, Any]:
    info = doc.metadata or {}
    return {
        "total_pages": doc.page_count,
        "title": info.get("title") or None,
        "author": info.get("author") or None,
        "subject": info.get("subject") or None,
        "creator": info.get("creator") or None,
        "producer": info.get("producer") or None,
        "creation_date": info.get("creationDate") or None,
        "modification_date": info.get("modDate") or None,
    }


class OcrPdfExtractor:
    """Extracts PDF text by merging the text layer with OCR, page by page."""

    def __init__(self, zoom: float = RENDER_ZOOM, keep_images: bool = True):
        self.zoom = zoom
        self.keep_images = keep_images

    def extract(self, data: bytes, ocr: TesseractOcr) -> PdfExtraction:
        """Extract all pages of a PDF.

        Args:
            data: Raw PDF bytes
            ocr: An open OCR engine

        Raises:
            ExtractionError: If the PDF cannot be opened or no page yields text
        """
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise ExtractionError(f"Could not open PDF: {e}")

        try:
            metadata = _read_metadata(doc)
            matrix = fitz.Matrix(self.zoom, self.zoom)
            pages = []

            for index, page in enumerate(doc, 1):
                png = page.get_pixmap(matrix=matrix).tobytes("png")
                text_layer = page.get_text() or ""
                ocr_text = ocr.image_to_text(png)
                text, source = merge_page_text(text_layer, ocr_text)

                logger.debug(
                    f"Page {index}: text layer {len(text_layer.strip())} chars, "
                    f"OCR {len(ocr_text.strip())} chars, using {source}"
                )

                pages.append(PdfPage(
                    page_number=index,
                    text=text,
                    formatted_text=format_text(text),
                    source=source,
                    text_layer=text_layer,
                    ocr_text=ocr_text,
                    image_png=png if self.keep_images else None,
                ))
        finally:
            doc.close()

        if not any(p.text for p in pages):
            raise ExtractionError("No text found on any page (text layer and OCR both empty)")

        full_text = "\n\n".join(p.text for p in pages if p.text)
        return PdfExtraction(
            text=full_text,
            formatted_text="\n\n".join(p.formatted_text for p in pages if p.formatted_text),
            pages=pages,
            metadata=metadata,
        )

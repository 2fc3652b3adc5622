"""Tests for OCR-augmented PDF extraction."""

import io

import pytest
import pytesseract
from PIL import Image
from unittest.mock import MagicMock, patch

from documentinator.errors import ExtractionError
from documentinator.rag.pdf_extractor import (
    OcrPdfExtractor,
    SOURCE_COMBINED,
    SOURCE_OCR,
    SOURCE_TEXT_LAYER,
    TesseractOcr,
    format_text,
    merge_page_text,
)


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (10, 10), "white").save(buffer, format="PNG")
    return buffer.getvalue()


def _mock_page(text_layer):
    page = MagicMock()
    page.get_text.return_value = text_layer
    page.get_pixmap.return_value.tobytes.return_value = b"png-bytes"
    return page


def _mock_pdf(pages, metadata=None):
    doc = MagicMock()
    doc.__iter__.return_value = iter(pages)
    doc.page_count = len(pages)
    doc.metadata = metadata or {}
    return doc


class TestMergePageText:
    """Tests for the per-page merge policy."""

    def test_empty_text_layer_uses_ocr(self):
        """A scanned page with only OCR output uses the OCR text."""
        ocr = "x" * 500
        text, source = merge_page_text("", ocr)
        assert text == ocr
        assert source == SOURCE_OCR

    def test_comparable_lengths_prefer_text_layer(self):
        """Text layer wins when it is at least 80% of the OCR length."""
        text, source = merge_page_text("a" * 80, "b" * 100)
        assert text == "a" * 80
        assert source == SOURCE_TEXT_LAYER

    def test_sparse_text_layer_uses_ocr(self):
        """OCR wins when the text layer is much shorter."""
        text, source = merge_page_text("a" * 10, "b" * 100)
        assert text == "b" * 100
        assert source == SOURCE_OCR

    def test_strips_both_sources(self):
        """Lengths are compared on stripped text."""
        text, source = merge_page_text("   hello   ", "\n\n")
        assert text == "hello"
        assert source == SOURCE_TEXT_LAYER

    def test_default_ratio_never_combines(self):
        """With the default ratio one source always wins."""
        for l_text, l_ocr in [(0, 0), (85, 100), (100, 85), (81, 100)]:
            _, source = merge_page_text("a" * l_text, "b" * l_ocr)
            assert source != SOURCE_COMBINED

    def test_strict_ratio_keeps_both(self):
        """When neither source dominates both are kept, text layer first."""
        text, source = merge_page_text("a" * 90, "b" * 100, ratio=1.5)
        assert source == SOURCE_COMBINED
        assert text == "a" * 90 + "\n\n" + "b" * 100


class TestFormatText:
    """Tests for OCR repair and paragraph rebuilding."""

    def test_empty(self):
        """Empty input stays empty."""
        assert format_text("") == ""

    def test_splits_letter_digit_runs(self):
        """Inserts spaces at letter/digit boundaries."""
        assert format_text("Page1Total") == "Page 1 Total"

    def test_space_after_terminal_punctuation(self):
        """Inserts a space between a period and a capital letter."""
        assert format_text("End of one.Next starts") == "End of one. Next starts"

    def test_accumulates_sentences_into_paragraphs(self):
        """Emits a paragraph break once the soft target is exceeded."""
        text = " ".join(["Short sentence number one."] * 10)
        paragraphs = format_text(text, paragraph_target=50).split("\n\n")
        assert len(paragraphs) == 5
        for paragraph in paragraphs:
            assert paragraph.count(".") == 2


class TestTesseractOcr:
    """Tests for the scoped OCR engine."""

    def test_refuses_work_outside_scope(self):
        """Raises when used without entering the context."""
        ocr = TesseractOcr()
        with pytest.raises(RuntimeError):
            ocr.image_to_text(b"")

    def test_scope_closes_on_exit(self):
        """Context exit deactivates the engine."""
        with patch("documentinator.rag.pdf_extractor.pytesseract.get_tesseract_version", return_value="5.3"):
            with TesseractOcr() as ocr:
                assert ocr.active is True
        assert ocr.active is False

    def test_missing_binary_yields_empty_text(self):
        """Missing tesseract degrades to empty OCR output."""
        with patch(
            "documentinator.rag.pdf_extractor.pytesseract.get_tesseract_version",
            side_effect=pytesseract.TesseractNotFoundError(),
        ):
            with TesseractOcr() as ocr:
                assert ocr.available is False
                assert ocr.image_to_text(b"whatever") == ""

    def test_runs_ocr_on_png(self):
        """Passes the decoded image to tesseract."""
        with patch("documentinator.rag.pdf_extractor.pytesseract.get_tesseract_version", return_value="5.3"), \
                patch("documentinator.rag.pdf_extractor.pytesseract.image_to_string", return_value="scanned") as ocr_call:
            with TesseractOcr(lang="deu") as ocr:
                result = ocr.image_to_text(_png_bytes())

        assert result == "scanned"
        assert ocr_call.call_args.kwargs["lang"] == "deu"


class TestOcrPdfExtractor:
    """Tests for page-by-page PDF extraction."""

    @pytest.fixture
    def ocr(self):
        mock = MagicMock()
        mock.image_to_text.return_value = ""
        return mock

    @patch("documentinator.rag.pdf_extractor.fitz")
    def test_scanned_page_uses_ocr(self, mock_fitz, ocr):
        """A page with no text layer takes its content from OCR."""
        mock_fitz.open.return_value = _mock_pdf([_mock_page("")])
        ocr.image_to_text.return_value = "Scanned words. " * 30

        result = OcrPdfExtractor().extract(b"%PDF", ocr)

        assert result.page_count == 1
        assert result.pages[0].source == SOURCE_OCR
        assert result.text == ("Scanned words. " * 30).strip()
        assert result.pages[0].image_png == b"png-bytes"

    @patch("documentinator.rag.pdf_extractor.fitz")
    def test_renders_at_fixed_zoom(self, mock_fitz, ocr):
        """Pages are rendered at 2x for OCR legibility."""
        mock_fitz.open.return_value = _mock_pdf([_mock_page("Digital text")])

        OcrPdfExtractor().extract(b"%PDF", ocr)

        mock_fitz.Matrix.assert_called_once_with(2.0, 2.0)

    @patch("documentinator.rag.pdf_extractor.fitz")
    def test_joins_pages_and_reads_metadata(self, mock_fitz, ocr):
        """Concatenates page text and keeps document metadata."""
        doc = _mock_pdf(
            [_mock_page("First page"), _mock_page("Second page")],
            metadata={"title": "Annual Report", "author": "Finance", "creationDate": "D:20240101"},
        )
        mock_fitz.open.return_value = doc

        result = OcrPdfExtractor(keep_images=False).extract(b"%PDF", ocr)

        assert result.text == "First page\n\nSecond page"
        assert result.metadata["title"] == "Annual Report"
        assert result.metadata["creation_date"] == "D:20240101"
        assert result.metadata["total_pages"] == 2
        assert result.pages[1].image_png is None
        doc.close.assert_called_once()

    @patch("documentinator.rag.pdf_extractor.fitz")
    def test_all_pages_empty_raises(self, mock_fitz, ocr):
        """Raises when neither source yields text on any page."""
        doc = _mock_pdf([_mock_page(""), _mock_page("   ")])
        mock_fitz.open.return_value = doc

        with pytest.raises(ExtractionError):
            OcrPdfExtractor().extract(b"%PDF", ocr)
        doc.close.assert_called_once()

    @patch("documentinator.rag.pdf_extractor.fitz")
    def test_corrupt_pdf_raises(self, mock_fitz, ocr):
        """Unreadable bytes raise ExtractionError."""
        mock_fitz.open.side_effect = RuntimeError("cannot open broken document")

        with pytest.raises(ExtractionError):
            OcrPdfExtractor().extract(b"not a pdf", ocr)

"""Tests for multi-format text extraction."""

import io

import pytest
from docx import Document as DocxDocument
from unittest.mock import MagicMock

from documentinator.errors import ExtractionError
from documentinator.rag.pdf_extractor import PdfExtraction, PdfPage
from documentinator.rag.text_extractor import (
    TextExtractor,
    document_extension,
    normalize_whitespace,
)


@pytest.fixture
def ocr_engine():
    engine = MagicMock()
    engine.__enter__.return_value = engine
    engine.__exit__.return_value = False
    return engine


@pytest.fixture
def pdf_extractor():
    mock = MagicMock()
    mock.extract.return_value = PdfExtraction(
        text="Page one text.\n\nPage   two text.",
        formatted_text="Page one text.\n\nPage two text.",
        pages=[
            PdfPage(page_number=1, text="Page one text.", formatted_text="Page one text.", source="text_layer"),
            PdfPage(page_number=2, text="Page   two text.", formatted_text="Page two text.", source="ocr"),
        ],
        metadata={"title": "Scanned"},
    )
    return mock


@pytest.fixture
def extractor(pdf_extractor, ocr_engine):
    return TextExtractor(pdf_extractor=pdf_extractor, ocr_factory=MagicMock(return_value=ocr_engine))


class TestNormalizeWhitespace:
    """Tests for whitespace normalization."""

    def test_collapses_runs(self):
        """Collapses newlines, tabs and repeated spaces."""
        assert normalize_whitespace("  a \n\n b\t\tc  ") == "a b c"


class TestPlainText:
    """Tests for text-like formats."""

    def test_decodes_utf8(self, extractor):
        """Decodes UTF-8 and normalizes whitespace."""
        result = extractor.extract("Héllo\n\n  wörld".encode("utf-8"), ".txt")
        assert result.text == "Héllo wörld"
        assert result.document_type == "txt"

    def test_strips_bom(self, extractor):
        """Drops a UTF-8 byte order mark."""
        result = extractor.extract(b"\xef\xbb\xbfNotes", "md")
        assert result.text == "Notes"

    def test_unknown_extension_decoded_raw(self, extractor):
        """Unknown types fall through to UTF-8 decoding."""
        result = extractor.extract(b"key = value", ".ini")
        assert result.text == "key = value"
        assert result.document_type == "raw"

    def test_invalid_utf8_raises(self, extractor):
        """Undecodable bytes raise ExtractionError."""
        with pytest.raises(ExtractionError):
            extractor.extract(b"\xff\xfe\xfa", ".txt")

    def test_empty_text_raises(self, extractor):
        """Whitespace-only content raises ExtractionError."""
        with pytest.raises(ExtractionError, match="No text content"):
            extractor.extract(b"  \n\t ", ".txt")


class TestDocx:
    """Tests for Word documents."""

    def test_paragraphs_and_tables(self, extractor):
        """Extracts paragraph text and table cells."""
        doc = DocxDocument()
        doc.add_paragraph("Quarterly summary")
        table = doc.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "Revenue"
        table.rows[0].cells[1].text = "42"
        buffer = io.BytesIO()
        doc.save(buffer)

        result = extractor.extract(buffer.getvalue(), ".docx")

        assert result.document_type == "docx"
        assert "Quarterly summary" in result.text
        assert "Revenue | 42" in result.text

    def test_corrupt_docx_raises(self, extractor):
        """Garbage bytes raise ExtractionError."""
        with pytest.raises(ExtractionError):
            extractor.extract(b"not a zip file", ".docx")


class TestPdf:
    """Tests for PDF dispatch."""

    def test_delegates_to_pdf_extractor(self, extractor, pdf_extractor, ocr_engine):
        """PDF text comes from the OCR-augmented extractor."""
        result = extractor.extract(b"%PDF-1.7", ".PDF")

        assert result.text == "Page one text. Page two text."
        assert result.page_count == 2
        assert result.metadata == {"title": "Scanned"}
        pdf_extractor.extract.assert_called_once_with(b"%PDF-1.7", ocr_engine)

    def test_ocr_scope_released(self, extractor, ocr_engine):
        """The OCR engine is released after extraction."""
        extractor.extract(b"%PDF", ".pdf")
        ocr_engine.__exit__.assert_called_once()

    def test_ocr_scope_released_on_failure(self, extractor, pdf_extractor, ocr_engine):
        """The OCR engine is released when extraction fails."""
        pdf_extractor.extract.side_effect = ExtractionError("broken")

        with pytest.raises(ExtractionError):
            extractor.extract(b"%PDF", ".pdf")
        ocr_engine.__exit__.assert_called_once()


class TestExtensions:
    """Tests for extension helpers."""

    @pytest.mark.parametrize("raw,expected", [
        ("PDF", ".pdf"),
        (".docx", ".docx"),
        ("report.final.TXT", ".txt"),
        ("", ""),
    ])
    def test_normalize_extension(self, raw, expected):
        """Normalizes extension spellings."""
        assert TextExtractor.normalize_extension(raw) == expected

    def test_is_supported(self):
        """Recognizes dedicated formats."""
        assert TextExtractor.is_supported("a.pdf") is True
        assert TextExtractor.is_supported("a.exe") is False

    def test_document_extension_prefers_storage_path(self):
        """Uses the storage path suffix, falling back to the title."""
        assert document_extension("ws/doc/file.pdf", "Report") == ".pdf"
        assert document_extension("ws/doc/file", "Report.docx") == ".docx"

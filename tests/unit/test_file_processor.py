"""
Unit tests for career_copilot/cv_parsing/file_processor.py

Tests:
- File validation (empty, size limit, unsupported types, legacy .doc)
- Type detection by MIME type and extension
- DOCX extraction (paragraphs and tables) with real python-docx documents
- PDF extraction (PdfReader mocked) and unreadable PDFs
"""

import io
from unittest.mock import MagicMock, patch

import pytest
from docx import Document

from career_copilot.common.error_handling import FileProcessingError
from career_copilot.cv_parsing.file_processor import (
    DOCX_MIME,
    MAX_FILE_SIZE,
    PDF_MIME,
    detect_file_type,
    extract_text,
    validate_file,
)


def make_docx(paragraphs=(), table_rows=()):
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for row, values in zip(table.rows, table_rows):
            for cell, value in zip(row.cells, values):
                cell.text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def fake_pdf_reader(*page_texts):
    reader = MagicMock()
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)
    reader.pages = pages
    return reader


class TestValidateFile:
    """Tests for validate_file() / detect_file_type()."""

    def test_empty(self):
        """Should reject empty uploads."""
        with pytest.raises(FileProcessingError, match="empty"):
            validate_file(b"", "cv.pdf")

    def test_too_large(self):
        """Should reject files over 5MB."""
        with pytest.raises(FileProcessingError, match="5MB"):
            validate_file(b"x" * (MAX_FILE_SIZE + 1), "cv.pdf")

    def test_legacy_doc(self):
        """Should reject .doc with a conversion hint."""
        with pytest.raises(FileProcessingError, match="convert"):
            validate_file(b"data", "cv.doc")

    def test_unsupported(self):
        """Should reject other file types."""
        with pytest.raises(FileProcessingError, match="Unsupported"):
            validate_file(b"data", "cv.txt", "text/plain")

    def test_detect_by_mime_then_extension(self):
        """Should prefer the declared MIME type and fall back to the extension."""
        assert detect_file_type("upload.bin", PDF_MIME) == PDF_MIME
        assert detect_file_type("CV.DOCX") == DOCX_MIME
        assert detect_file_type("cv.pdf", "application/octet-stream") == PDF_MIME


class TestExtractDocx:
    """Tests for DOCX extraction."""

    def test_paragraphs_and_tables(self):
        """Should join paragraphs and table rows."""
        data = make_docx(
            paragraphs=["Jane Doe", "", "Python developer"],
            table_rows=[("Skills", "Python, SQL"), ("Location", "Berlin")],
        )

        processed = extract_text(data, "cv.docx")

        assert processed.text == "Jane Doe\nPython developer\nSkills | Python, SQL\nLocation | Berlin"
        assert processed.file_type == DOCX_MIME
        assert processed.file_size == len(data)
        assert processed.file_name == "cv.docx"

    def test_corrupted(self):
        """Should raise FileProcessingError for bytes that are not a docx."""
        with pytest.raises(FileProcessingError, match="Failed to read document"):
            extract_text(b"definitely not a zip", "cv.docx")

    def test_no_text(self):
        """Should reject documents without text."""
        with pytest.raises(FileProcessingError, match="No readable text"):
            extract_text(make_docx(paragraphs=["   "]), "cv.docx")


class TestExtractPdf:
    """Tests for PDF extraction."""

    def test_pages_joined(self):
        """Should join the text of every page."""
        with patch(
            "career_copilot.cv_parsing.file_processor.PyPDF2.PdfReader",
            return_value=fake_pdf_reader("Jane Doe\nPython", None, "Berlin"),
        ):
            processed = extract_text(b"%PDF-1.4 fake", "cv.pdf", PDF_MIME)

        assert processed.text == "Jane Doe\nPython\nBerlin"
        assert processed.file_type == PDF_MIME

    def test_unreadable_pdf(self):
        """Should raise FileProcessingError for a corrupted PDF."""
        with pytest.raises(FileProcessingError, match="Failed to read PDF"):
            extract_text(b"this is not a pdf at all", "cv.pdf")

    @pytest.mark.parametrize("error", [KeyError("/Root"), TypeError("NoneType"), AttributeError("get_object")])
    def test_parser_internal_errors_wrapped(self, error):
        """Should turn any parser failure on a malformed PDF into FileProcessingError."""
        with patch(
            "career_copilot.cv_parsing.file_processor.PyPDF2.PdfReader",
            side_effect=error,
        ):
            with pytest.raises(FileProcessingError, match="Failed to read PDF") as exc_info:
                extract_text(b"%PDF-1.4 broken", "cv.pdf")

        assert exc_info.value.__cause__ is error

    def test_page_extraction_errors_wrapped(self):
        """Should wrap failures raised while reading page text."""
        page = MagicMock()
        page.extract_text.side_effect = KeyError("/Contents")
        reader = MagicMock(pages=[page])
        with patch(
            "career_copilot.cv_parsing.file_processor.PyPDF2.PdfReader",
            return_value=reader,
        ):
            with pytest.raises(FileProcessingError, match="Failed to read PDF"):
                extract_text(b"%PDF-1.4 broken", "cv.pdf")

    def test_scanned_pdf_without_text(self):
        """Should reject PDFs whose pages carry no text."""
        with patch(
            "career_copilot.cv_parsing.file_processor.PyPDF2.PdfReader",
            return_value=fake_pdf_reader("", None),
        ):
            with pytest.raises(FileProcessingError, match="No readable text"):
                extract_text(b"%PDF-1.4 fake", "scan.pdf")

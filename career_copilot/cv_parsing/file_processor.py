"""
Text extraction from uploaded CV files.

Supports PDF (PyPDF2) and DOCX (python-docx). Legacy binary .doc files are
rejected with a hint to convert them.

Usage:
    processed = extract_text(upload_bytes, "cv.pdf", "application/pdf")
    outcome = parser.parse(processed.text)
"""

import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import PyPDF2
from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from career_copilot.common.error_handling import FileProcessingError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB

PDF_MIME = "application/pdf"
DOC_MIME = "application/msword"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_MIME_BY_EXTENSION = {
    ".pdf": PDF_MIME,
    ".doc": DOC_MIME,
    ".docx": DOCX_MIME,
}


@dataclass
class ProcessedFile:
    """Extracted text plus upload metadata."""
    text: str
    file_name: str
    file_size: int
    file_type: str


def detect_file_type(file_name: str, mime_type: Optional[str] = None) -> str:
    """
    MIME type of the upload: the declared one if supported, else by extension.

    Raises:
        FileProcessingError: Neither names a supported type
    """
    if mime_type in (PDF_MIME, DOC_MIME, DOCX_MIME):
        return mime_type
    by_extension = _MIME_BY_EXTENSION.get(Path(file_name or "").suffix.lower())
    if by_extension:
        return by_extension
    raise FileProcessingError("Unsupported file type. Please upload PDF or DOCX files")


def validate_file(data: bytes, file_name: str, mime_type: Optional[str] = None) -> str:
    """
    Check size and type before any parsing.

    Returns:
        The detected MIME type

    Raises:
        FileProcessingError: Empty, too large, or unsupported
    """
    if not data:
        raise FileProcessingError("Uploaded file is empty")
    if len(data) > MAX_FILE_SIZE:
        raise FileProcessingError("File size exceeds 5MB limit")

    file_type = detect_file_type(file_name, mime_type)
    if file_type == DOC_MIME:
        raise FileProcessingError(
            "Legacy .doc files are not supported. Please convert to .docx or PDF and try again."
        )
    return file_type


def extract_text_from_pdf(data: bytes) -> str:
    try:
        reader = PyPDF2.PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        # malformed PDFs surface as KeyError, TypeError etc. from deep in the parser
        raise FileProcessingError(
            "Failed to read PDF file. Please try converting your PDF to a DOCX file, "
            "or ensure the PDF is not password protected or corrupted."
        ) from e
    logger.debug(f"PDF extraction read {len(pages)} page(s)")
    return "\n".join(page for page in pages if page)


def extract_text_from_docx(data: bytes) -> str:
    try:
        document = Document(io.BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise FileProcessingError(
            "Failed to read document file. Ensure the file is a valid .docx "
            "and is not corrupted or password protected."
        ) from e

    lines = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)


def extract_text(data: bytes, file_name: str, mime_type: Optional[str] = None) -> ProcessedFile:
    """
    Validate an upload and extract its text.

    Raises:
        FileProcessingError: Validation failed, the file is unreadable, or it
            contains no text
    """
    file_type = validate_file(data, file_name, mime_type)

    if file_type == PDF_MIME:
        text = extract_text_from_pdf(data)
    else:
        text = extract_text_from_docx(data)

    if not text.strip():
        raise FileProcessingError("No readable text found in the document")

    logger.info(f"Extracted {len(text)} characters from {file_name}")
    return ProcessedFile(
        text=text.strip(),
        file_name=file_name,
        file_size=len(data),
        file_type=file_type,
    )

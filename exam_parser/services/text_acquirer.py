"""
Plain-text acquisition for exam documents.

Dispatches on file extension to a PDF decoder (pdfplumber), a Word decoder
(python-docx) or a raw UTF-8 read. Decoders are treated as black boxes: this
module only owns extension dispatch, error wrapping and empty-output checks.
No retries happen at this layer.
"""

import logging
import os
from pathlib import Path

import docx
import pdfplumber

from exam_parser.errors import (
    DocumentDecodeError,
    EmptyDocumentError,
    UnsupportedFileTypeError,
)

logger = logging.getLogger(__name__)

PDF_EXTENSIONS = {".pdf"}
WORD_EXTENSIONS = {".docx", ".doc"}
TEXT_EXTENSIONS = {".txt"}
SUPPORTED_EXTENSIONS = PDF_EXTENSIONS | WORD_EXTENSIONS | TEXT_EXTENSIONS

PREVIEW_CHARS = 200


def _require_file(file_path: str) -> None:
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")


def _log_extracted(kind: str, text: str) -> None:
    logger.info("Successfully parsed %s, extracted %d characters", kind, len(text))
    logger.debug("%s content preview: %s...", kind, text[:PREVIEW_CHARS])


def parse_pdf(file_path: str) -> str:
    """
    Extract plain text from a PDF file.

    Args:
        file_path: Path to the PDF file

    Returns:
        Text of every page joined with newlines

    Raises:
        FileNotFoundError: If the file does not exist
        EmptyDocumentError: If the decoder produced no text
        DocumentDecodeError: If pdfplumber fails to read the file
    """
    _require_file(file_path)
    logger.info("Parsing PDF file: %s", file_path)

    try:
        with pdfplumber.open(file_path) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.error("Error parsing PDF %s: %s", file_path, e)
        raise DocumentDecodeError(f"Failed to parse PDF file: {e}", e) from e

    text = "\n".join(pages)
    if not text.strip():
        logger.error("PDF parsing returned empty text: %s", file_path)
        raise EmptyDocumentError("PDF parsing returned empty text")

    _log_extracted("PDF", text)
    return text


def parse_word(file_path: str) -> str:
    """
    Extract plain text from a Word document.

    Paragraph text comes first, followed by the text of every table cell
    (exam papers often lay out options in tables).

    Raises:
        FileNotFoundError: If the file does not exist
        EmptyDocumentError: If the decoder produced no text
        DocumentDecodeError: If python-docx cannot open the file
    """
    _require_file(file_path)
    logger.info("Parsing Word document: %s", file_path)

    try:
        document = docx.Document(file_path)
        lines = [paragraph.text for paragraph in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                for cell in row.cells:
                    lines.append(cell.text)
    except Exception as e:
        logger.error("Error parsing Word document %s: %s", file_path, e)
        raise DocumentDecodeError(f"Failed to parse Word document: {e}", e) from e

    text = "\n".join(lines)
    if not text.strip():
        logger.error("Word document parsing returned empty text: %s", file_path)
        raise EmptyDocumentError("Word document parsing returned empty text")

    _log_extracted("Word document", text)
    return text


def parse_text_file(file_path: str) -> str:
    """Read a plain-text file as UTF-8."""
    _require_file(file_path)
    try:
        return Path(file_path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise DocumentDecodeError(f"Text file is not valid UTF-8: {e}", e) from e


def acquire_text(file_path: str) -> str:
    """
    Convert a document into plain text by dispatching on its extension.

    Args:
        file_path: Path to a .pdf, .docx, .doc or .txt file

    Returns:
        Non-empty plain text

    Raises:
        UnsupportedFileTypeError: For any other extension
        EmptyDocumentError: If the resulting text is empty or whitespace-only
        DocumentDecodeError: If the PDF or Word decoder fails
        FileNotFoundError: If the file does not exist
    """
    extension = Path(file_path).suffix.lower()

    if extension in PDF_EXTENSIONS:
        text = parse_pdf(file_path)
    elif extension in WORD_EXTENSIONS:
        text = parse_word(file_path)
    elif extension in TEXT_EXTENSIONS:
        text = parse_text_file(file_path)
    else:
        raise UnsupportedFileTypeError(extension)

    if not text or not text.strip():
        raise EmptyDocumentError(f"Document contains no text: {file_path}")

    return text

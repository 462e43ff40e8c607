"""PDF text extraction with PyMuPDF."""
from pathlib import Path

import fitz  # PyMuPDF
import structlog

from docqa.errors import DocumentNotFound, ExtractionError

logger = structlog.get_logger()


def extract_text(data: bytes) -> str:
    """Extract the plain text of a PDF held in memory.

    Args:
        data: Raw PDF bytes

    Returns:
        Text of all pages, joined with newlines

    Raises:
        ExtractionError: If the bytes are not a readable PDF
    """
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
    except Exception as e:
        logger.error("pdf_extraction_failed", error=str(e), error_type=type(e).__name__)
        raise ExtractionError(f"Could not extract text from PDF: {e}") from e

    text = "\n".join(pages)
    logger.info("pdf_text_extracted", page_count=len(pages), text_length=len(text))
    return text


def extract_file(path: Path) -> str:
    """Read a PDF file and extract its text.

    Raises:
        DocumentNotFound: If the file does not exist
        ExtractionError: If the file cannot be read or parsed
    """
    path = Path(path)
    if not path.exists():
        raise DocumentNotFound(f"PDF file not found: {path}")

    try:
        data = path.read_bytes()
    except OSError as e:
        raise ExtractionError(f"Could not read {path}: {e}") from e

    return extract_text(data)

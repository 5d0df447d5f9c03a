import io
import re
from pdfminer.high_level import extract_text as pdf_extract
from unstructured.partition.auto import partition
from cv_screener.utils.exceptions import ExtractionError
from cv_screener.utils.logging_config import get_logger

logger = get_logger(__name__)


def clean_text(x: str) -> str:
    x = re.sub(r'\s+', ' ', x).strip()
    return x


def read_pdf(content: bytes) -> str:
    try:
        return pdf_extract(io.BytesIO(content))
    except Exception as e:
        # fallback to unstructured
        logger.warning(f"pdfminer failed ({e}), falling back to unstructured")
        elems = partition(file=io.BytesIO(content))
        return "\n".join([e.text for e in elems if hasattr(e, "text") and e.text])


def extract_pdf_text(content: bytes, file_name: str = None) -> str:
    """Best-effort plain text from PDF bytes.

    Raises ExtractionError for empty uploads, unreadable files and PDFs
    without a text layer (scanned images).
    """
    if not content:
        raise ExtractionError("Uploaded file is empty", file_name=file_name)
    try:
        text = read_pdf(content)
    except Exception as e:
        raise ExtractionError(f"Could not read PDF: {e}", file_name=file_name, cause=e) from e

    text = clean_text(text or "")
    if not text:
        raise ExtractionError("No extractable text found in PDF", file_name=file_name)
    logger.debug(f"Extracted {len(text)} characters from {file_name or 'upload'}")
    return text

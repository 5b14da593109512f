"""
PDF text extraction and field parsing helpers.

This module provides functionality to:
- Extract raw text from invoice PDFs behind a single adapter interface
- Split extracted text into the lines the field rules scan
- Read a labelled value from those lines
- Parse locale-ambiguous amount strings into numbers
"""

import io
import re
import unicodedata
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import pdfplumber

from .config import CURRENCY_SYMBOLS, PDF_TEXT_BACKEND, logger
from .errors import ConfigurationError, ExtractionFailure
from .schemas import ExtractedDocument


# ============================================================================
# Text Extraction
# ============================================================================

@dataclass(frozen=True)
class ExtractedText:
    """Raw output of a text extraction backend."""
    text: str
    pages: int


class TextExtractor(ABC):
    """Interface for services that turn a document buffer into plain text."""

    name: str = "abstract"

    @abstractmethod
    def extract_text(self, data: bytes) -> ExtractedText:
        """
        Extract all text from a document.

        Raises:
            ExtractionFailure: If the document cannot be parsed
        """


class PdfPlumberTextExtractor(TextExtractor):
    """Text extractor backed by pdfplumber.

    Each call opens its own parser over the buffer and closes it before
    returning or raising.
    """

    name = "pdfplumber"

    def extract_text(self, data: bytes) -> ExtractedText:
        text_parts = []

        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                page_count = len(pdf.pages)
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if page_text:
                        text_parts.append(page_text)
        except Exception as e:
            logger.error(f"Error extracting text from PDF ({len(data)} bytes): {e}")
            raise ExtractionFailure(f"Could not read PDF: {e}") from e

        return ExtractedText(text="\n".join(text_parts), pages=page_count)


TEXT_EXTRACTORS: dict[str, type[TextExtractor]] = {
    PdfPlumberTextExtractor.name: PdfPlumberTextExtractor,
}


def create_text_extractor(backend: str = PDF_TEXT_BACKEND) -> TextExtractor:
    """
    Build the text extractor for the configured backend.

    Called once when the application is assembled so that a bad backend
    name fails at startup rather than on the first upload.
    """
    extractor_cls = TEXT_EXTRACTORS.get(backend.strip().lower())
    if extractor_cls is None:
        raise ConfigurationError(
            f"Unknown PDF text backend '{backend}'. "
            f"Available: {', '.join(sorted(TEXT_EXTRACTORS))}"
        )
    logger.info(f"Using PDF text backend: {extractor_cls.name}")
    return extractor_cls()


def build_document(text: str, pages: int = 0) -> ExtractedDocument:
    """
    Prepare extracted text for field matching.

    Text is NFC-normalized so that composed and decomposed Vietnamese
    diacritics compare equal against the label aliases.
    """
    raw_text = unicodedata.normalize("NFC", text or "")
    lines = [line.strip() for line in re.split(r"\r?\n", raw_text)]
    lines = [line for line in lines if line]
    normalized_text = re.sub(r"\s+", " ", raw_text).lower()

    return ExtractedDocument(
        raw_text=raw_text,
        lines=lines,
        normalized_text=normalized_text,
        pages=pages,
    )


def extract_document(data: bytes, extractor: TextExtractor) -> ExtractedDocument:
    """Run the extractor over a PDF buffer and build the matchable document."""
    result = extractor.extract_text(data)
    document = build_document(result.text, result.pages)
    logger.info(f"Extracted {len(document.lines)} lines from {document.pages} page(s)")
    return document


# ============================================================================
# Field Extraction Helpers
# ============================================================================

def extract_line_value(lines: list[str], labels: list[str]) -> Optional[str]:
    """
    Find the value printed after a label.

    Lines are scanned top to bottom and every label is tried on each line,
    so the first line carrying any of the labels wins. The label, an
    optional ':' or '-' after it, and surrounding whitespace are stripped.
    Lines where nothing follows the label are skipped.
    """
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        line_lower = line.lower()
        for label in labels:
            if line_lower.startswith(label.lower()):
                value = re.sub(r"^\s*[:\-]", "", line[len(label):]).strip()
                if value:
                    return value
    return None


def sanitize_amount(value: Optional[str]) -> Optional[float]:
    """
    Parse a printed amount whose separators depend on the locale.

    Handles:
    - Vietnamese grouping: 12.500.000 đ -> 12500000
    - US/UK format: 1,234.56 -> 1234.56
    - European format: 1.234,56 -> 1234.56

    The right-most separator followed by exactly one or two digits is the
    decimal point; otherwise every '.' and ',' is a thousands separator,
    so "12.345" reads as 12345.
    """
    if value is None:
        return None

    raw = str(value).strip()
    if not raw:
        return None

    # Remove currency symbols and whitespace
    cleaned = re.sub(rf"[{re.escape(CURRENCY_SYMBOLS)}\s]", "", raw, flags=re.IGNORECASE)
    candidates = [m for m in re.findall(r"-?[0-9.,]+", cleaned) if re.search(r"\d", m)]
    if not candidates:
        return None
    numeric = max(candidates, key=len)

    sign = -1 if numeric.startswith("-") else 1

    separators = sorted(
        (numeric.rfind(","), numeric.rfind(".")),
        reverse=True,
    )

    integer_end = len(numeric)
    fraction_digits = ""
    for index in separators:
        if index == -1:
            continue
        digits_after = re.sub(r"\D", "", numeric[index + 1:])
        if 1 <= len(digits_after) <= 2:
            fraction_digits = digits_after
            integer_end = index
            break

    integer_digits = re.sub(r"\D", "", numeric[:integer_end])
    if not integer_digits and not fraction_digits:
        return None

    amount = Decimal(f"{integer_digits or '0'}.{fraction_digits or '0'}")
    return float(sign * amount)


def decimal_to_number(value: Any) -> float:
    """
    Convert a stored decimal field to a float.

    Unlike sanitize_amount this never guesses at locale: the input is
    already a structured number (Decimal, int, float, an exported
    {"$numberDecimal": "..."} mapping, or a plain numeric string).
    Missing values count as zero.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        return _to_float(value.replace(",", ""))
    if isinstance(value, dict) and "$numberDecimal" in value:
        return _to_float(str(value["$numberDecimal"]))
    return _to_float(str(value))


def _to_float(text: str) -> float:
    try:
        return float(Decimal(text.strip()))
    except (InvalidOperation, ValueError):
        logger.warning(f"Could not convert stored decimal {text!r}, counting it as 0")
        return 0.0

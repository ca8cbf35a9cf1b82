"""
Document processing service for ContractLens.

This module turns uploaded files into the plain text every analysis offset
refers to, plus basic metadata and a heading-based outline.

The extracted text is only normalized in ways that keep it stable across
runs (line endings and surrounding whitespace); whitespace inside the text
is never collapsed, since highlights quote it verbatim.

Author: ContractLens Team
Version: 1.0.0
"""

import io
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

import PyPDF2
from docx import Document as DocxDocument

from contractlens.exceptions import DocumentExtractionError

# Configure logging
logger = logging.getLogger(__name__)

_SECTION_KEYWORDS = re.compile(r"^(ARTICLE|SECTION|CHAPTER|PART|SCHEDULE|EXHIBIT|APPENDIX)\s+", re.IGNORECASE)
_ALL_CAPS = re.compile(r"^[A-Z\s\d.,-]+$")
_TITLE_LINE = re.compile(r"^[A-Z][a-z].*[^.]$")
_NUMBERED_TITLE = re.compile(r"^\d+\.\s+[A-Z]")
_TITLE_CASE_WORDS = re.compile(r"^[A-Z][a-z]+(\s+[A-Z][a-z]+)*$")
_DOTTED_NUMBER = re.compile(r"^\d+\.\d+")
_ROMAN_NUMERAL = re.compile(r"^[IVX]+\.\s+")
_LETTER_ENUM = re.compile(r"^[A-Z]\.\s+")


@dataclass
class DocumentSection:
    """A heading and the ``[start_position, end_position)`` range it governs."""
    title: str
    start_position: int
    end_position: int
    level: int
    subsections: List["DocumentSection"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "startPosition": self.start_position,
            "endPosition": self.end_position,
            "level": self.level,
            "subsections": [section.to_dict() for section in self.subsections],
        }


@dataclass
class ParsedDocument:
    """Extracted text with metadata and outline."""
    text: str
    metadata: Dict[str, Any]
    structure: List[DocumentSection]

    def structure_dict(self) -> Dict[str, Any]:
        return {"sections": [section.to_dict() for section in self.structure]}


def detect_header_level(line: str) -> int:
    """
    Guess whether a line is a heading and at what depth.

    Args:
        line (str): One line of document text

    Returns:
        int: Heading level 1-4, or 0 when the line is body text
    """
    trimmed = line.strip()
    if not trimmed:
        return 0

    if trimmed == trimmed.upper() and len(trimmed) > 3 and _ALL_CAPS.match(trimmed):
        return 1

    if _TITLE_LINE.match(trimmed) and len(trimmed) < 100:
        if _SECTION_KEYWORDS.match(trimmed):
            return 1
        if _NUMBERED_TITLE.match(trimmed):
            return 2
        if _TITLE_CASE_WORDS.match(trimmed):
            return 3

    if _DOTTED_NUMBER.match(trimmed):
        return min(trimmed.count(".") + 1, 4)

    if _ROMAN_NUMERAL.match(trimmed):
        return 2

    if _LETTER_ENUM.match(trimmed):
        return 3

    return 0


def extract_structure(text: str) -> List[DocumentSection]:
    """
    Build a nested outline of the headings found in ``text``.

    Each section runs from its heading to the next heading of the same or a
    shallower level, or to the end of the document.
    """
    sections: List[DocumentSection] = []
    stack: List[DocumentSection] = []
    position = 0

    for line in text.split("\n"):
        line_length = min(len(line) + 1, len(text) - position)
        level = detect_header_level(line)

        if level > 0:
            while stack and stack[-1].level >= level:
                stack.pop().end_position = position

            section = DocumentSection(
                title=line.strip(),
                start_position=position,
                end_position=position + line_length,
                level=level,
            )
            if stack:
                stack[-1].subsections.append(section)
            else:
                sections.append(section)
            stack.append(section)

        position += line_length

    for section in stack:
        section.end_position = position

    return sections


def normalize_text(text: str) -> str:
    """Unify line endings and strip surrounding whitespace."""
    return text.replace("\r\n", "\n").replace("\r", "\n").strip()


def count_words(text: str) -> int:
    return len(text.split())


def count_paragraphs(text: str) -> int:
    return len([para for para in re.split(r"\n\s*\n", text) if para.strip()])


class DocumentProcessor:
    """
    Service class for extracting text from contracts.

    Parsing is synchronous; async callers run it with ``asyncio.to_thread``.
    """

    def __init__(self):
        """Initialize the document processor."""
        self.supported_formats = {
            "pdf": self._extract_pdf_text,
            "docx": self._extract_docx_text,
            "txt": self._extract_txt_text,
        }

    def parse_document(self, content: bytes, file_type: str) -> ParsedDocument:
        """
        Extract text, metadata and outline from raw file content.

        Args:
            content (bytes): File content
            file_type (str): One of ``pdf``, ``docx`` or ``txt``

        Returns:
            ParsedDocument: Normalized text with metadata and structure

        Raises:
            DocumentExtractionError: If the format is unsupported, the file is
                corrupt, or no text could be extracted
        """
        extractor = self.supported_formats.get(file_type)
        if extractor is None:
            raise DocumentExtractionError(f"Unsupported file type: {file_type}")

        try:
            raw_text, metadata = extractor(content)
        except DocumentExtractionError:
            raise
        except Exception as e:
            logger.error(f"Error extracting {file_type} text: {e}")
            raise DocumentExtractionError(f"Failed to parse {file_type.upper()}: {e}") from e

        text = normalize_text(raw_text or "")
        if not text:
            raise DocumentExtractionError("No text could be extracted from the document")

        metadata.update({
            "word_count": count_words(text),
            "character_count": len(text),
            "paragraphs": count_paragraphs(text),
        })

        logger.info(f"Successfully extracted {len(text)} characters from {file_type} document")
        return ParsedDocument(text=text, metadata=metadata, structure=extract_structure(text))

    def _extract_pdf_text(self, content: bytes):
        pdf_reader = PyPDF2.PdfReader(io.BytesIO(content))
        pages = []

        for page_num, page in enumerate(pdf_reader.pages):
            try:
                page_text = page.extract_text() or ""
            except Exception as e:
                logger.warning(f"Failed to extract text from page {page_num + 1}: {e}")
                continue
            if page_text.strip():
                pages.append(page_text)

        return "\n\n".join(pages), {"pages": len(pdf_reader.pages)}

    def _extract_docx_text(self, content: bytes):
        doc = DocxDocument(io.BytesIO(content))
        paragraphs = [paragraph.text for paragraph in doc.paragraphs]

        # Tables follow the body text, one row per line
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    paragraphs.append(" | ".join(cells))

        return "\n".join(paragraphs), {}

    def _extract_txt_text(self, content: bytes):
        try:
            return content.decode("utf-8"), {}
        except UnicodeDecodeError:
            logger.info("Text upload is not UTF-8, falling back to latin-1")
            return content.decode("latin-1"), {}

    def get_content_preview(self, text: str, max_length: int = 500) -> str:
        """
        Generate a preview of document content.

        Args:
            text (str): Full document text
            max_length (int): Maximum length of preview

        Returns:
            str: Content preview
        """
        if not text:
            return ""

        if len(text) <= max_length:
            return text

        # Try to break at sentence boundary
        preview = text[:max_length]
        break_point = max(preview.rfind("."), preview.rfind("\n"))

        if break_point > max_length * 0.7:
            return text[:break_point + 1].strip()
        return text[:max_length].strip() + "..."

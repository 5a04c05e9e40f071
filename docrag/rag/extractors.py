"""Plain-text extraction from files and HTML.

Supports:
- PDF (`.pdf`) - pypdf
- DOCX (`.docx`) - python-docx
- TXT (`.txt`) - direct UTF-8 read
- MD (`.md`) - frontmatter removed, markdown syntax stripped
"""
import zipfile
from pathlib import Path
from typing import Optional, Union
import structlog
from bs4 import BeautifulSoup
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from docrag.errors import ExtractionError, UnsupportedFormat, ValidationError
from docrag.rag.md_parser import MarkdownParser

logger = structlog.get_logger()

SUPPORTED_EXTENSIONS = {".pdf", ".docx", ".txt", ".md"}

NOISE_SELECTOR = "script, style, nav, header, footer, aside"
MAIN_CONTENT_SELECTOR = "main, article, .content, .main-content, .post-content, #content"


def clean_text(text: str) -> str:
    """Strip every line, drop blank ones, join with newlines."""
    if not text or not text.strip():
        return ""
    lines = (line.strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def html_to_text(html: str, selector: Optional[str] = None) -> str:
    """Extract readable text from an HTML page.

    Without a selector, scripts and page chrome are removed and the main
    content area is preferred over the whole body. With a selector, the
    text of every matching element is joined.

    Args:
        html: Raw HTML
        selector: Optional CSS selector

    Returns:
        Cleaned plain text (may be empty)
    """
    soup = BeautifulSoup(html, "html.parser")

    if selector:
        parts = [clean_text(el.get_text("\n")) for el in soup.select(selector)]
        return "\n".join(p for p in parts if p)

    for element in soup.select(NOISE_SELECTOR):
        element.decompose()

    main = soup.select_one(MAIN_CONTENT_SELECTOR)
    if main is not None:
        return clean_text(main.get_text("\n"))

    body = soup.body
    return clean_text(body.get_text("\n")) if body is not None else ""


class TextExtractor:
    """Dispatches a file to the right extractor by extension."""

    def __init__(self):
        self.md_parser = MarkdownParser()

    def can_process(self, file_path: Union[str, Path]) -> bool:
        return Path(file_path).suffix.lower() in SUPPORTED_EXTENSIONS

    def extract(self, file_path: Union[str, Path]) -> str:
        """Extract plain UTF-8 text from a file.

        Args:
            file_path: Path to the file

        Returns:
            Extracted text

        Raises:
            ValidationError: If the path is empty or the file doesn't exist
            UnsupportedFormat: If the extension is not supported
            ExtractionError: If the file cannot be parsed
        """
        if not str(file_path).strip():
            raise ValidationError("File path cannot be empty")

        path = Path(file_path)
        if not path.is_file():
            raise ValidationError(f"File not found: {path}")

        extension = path.suffix.lower()
        if extension == ".doc":
            raise UnsupportedFormat(
                "Legacy .doc files are not supported. Please convert to .docx",
                extension=extension,
            )
        if extension not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFormat(
                f"File type {extension or '(none)'} is not supported",
                extension=extension,
            )

        logger.info("extracting_text", path=str(path), file_type=extension)

        try:
            if extension == ".pdf":
                text = self._extract_pdf(path)
            elif extension == ".docx":
                text = self._extract_docx(path)
            elif extension == ".md":
                text = self.md_parser.parse_file(path).plain_text
            else:
                text = path.read_text(encoding="utf-8")
        except ExtractionError:
            raise
        except (
            OSError,
            UnicodeDecodeError,
            PdfReadError,
            PackageNotFoundError,
            zipfile.BadZipFile,
            ValueError,
            KeyError,
        ) as e:
            logger.error("text_extraction_failed", path=str(path), error=str(e))
            raise ExtractionError(
                f"Failed to extract text from {extension.lstrip('.').upper()}: {e}",
                source=str(path),
            ) from e

        logger.info("text_extracted", path=str(path), length=len(text))
        return text

    def _extract_pdf(self, path: Path) -> str:
        reader = PdfReader(str(path))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(pages)

    def _extract_docx(self, path: Path) -> str:
        document = DocxDocument(str(path))

        parts = [p.text for p in document.paragraphs if p.text.strip()]

        for table in document.tables:
            for row in table.rows:
                row_text = " | ".join(
                    cell.text.strip() for cell in row.cells if cell.text.strip()
                )
                if row_text:
                    parts.append(row_text)

        return "\n".join(parts)

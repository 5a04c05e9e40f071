"""Markdown parser for turning .md files into plain text.

Handles:
- YAML frontmatter parsing
- Markdown syntax stripping (headings, emphasis, links, code fences, HTML)
"""
import re
from pathlib import Path
from typing import Dict, Any, Tuple
from dataclasses import dataclass
import yaml
import structlog

logger = structlog.get_logger()


@dataclass
class MarkdownDocument:
    """Parsed markdown document with content and metadata."""

    path: Path
    content: str
    frontmatter: Dict[str, Any]
    plain_text: str

    @property
    def title(self) -> str:
        value = self.frontmatter.get("title")
        return str(value) if value else self.path.stem


class MarkdownParser:
    """Parser for markdown documents with frontmatter support."""

    # Regex for YAML frontmatter (must be at start of file)
    FRONTMATTER_PATTERN = re.compile(
        r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL | re.MULTILINE
    )

    FENCE_PATTERN = re.compile(r"^\s*(```|~~~).*$", re.MULTILINE)
    HEADING_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s+(.*?)\s*#*\s*$", re.MULTILINE)
    IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
    LINK_PATTERN = re.compile(r"\[([^\]]+)\]\([^)]*\)")
    REFERENCE_DEF_PATTERN = re.compile(r"^\s*\[[^\]]+\]:\s+\S+.*$", re.MULTILINE)
    HTML_TAG_PATTERN = re.compile(r"<[^>]+>")
    EMPHASIS_PATTERN = re.compile(r"(\*\*|\*|~~)(?=\S)(.+?)(?<=\S)\1")
    # Underscores only count at word edges so snake_case survives
    UNDERSCORE_EMPHASIS_PATTERN = re.compile(r"(?<!\w)(__|_)(?=\S)(.+?)(?<=\S)\1(?!\w)")
    INLINE_CODE_PATTERN = re.compile(r"`([^`]*)`")
    BLOCKQUOTE_PATTERN = re.compile(r"^\s*>+\s?", re.MULTILINE)
    LIST_MARKER_PATTERN = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+", re.MULTILINE)
    RULE_PATTERN = re.compile(r"^\s*(?:[-*_]\s*){3,}$", re.MULTILINE)
    TABLE_RULE_PATTERN = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$", re.MULTILINE)

    def parse_file(self, file_path: Path) -> MarkdownDocument:
        """Parse a markdown file and extract plain text and frontmatter.

        Args:
            file_path: Path to the markdown file

        Returns:
            MarkdownDocument with parsed content

        Raises:
            FileNotFoundError: If file doesn't exist
            UnicodeDecodeError: If file encoding is invalid
        """
        if not file_path.exists():
            raise FileNotFoundError(f"Markdown file not found: {file_path}")

        try:
            content = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.error("markdown_encoding_error", path=str(file_path), error=str(e))
            raise

        frontmatter, body = self._parse_frontmatter(content)
        plain_text = self.to_plain_text(body)

        logger.info(
            "markdown_parsed",
            path=str(file_path),
            has_frontmatter=bool(frontmatter),
            content_length=len(plain_text),
        )

        return MarkdownDocument(
            path=file_path,
            content=content,
            frontmatter=frontmatter,
            plain_text=plain_text,
        )

    def _parse_frontmatter(self, content: str) -> Tuple[Dict[str, Any], str]:
        """Extract YAML frontmatter from markdown content.

        Args:
            content: Full markdown content

        Returns:
            Tuple of (frontmatter_dict, content_without_frontmatter)
        """
        match = self.FRONTMATTER_PATTERN.match(content)

        if not match:
            return {}, content

        yaml_content = match.group(1)
        try:
            frontmatter = yaml.safe_load(yaml_content)
            if not isinstance(frontmatter, dict):
                frontmatter = {}
        except yaml.YAMLError as e:
            logger.warning(
                "frontmatter_parse_error",
                error=str(e),
                yaml_preview=yaml_content[:100],
            )
            frontmatter = {}

        return frontmatter, content[match.end() :]

    def to_plain_text(self, markdown: str) -> str:
        """Strip markdown syntax, keeping one line of text per source line.

        Line structure is preserved so the chunker still sees headings and
        list items as separate lines.
        """
        text = self.FENCE_PATTERN.sub("", markdown)
        text = self.RULE_PATTERN.sub("", text)
        text = self.TABLE_RULE_PATTERN.sub("", text)
        text = self.REFERENCE_DEF_PATTERN.sub("", text)
        text = self.HEADING_PATTERN.sub(r"\1", text)
        text = self.IMAGE_PATTERN.sub(r"\1", text)
        text = self.LINK_PATTERN.sub(r"\1", text)
        text = self.HTML_TAG_PATTERN.sub(" ", text)
        text = self.INLINE_CODE_PATTERN.sub(r"\1", text)
        text = self.EMPHASIS_PATTERN.sub(r"\2", text)
        text = self.UNDERSCORE_EMPHASIS_PATTERN.sub(r"\2", text)
        text = self.BLOCKQUOTE_PATTERN.sub("", text)
        text = self.LIST_MARKER_PATTERN.sub("", text)

        lines = []
        for line in text.split("\n"):
            line = " ".join(line.replace("|", " ").split())
            if line:
                lines.append(line)

        return "\n".join(lines)

"""Load markdown and plain-text notes as Documents.

Handles:
- YAML frontmatter parsing into document metadata
- Title detection (frontmatter, first heading, then file name)
- Recursive discovery of .md and .txt files
"""
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import yaml
import structlog

from notebook_rag.rag.chunker import Document

logger = structlog.get_logger()

SUPPORTED_SUFFIXES = (".md", ".txt")

# Frontmatter fields copied into document metadata
FRONTMATTER_FIELDS = ("title", "tags", "created", "updated", "author", "source")


class MarkdownParser:
    """Parser turning note files into Documents."""

    # YAML frontmatter (must be at start of file)
    FRONTMATTER_PATTERN = re.compile(
        r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL | re.MULTILINE
    )

    HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)$", re.MULTILINE)

    def __init__(self, root: Optional[Path] = None):
        """Initialize the parser.

        Args:
            root: Directory document ids are made relative to
        """
        self.root = root

    def parse_file(self, file_path: Path) -> Document:
        """Parse a note file into a Document.

        Raises:
            FileNotFoundError: If file doesn't exist
            UnicodeDecodeError: If file encoding is invalid
        """
        if not file_path.exists():
            raise FileNotFoundError(f"Note file not found: {file_path}")

        try:
            content = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.error("note_encoding_error", path=str(file_path), error=str(e))
            raise

        if file_path.suffix == ".md":
            frontmatter, body = self._parse_frontmatter(content)
            source_type = "markdown"
        else:
            frontmatter, body = {}, content
            source_type = "text"

        metadata: Dict[str, Any] = {
            "file_path": str(file_path),
            "file_name": file_path.name,
            "source_type": source_type,
        }
        for name in FRONTMATTER_FIELDS:
            if name in frontmatter:
                value = frontmatter[name]
                # Keep metadata JSON-friendly
                if hasattr(value, "isoformat"):
                    value = value.isoformat()
                metadata[name] = value

        title = str(frontmatter.get("title") or self._first_heading(body) or file_path.stem)

        logger.info(
            "note_parsed",
            path=str(file_path),
            has_frontmatter=bool(frontmatter),
            content_length=len(body),
        )

        return Document(
            id=self._document_id(file_path),
            title=title,
            text=body,
            metadata=metadata,
        )

    def _document_id(self, file_path: Path) -> str:
        if self.root is not None:
            try:
                return file_path.relative_to(self.root).as_posix()
            except ValueError:
                pass
        return file_path.as_posix()

    def _parse_frontmatter(self, content: str) -> Tuple[Dict[str, Any], str]:
        """Extract YAML frontmatter from markdown content.

        Returns:
            Tuple of (frontmatter_dict, content_without_frontmatter)
        """
        match = self.FRONTMATTER_PATTERN.match(content)
        if not match:
            return {}, content

        yaml_content = match.group(1)
        try:
            frontmatter = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            logger.warning(
                "frontmatter_parse_error",
                error=str(e),
                yaml_preview=yaml_content[:100],
            )
            frontmatter = None

        if not isinstance(frontmatter, dict):
            frontmatter = {}

        return frontmatter, content[match.end():]

    def _first_heading(self, content: str) -> Optional[str]:
        match = self.HEADING_PATTERN.search(content)
        return match.group(2).strip() if match else None


def discover_notes(notes_dir: Path) -> List[Path]:
    """Find all supported note files under a directory, sorted by path.

    Raises:
        FileNotFoundError: If the directory doesn't exist
    """
    if not notes_dir.exists():
        raise FileNotFoundError(f"Notes directory not found: {notes_dir}")

    files = sorted(
        path
        for path in notes_dir.rglob("*")
        if path.is_file() and path.suffix in SUPPORTED_SUFFIXES
    )

    logger.info("note_files_discovered", count=len(files), notes_dir=str(notes_dir))
    return files


def load_documents(notes_dir: Path) -> List[Document]:
    """Parse every note under a directory into Documents.

    Files that cannot be read or decoded are logged and skipped.
    """
    parser = MarkdownParser(root=notes_dir)
    documents = []
    for path in discover_notes(notes_dir):
        try:
            documents.append(parser.parse_file(path))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("note_skipped", path=str(path), error=str(e))
    return documents

"""Parser for markdown knowledge-base files.

Each file holds one or more entries separated by a ``---`` line::

    ### Title: Stale element reference
    **Summary**: The element was re-rendered between lookup and use.
    **Root Causes**:
    - DOM re-rendered by a framework update
    - Element cached across page navigation
    **Resolution Steps**:
    1. Re-locate the element right before interacting with it
    2. Wait for the page to settle after navigation
    **Tags**: selenium, flaky

The file stem (lower-cased) becomes the category of every entry in it.
"""

from __future__ import annotations

import re
from pathlib import Path

from tracelens.core.models import DocumentEntry
from tracelens.logging import get_logger

logger = get_logger(__name__)

_SECTION_SEPARATOR = re.compile(r"\n\s*---\s*\n")
_TITLE = re.compile(r"^###\s*Title:\s*(.+)$", re.MULTILINE)
_SUMMARY = re.compile(r"\*\*Summary\*\*:\s*(.+)", re.IGNORECASE)
_TAGS = re.compile(r"\*\*Tags\*\*:\s*(.+)", re.IGNORECASE)
_FIELD_HEADER = re.compile(r"^\s*(\*\*[^*]+\*\*:|###\s*Title:)", re.IGNORECASE)
_BULLET = re.compile(r"^[-*]\s*")
_NUMBERED = re.compile(r"^\d+\.\s*")


def _match(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def _extract_list(text: str, headers: tuple[str, ...], item: re.Pattern[str]) -> str | None:
    """Collect list items following the first matching header, stripped of markers."""
    lines = text.splitlines()
    start = None
    for index, line in enumerate(lines):
        if any(line.strip().lower().startswith(header.lower()) for header in headers):
            start = index + 1
            break
    if start is None:
        return None

    items = []
    for line in lines[start:]:
        stripped = line.strip()
        if not stripped:
            continue
        if _FIELD_HEADER.match(stripped) or not item.match(stripped):
            break
        cleaned = item.sub("", stripped, count=1).strip()
        if cleaned:
            items.append(cleaned)
    return "\n".join(items) or None


class DocumentParser:
    """Turns markdown knowledge files into DocumentEntry values."""

    def parse_text(self, text: str, category: str, fallback_title: str) -> DocumentEntry | None:
        """Parse a single entry. Returns None for blank text."""
        if not text or not text.strip():
            return None

        title = _match(_TITLE, text) or fallback_title
        return DocumentEntry(
            category=category,
            title=title,
            content=text.strip(),
            summary=_match(_SUMMARY, text),
            root_causes=_extract_list(text, ("**Root Causes**:",), _BULLET),
            resolution_steps=_extract_list(
                text, ("**Resolution Steps**:", "**Solution**:"), _NUMBERED
            ),
            tags=_match(_TAGS, text),
        )

    def parse_file(self, path: Path) -> list[DocumentEntry]:
        """Parse every entry in a file; unreadable files yield no entries."""
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("document_file_unreadable", path=str(path), error=str(e))
            return []

        category = path.stem.lower()
        documents = []
        for number, section in enumerate(_SECTION_SEPARATOR.split(text), start=1):
            document = self.parse_text(section, category, f"{path.stem}_{number}")
            if document is not None:
                documents.append(document)

        logger.info("document_file_parsed", path=str(path), documents=len(documents))
        return documents

    def parse_directory(self, directory: Path) -> list[DocumentEntry]:
        """Parse all ``*.md`` files in a directory, sorted by name."""
        if not directory.is_dir():
            logger.warning("documents_directory_missing", path=str(directory))
            return []

        documents = []
        for path in sorted(directory.glob("*.md")):
            documents.extend(self.parse_file(path))
        logger.info("documents_parsed", path=str(directory), documents=len(documents))
        return documents

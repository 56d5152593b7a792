# src/reconciler/dom/builder.py
import json
import logging
import re
from typing import Any, List, Optional, Set

from bs4 import BeautifulSoup, Tag

from .models import HeadingNode, PageDocument, SchemaParseError

logger = logging.getLogger(__name__)

JSONLD_TYPE_RE = re.compile(r"application/ld\+json", re.IGNORECASE)
HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
ROBOTS_META_NAMES = {"robots", "googlebot"}


class DocumentBuilder:
    """
    Builder responsible for turning raw HTML into a PageDocument.

    Extracts headings in document order, declared JSON-LD types and the first
    canonical link. Malformed structured data is recorded on the document,
    never raised, so one bad block cannot hide the rest of the page.
    """

    def parse_doc(self, relative_path: str, html: str) -> PageDocument:
        """
        Parses raw HTML content into a PageDocument.

        Args:
            relative_path (str): Path of the file relative to the scan root.
            html (str): The raw HTML string. Offsets on the result refer to this string.

        Returns:
            PageDocument: The extracted representation of the page.
        """
        segments = tuple(s for s in relative_path.replace("\\", "/").split("/") if s)
        if not html:
            return PageDocument(path_segments=segments, raw_content=html or "")

        soup = BeautifulSoup(html, "html.parser")
        line_starts = self._line_starts(html)
        file_label = "/".join(segments)

        headings = self._extract_headings(soup, html, line_starts)
        types, block_count, parse_errors = self._extract_structured_data(soup, html, line_starts, file_label)
        canonical_url, canonical_offset, canonical_count = self._extract_canonical(soup, html, line_starts)

        return PageDocument(
            path_segments=segments,
            raw_content=html,
            headings=headings,
            declared_schema_types=types,
            schema_block_count=block_count,
            schema_parse_errors=parse_errors,
            canonical_url=canonical_url,
            canonical_offset=canonical_offset,
            canonical_count=canonical_count,
            has_noindex=self._has_noindex(soup),
        )

    # --- Offsets ---

    @staticmethod
    def _line_starts(html: str) -> List[int]:
        starts = [0]
        pos = html.find("\n")
        while pos != -1:
            starts.append(pos + 1)
            pos = html.find("\n", pos + 1)
        return starts

    @staticmethod
    def _offset_of(tag: Tag, html: str, line_starts: List[int], search_from: int = 0) -> int:
        """
        Character offset of a tag's '<' in the raw HTML.
        Uses the parser's line/column bookkeeping, falling back to a forward search.
        """
        line = getattr(tag, "sourceline", None)
        col = getattr(tag, "sourcepos", None)
        if line is not None and col is not None and 0 < line <= len(line_starts):
            offset = line_starts[line - 1] + col
            if html.startswith("<", offset):
                return offset

        match = re.compile(rf"<{re.escape(tag.name)}\b", re.IGNORECASE).search(html, search_from)
        return match.start() if match else search_from

    # --- Headings ---

    def _extract_headings(self, soup: BeautifulSoup, html: str, line_starts: List[int]) -> List[HeadingNode]:
        headings = []
        cursor = 0
        for tag in soup.find_all(HEADING_TAGS):
            try:
                level = int(tag.name[1])
            except (ValueError, IndexError, TypeError):
                continue
            offset = self._offset_of(tag, html, line_starts, cursor)
            cursor = offset + 1
            # Collapse whitespace; nested markup contributes text only.
            text = " ".join(tag.get_text().split())
            headings.append(HeadingNode(level=level, text=text, source_offset=offset))
        return headings

    # --- Structured Data (JSON-LD) ---

    def _extract_structured_data(self, soup: BeautifulSoup, html: str, line_starts: List[int], file_label: str):
        types: Set[str] = set()
        errors: List[SchemaParseError] = []
        blocks = soup.find_all("script", attrs={"type": JSONLD_TYPE_RE})

        cursor = 0
        for script in blocks:
            offset = self._offset_of(script, html, line_starts, cursor)
            cursor = offset + 1
            raw = script.string if script.string is not None else script.get_text()
            if not raw or not raw.strip():
                errors.append(SchemaParseError(file=file_label, offset=offset, message="Empty structured-data block"))
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.debug("Malformed JSON-LD in %s at offset %d: %s", file_label, offset, e)
                errors.append(SchemaParseError(file=file_label, offset=offset, message=str(e)))
                continue
            self._collect_types(data, types)

        return types, len(blocks), errors

    def _collect_types(self, data: Any, types: Set[str]) -> None:
        """
        Adds the '@type' values of a parsed block to `types`.
        Walks top-level arrays and '@graph' entities, not nested properties
        (an Article's author Person is not a declared page type).
        """
        if isinstance(data, list):
            for item in data:
                self._collect_types(item, types)
            return
        if not isinstance(data, dict):
            return

        declared = data.get("@type")
        if isinstance(declared, str) and declared.strip():
            types.add(declared.strip())
        elif isinstance(declared, list):
            types.update(t.strip() for t in declared if isinstance(t, str) and t.strip())

        graph = data.get("@graph")
        if isinstance(graph, list):
            for entity in graph:
                self._collect_types(entity, types)
        elif isinstance(graph, dict):
            self._collect_types(graph, types)

    # --- Canonical & Robots ---

    def _extract_canonical(self, soup: BeautifulSoup, html: str, line_starts: List[int]):
        """Returns (href, offset, count). The first canonical link wins."""
        first_href: Optional[str] = None
        first_offset: Optional[int] = None
        count = 0
        for link in soup.find_all("link"):
            rel = link.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "canonical" not in [r.lower() for r in rel]:
                continue
            count += 1
            if count == 1:
                first_href = (link.get("href") or "").strip()
                first_offset = self._offset_of(link, html, line_starts)
        return first_href, first_offset, count

    @staticmethod
    def _has_noindex(soup: BeautifulSoup) -> bool:
        for meta in soup.find_all("meta"):
            name = (meta.get("name") or "").strip().lower()
            if name in ROBOTS_META_NAMES and "noindex" in (meta.get("content") or "").lower():
                return True
        return False

# src/reconciler/dom/models.py
from typing import Optional, List, Set, Tuple
from pydantic import BaseModel, Field


class HeadingNode(BaseModel):
    """A heading (h1-h6) in document order; source_offset is the character index of its opening tag."""
    level: int = Field(ge=1, le=6)
    text: str = ""
    source_offset: int = 0


class SchemaParseError(BaseModel):
    """A JSON-LD block that could not be parsed. Recorded instead of raised."""
    file: str
    offset: int
    message: str


class PageDocument(BaseModel):
    """
    One on-disk HTML file under analysis.

    Built fresh by the DocumentBuilder on every scan. raw_content is the snapshot
    the offsets refer to; a fix produces new content and thereby a new document.
    """
    path_segments: Tuple[str, ...]
    raw_content: str = ""

    headings: List[HeadingNode] = Field(default_factory=list)

    # --- Structured Data ---
    declared_schema_types: Set[str] = Field(default_factory=set)
    schema_block_count: int = 0
    schema_parse_errors: List[SchemaParseError] = Field(default_factory=list)

    # --- Canonical / Indexing ---
    canonical_url: Optional[str] = None
    canonical_offset: Optional[int] = None
    canonical_count: int = 0
    has_noindex: bool = False

    @property
    def relative_path(self) -> str:
        """POSIX form of the path relative to the scan root, e.g. 'blog/post.html'."""
        return "/".join(self.path_segments)

    @property
    def h1_count(self) -> int:
        return sum(1 for h in self.headings if h.level == 1)

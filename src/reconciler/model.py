from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


class ViolationCategory(str, Enum):
    # Headings
    DUPLICATE_H1 = "DuplicateH1"
    SKIPPED_HEADING_LEVEL = "SkippedHeadingLevel"
    ORPHANED_HEADING = "OrphanedHeading"
    # Canonical
    NON_CANONICAL_DOMAIN = "NonCanonicalDomain"
    INSECURE_CANONICAL = "InsecureCanonical"
    HTML_EXTENSION_IN_CANONICAL = "HtmlExtensionInCanonical"
    AMP_CANONICAL_MISMATCH = "AmpCanonicalMismatch"
    CANONICAL_PATH_MISMATCH = "CanonicalPathMismatch"
    MISSING_CANONICAL = "MissingCanonical"
    DUPLICATE_CANONICAL = "DuplicateCanonical"
    # Structured data
    MISSING_SCHEMA = "MissingSchema"
    SCHEMA_PARSE_ERROR = "SchemaParseError"


CANONICAL_CATEGORIES = frozenset({
    ViolationCategory.NON_CANONICAL_DOMAIN,
    ViolationCategory.INSECURE_CANONICAL,
    ViolationCategory.HTML_EXTENSION_IN_CANONICAL,
    ViolationCategory.AMP_CANONICAL_MISMATCH,
    ViolationCategory.CANONICAL_PATH_MISMATCH,
})


class Violation(BaseModel):
    """
    A single finding produced by the rule evaluator for one file.
    Immutable once created; collected into a FileResult.
    """
    model_config = ConfigDict(frozen=True)

    file: str
    category: ViolationCategory
    detail: str
    severity: Severity


class PageConfigEntry(BaseModel):
    """
    Declarative expectation for one logical page, as loaded from the page-config JSON.
    Accepts both the camelCase keys of the config file and the snake_case field names.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    page_id: str
    content_type: str = Field(default="WebPage", alias="type")
    required_schema_types: List[str] = Field(default_factory=list, alias="requiredSchemas")

    @field_validator('required_schema_types', mode='before')
    @classmethod
    def parse_required(cls, v: Any) -> List[str]:
        """Allows a single type given as a string and drops blanks/duplicates (order kept)."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        seen: List[str] = []
        for item in v:
            if not isinstance(item, str):
                raise ValueError(f"requiredSchemas entries must be strings, got {type(item).__name__}")
            item = item.strip()
            if item and item not in seen:
                seen.append(item)
        return seen


class ScanPolicy(BaseModel):
    """
    Run-wide settings consumed by the rules, built from settings.json plus CLI flags.
    """
    model_config = ConfigDict(frozen=True)

    site_origin: str = "https://www.example.com"
    require_www: bool = True
    strict: bool = False
    amp_index_pages: List[str] = Field(default_factory=lambda: ["amp/index.html"])
    non_indexable_paths: List[str] = Field(default_factory=list)

    @classmethod
    def from_config(cls, config, **overrides) -> "ScanPolicy":
        """
        Builds a policy from a ConfigManager-like object (anything with get_nested).
        Overrides that are None are ignored so CLI defaults do not mask settings.
        """
        values = {
            "site_origin": config.get_nested("site.origin", "https://www.example.com"),
            "require_www": config.get_nested("site.require_www", True),
            "strict": config.get_nested("canonical.strict", False),
            "amp_index_pages": config.get_nested("canonical.amp_index_pages", ["amp/index.html"]),
            "non_indexable_paths": config.get_nested("canonical.non_indexable_paths", []),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class HeadingMapEntry(BaseModel):
    index: int
    level: int
    text: str


class FileResult(BaseModel):
    """
    Per-file outcome of a scan. Files that could not be read carry status 'error'
    and an error message, and are excluded from the valid/invalid counts.
    """
    file: str
    status: Literal["valid", "invalid", "error"]
    heading_count: int = 0
    heading_map: List[HeadingMapEntry] = Field(default_factory=list)
    declared_schema_types: List[str] = Field(default_factory=list)
    schema_block_count: int = 0
    schema_parse_errors: List[Dict[str, Any]] = Field(default_factory=list)
    canonical: Optional[str] = None
    errors: int = 0
    warnings: int = 0
    violations: List[Violation] = Field(default_factory=list)
    modified: bool = False
    fixes: List[str] = Field(default_factory=list)
    # Fix run only: the canonical was checked and already matched.
    already_correct: bool = False
    error: Optional[str] = None


class FixOutcome(BaseModel):
    new_content: str
    changed: bool = False
    fixes: List[str] = Field(default_factory=list)
    already_correct: bool = False


class ScanReport(BaseModel):
    """
    Aggregate of one reconciler run. Written as JSON, overwriting the previous report.
    """
    total: int = 0
    valid: int = 0
    invalid: int = 0
    errors: int = 0
    warnings: int = 0
    fixed: int = 0
    already_correct: int = 0
    io_errors: int = 0
    per_category_counts: Dict[str, int] = Field(default_factory=dict)
    top_offenders: List[Dict[str, Any]] = Field(default_factory=list)
    coverage: Dict[str, List[str]] = Field(default_factory=dict)
    run_warnings: List[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    results: List[FileResult] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return self.errors > 0

from fnmatch import fnmatch
from typing import List
from urllib.parse import urlparse

from reconciler.model import Severity, ViolationCategory
from reconciler.utils.url_utils import UrlUtils
from ..core import RuleContext, RuleDefinition, RuleResult, audit_spec


def is_amp_index_page(ctx: RuleContext) -> bool:
    """True if the document is one of the configured AMP index pages."""
    path = ctx.doc.relative_path.lower()
    return any(path == p.strip("/").lower() for p in ctx.policy.amp_index_pages)


def is_non_indexable(ctx: RuleContext) -> bool:
    """Pages carrying a noindex directive, or matching a configured path pattern, need no canonical."""
    if ctx.doc.has_noindex:
        return True
    path = ctx.doc.relative_path
    return any(fnmatch(path, pattern) for pattern in ctx.policy.non_indexable_paths)


# --- AUDIT RULES ---


@audit_spec(categories=[
    ViolationCategory.NON_CANONICAL_DOMAIN,
    ViolationCategory.INSECURE_CANONICAL,
    ViolationCategory.HTML_EXTENSION_IN_CANONICAL,
    ViolationCategory.AMP_CANONICAL_MISMATCH,
    ViolationCategory.CANONICAL_PATH_MISMATCH,
])
def check_canonical_format(ctx: RuleContext) -> List[RuleResult]:
    """Validates the domain, scheme and shape of a declared canonical URL."""
    canonical = ctx.doc.canonical_url
    if canonical is None:
        return []

    res = []
    policy = ctx.policy
    expected_host = UrlUtils.canonical_host(policy.site_origin, policy.require_www)
    amp_index = is_amp_index_page(ctx)

    try:
        host = (urlparse(canonical).hostname or "").lower()
    except ValueError:
        host = ""

    if host != expected_host:
        res.append((
            ViolationCategory.NON_CANONICAL_DOMAIN,
            f"Canonical not on {expected_host}: '{canonical}'",
            Severity.ERROR
        ))
    if not canonical.startswith("https://"):
        res.append((
            ViolationCategory.INSECURE_CANONICAL,
            f"Canonical not HTTPS: '{canonical}'",
            Severity.ERROR
        ))
    if ".html" in canonical.lower():
        res.append((
            ViolationCategory.HTML_EXTENSION_IN_CANONICAL,
            f"Canonical has .html extension: '{canonical}'",
            Severity.ERROR
        ))
    if UrlUtils.is_amp_path(canonical) and not amp_index:
        res.append((
            ViolationCategory.AMP_CANONICAL_MISMATCH,
            f"Canonical points to an AMP URL, expected the non-AMP page: '{canonical}'",
            Severity.ERROR
        ))

    if not res and not amp_index:
        expected = UrlUtils.to_canonical_url(ctx.doc.relative_path, policy.site_origin, policy.require_www)
        if canonical != expected:
            res.append((
                ViolationCategory.CANONICAL_PATH_MISMATCH,
                f"Canonical '{canonical}' does not match page URL '{expected}'",
                Severity.WARNING
            ))
    return res


@audit_spec(categories=[ViolationCategory.MISSING_CANONICAL, ViolationCategory.DUPLICATE_CANONICAL])
def check_canonical_presence(ctx: RuleContext) -> List[RuleResult]:
    """Ensures indexable pages declare exactly one canonical link."""
    doc = ctx.doc
    if doc.canonical_url is None:
        if is_non_indexable(ctx):
            return []
        severity = Severity.ERROR if ctx.policy.strict else Severity.WARNING
        return [(ViolationCategory.MISSING_CANONICAL, "Document missing canonical link", severity)]

    if doc.canonical_count > 1:
        return [(
            ViolationCategory.DUPLICATE_CANONICAL,
            f"{doc.canonical_count} canonical links declared, the first one is used",
            Severity.WARNING
        )]
    return []


# --- RULE DEFINITION ---
DEFINITION = RuleDefinition(
    name="canonical",
    order=20,
    rules=[check_canonical_format, check_canonical_presence]
)

from typing import List

from reconciler.model import Severity, ViolationCategory
from ..core import RuleContext, RuleDefinition, RuleResult, audit_spec


# --- AUDIT RULES ---


@audit_spec(categories=[
    ViolationCategory.DUPLICATE_H1,
    ViolationCategory.SKIPPED_HEADING_LEVEL,
    ViolationCategory.ORPHANED_HEADING,
])
def check_heading_hierarchy(ctx: RuleContext) -> List[RuleResult]:
    """
    Rule: headings must descend one level at a time and a page has one H1.

    A page may open at any level. After that, a heading more than one level
    deeper than its predecessor is a skip; a second H1 is a duplicate; an H4+
    with no earlier heading one level up is orphaned.
    """
    results = []
    previous_level = 0
    seen_levels = set()
    h1_seen = False

    for index, heading in enumerate(ctx.doc.headings, start=1):
        level = heading.level
        label = f"#{index} H{level} '{heading.text[:50]}'"

        if level == 1:
            if h1_seen:
                results.append((
                    ViolationCategory.DUPLICATE_H1,
                    f"{label}: multiple H1 tags, only one is allowed per page",
                    Severity.ERROR
                ))
            h1_seen = True

        if previous_level > 0 and level > previous_level + 1:
            results.append((
                ViolationCategory.SKIPPED_HEADING_LEVEL,
                f"{label}: skipped heading level H{previous_level} -> H{level}, use H{previous_level + 1}",
                Severity.WARNING
            ))

        if level >= 4 and (level - 1) not in seen_levels:
            results.append((
                ViolationCategory.ORPHANED_HEADING,
                f"{label}: H{level} without parent H{level - 1}",
                Severity.WARNING
            ))

        seen_levels.add(level)
        previous_level = level

    return results


# --- RULE DEFINITION ---
DEFINITION = RuleDefinition(
    name="headings",
    order=10,
    rules=[check_heading_hierarchy]
)

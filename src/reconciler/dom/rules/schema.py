from typing import List

from reconciler.model import Severity, ViolationCategory
from ..core import RuleContext, RuleDefinition, RuleResult, audit_spec


# --- AUDIT RULES ---


@audit_spec(categories=[ViolationCategory.MISSING_SCHEMA])
def check_required_schemas(ctx: RuleContext) -> List[RuleResult]:
    """
    Rule: every schema type required by the page config must be declared on the page.
    Pages without a config entry are not checked here (see the coverage audit).
    """
    if ctx.config is None:
        return []

    declared = ctx.doc.declared_schema_types
    return [
        (ViolationCategory.MISSING_SCHEMA, required, Severity.ERROR)
        for required in ctx.config.required_schema_types
        if required not in declared
    ]


@audit_spec(categories=[ViolationCategory.SCHEMA_PARSE_ERROR])
def check_schema_parse_errors(ctx: RuleContext) -> List[RuleResult]:
    """Forwards malformed JSON-LD blocks found during extraction as warnings."""
    return [
        (
            ViolationCategory.SCHEMA_PARSE_ERROR,
            f"Invalid JSON-LD block at offset {err.offset}: {err.message}",
            Severity.WARNING
        )
        for err in ctx.doc.schema_parse_errors
    ]


# --- RULE DEFINITION ---
DEFINITION = RuleDefinition(
    name="schema",
    order=30,
    rules=[check_required_schemas, check_schema_parse_errors]
)

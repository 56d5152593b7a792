# src/reconciler/dom/evaluator.py
import logging
from typing import List, Optional

from reconciler.model import PageConfigEntry, ScanPolicy, Violation
from .core import RuleContext
from .models import PageDocument
from .registry import RuleRegistry

logger = logging.getLogger(__name__)


class RuleEvaluator:
    """
    Applies every registered rule to an extracted PageDocument.

    Rules run in registry order (headings, canonical, schema) so that the
    violation list of a file is deterministic. The evaluator never raises:
    a failing rule is logged and skipped, the others still run.
    """

    def __init__(self):
        """Initializes the evaluator by discovering and loading all available rules."""
        RuleRegistry.discover()
        self.rules = RuleRegistry.get_all_rules()

    def evaluate(
            self,
            doc: PageDocument,
            config: Optional[PageConfigEntry] = None,
            policy: Optional[ScanPolicy] = None
    ) -> List[Violation]:
        """
        Runs the rule suite on a document.

        Args:
            doc (PageDocument): The extracted page.
            config (Optional[PageConfigEntry]): The page's config entry, if any.
            policy (Optional[ScanPolicy]): Run policy; defaults apply when omitted.

        Returns:
            List[Violation]: Findings in rule order.
        """
        ctx = RuleContext(doc=doc, config=config, policy=policy or ScanPolicy())
        violations: List[Violation] = []

        for rule in self.rules:
            try:
                results = rule(ctx)
            except Exception as e:
                logger.error(
                    "Rule %s failed on %s: %s", getattr(rule, "__name__", rule), doc.relative_path, e,
                    exc_info=True
                )
                continue

            for (category, detail, severity) in results or []:
                violations.append(Violation(
                    file=doc.relative_path,
                    category=category,
                    detail=detail,
                    severity=severity
                ))

        return violations

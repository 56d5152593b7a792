from typing import Any, List, Callable, Optional, Tuple, Set
from pydantic import BaseModel, ConfigDict

from reconciler.model import PageConfigEntry, ScanPolicy, Severity, ViolationCategory
from .models import PageDocument


def audit_spec(categories: List[ViolationCategory]):
    """
    Decorator to declare which violation categories a rule function can return.
    Facilitates auto-discovery by the RuleRegistry.
    """
    def decorator(func):
        func.defined_categories = categories
        return func
    return decorator


class RuleContext(BaseModel):
    """
    Everything a rule may look at for one document: the extracted page, its
    page-config entry (None when the page is not configured) and the run policy.
    """
    model_config = ConfigDict(frozen=True)

    doc: PageDocument
    config: Optional[PageConfigEntry] = None
    policy: ScanPolicy


# Type alias for rule findings: (Category, Detail, Severity)
RuleResult = Tuple[ViolationCategory, str, Severity]

Rule = Callable[[RuleContext], List[RuleResult]]


class RuleDefinition:
    """
    Configuration object grouping related rules under one name.
    Definitions are evaluated in ascending `order` so report ordering is stable.
    """

    def __init__(
            self,
            name: str,
            rules: Optional[List[Rule]] = None,
            order: int = 100,
            possible_categories: Optional[List[ViolationCategory]] = None
    ):
        self.name = name
        self.rules = rules or []
        self.order = order

        # --- Auto-Discovery of Categories ---
        final: Set[Any] = set(possible_categories or [])
        for rule in self.rules:
            if hasattr(rule, 'defined_categories'):
                final.update(rule.defined_categories)

        self.categories = sorted(final, key=lambda c: c.value)

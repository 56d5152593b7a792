# src/reconciler/dom/registry.py
import importlib
import pkgutil
import logging
from typing import List, Set

from reconciler.model import ViolationCategory
from .core import Rule, RuleDefinition

logger = logging.getLogger(__name__)


class RuleRegistry:
    """
    Central registry for reconciliation rules.

    Dynamically discovers RuleDefinition modules in the 'reconciler.dom.rules'
    package and exposes their rules in a fixed, definition-ordered sequence.
    """

    _definitions: List[RuleDefinition] = []
    _all_categories: Set[ViolationCategory] = set()
    _loaded: bool = False

    @classmethod
    def discover(cls) -> None:
        """
        Discovers and registers all rule definitions found in 'reconciler.dom.rules'.

        Every module exposing a `DEFINITION` (instance of `RuleDefinition`) is
        registered; definitions are kept sorted by their `order` attribute.
        """
        if cls._loaded:
            return

        try:
            import reconciler.dom.rules as rules_pkg

            found: List[RuleDefinition] = []
            for _, name, _ in sorted(pkgutil.iter_modules(rules_pkg.__path__), key=lambda m: m[1]):
                full_name = f"reconciler.dom.rules.{name}"
                try:
                    module = importlib.import_module(full_name)
                except Exception as e:
                    logger.error(f"Error loading rule module {name}: {e}", exc_info=True)
                    continue

                defn = getattr(module, "DEFINITION", None)
                if isinstance(defn, RuleDefinition):
                    found.append(defn)
                    cls._all_categories.update(defn.categories)
                    logger.debug(f"Rules loaded: {defn.name} ({len(defn.rules)} rules)")

            cls._definitions = sorted(found, key=lambda d: (d.order, d.name))
            cls._loaded = True
        except ImportError as e:
            logger.error(f"Could not find rules package: {e}")

    @classmethod
    def get_definitions(cls) -> List[RuleDefinition]:
        return list(cls._definitions)

    @classmethod
    def get_all_rules(cls) -> List[Rule]:
        """Returns every registered rule, in evaluation order."""
        return [rule for defn in cls._definitions for rule in defn.rules]

    @classmethod
    def get_all_possible_categories(cls) -> List[ViolationCategory]:
        """
        Returns all violation categories the registered rules can produce.
        Used by the ReportController to report zero counts explicitly.
        """
        return sorted(cls._all_categories, key=lambda c: c.value)

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from reconciler.managers.page_config_manager import PageConfigManager
from reconciler.model import PageConfigEntry

logger = logging.getLogger(__name__)

NO_STRUCTURED_DATA = "no_structured_data"
UNCONFIGURED = "unconfigured"
CONFIGURED_COMPLETE = "configured_complete"
CONFIGURED_INCOMPLETE = "configured_incomplete"
NOT_BUILT = "not_built"

COVERAGE_BUCKETS = (NO_STRUCTURED_DATA, UNCONFIGURED, CONFIGURED_COMPLETE, CONFIGURED_INCOMPLETE, NOT_BUILT)


class CoverageAuditService:
    """
    Classifies scanned pages by structured-data coverage against the page config.

    Pages without a config entry are surfaced here instead of as per-file
    violations. Configured pages that were not found in the scan are listed
    as 'not_built'.
    """

    def __init__(self, page_config: PageConfigManager):
        self.page_config = page_config

    def classify(
            self,
            relative_path: str,
            block_count: int,
            declared_types: Iterable[str],
            scanned_paths: Optional[Iterable[str]] = None
    ) -> str:
        entry = self.page_config.lookup_for_path(relative_path, scanned_paths)
        return self._bucket(entry, block_count, declared_types)

    @staticmethod
    def _bucket(entry: Optional[PageConfigEntry], block_count: int, declared_types: Iterable[str]) -> str:
        if entry is None:
            return UNCONFIGURED if block_count else NO_STRUCTURED_DATA
        declared = set(declared_types)
        if all(t in declared for t in entry.required_schema_types):
            return CONFIGURED_COMPLETE
        return CONFIGURED_INCOMPLETE

    def build(
            self,
            pages: List[Tuple[str, int, Iterable[str]]],
            scanned_paths: Optional[Iterable[str]] = None
    ) -> Dict[str, List[str]]:
        """
        Args:
            pages: (relative_path, schema_block_count, declared_types) per successfully read file.
            scanned_paths: Every file of the run, unreadable ones included. Defaults to the
                paths in `pages`; used to decide which file a bare-stem key belongs to.

        Returns:
            Mapping of bucket name to sorted page paths (page ids for 'not_built').
        """
        buckets: Dict[str, List[str]] = {name: [] for name in COVERAGE_BUCKETS}
        matched_ids = set()
        paths = list(scanned_paths) if scanned_paths is not None else []
        known = set(paths)
        entries = self.page_config.resolve_paths(paths + [p[0] for p in pages if p[0] not in known])

        for relative_path, block_count, declared in pages:
            entry = entries[relative_path]
            buckets[self._bucket(entry, block_count, declared)].append(relative_path)
            if entry is not None:
                matched_ids.add(entry.page_id)

        buckets[NOT_BUILT] = [pid for pid in self.page_config.page_ids() if pid not in matched_ids]
        for name in buckets:
            buckets[name].sort()

        if buckets[NOT_BUILT]:
            logger.info(f"{len(buckets[NOT_BUILT])} configured pages were not found in the scan")
        return buckets


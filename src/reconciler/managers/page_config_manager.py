# src/reconciler/managers/page_config_manager.py
import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from reconciler.model import PageConfigEntry
from reconciler.utils.url_utils import UrlUtils

logger = logging.getLogger(__name__)

# Sections of the sectioned page-config layout; anything else is read as a flat mapping.
CONFIG_SECTIONS = ("pages", "blogPosts", "caseStudies")


class PageConfigManager:
    """
    Read-only view of the page configuration (page id -> required schema types).

    Loaded once per run. A missing or malformed file never fails the run: the
    manager degrades to "no config for any page" and exposes a single
    `load_warning` for the report.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path
        self.load_warning: Optional[str] = None
        self._entries: Dict[str, PageConfigEntry] = {}
        if config_path is not None:
            self._entries = self._load(config_path)

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "PageConfigManager":
        """Builds a manager from an already parsed config (tests, programmatic use)."""
        manager = cls()
        manager._entries = manager._parse(mapping)
        return manager

    def _load(self, path: Path) -> Dict[str, PageConfigEntry]:
        if not path.exists():
            self.load_warning = f"Page config not found at {path}; required-schema checks disabled"
            logger.warning(self.load_warning)
            return {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.load_warning = f"Page config {path} could not be read ({e}); required-schema checks disabled"
            logger.warning(self.load_warning)
            return {}

        if not isinstance(data, dict):
            self.load_warning = f"Page config {path} is not a JSON object; required-schema checks disabled"
            logger.warning(self.load_warning)
            return {}

        entries = self._parse(data)
        logger.info(f"Loaded {len(entries)} page config entries from {path}")
        return entries

    def _parse(self, data: Dict[str, Any]) -> Dict[str, PageConfigEntry]:
        """Accepts the sectioned layout (pages/blogPosts/caseStudies) or a flat mapping."""
        if any(section in data for section in CONFIG_SECTIONS):
            raw_items = []
            for section in CONFIG_SECTIONS:
                block = data.get(section) or {}
                if isinstance(block, dict):
                    raw_items.extend(block.items())
                else:
                    logger.warning(f"Page config section '{section}' is not an object; skipped")
        else:
            raw_items = list(data.items())

        entries: Dict[str, PageConfigEntry] = {}
        for key, value in raw_items:
            page_id = self.normalize_page_id(key)
            if not page_id or not isinstance(value, dict):
                logger.warning(f"Skipping malformed page config entry '{key}'")
                continue
            try:
                entries[page_id] = PageConfigEntry(page_id=page_id, **{
                    k: v for k, v in value.items() if k in ("type", "requiredSchemas")
                })
            except ValidationError as e:
                logger.warning(f"Skipping invalid page config entry '{key}': {e.errors()[0].get('msg')}")
        return entries

    @staticmethod
    def normalize_page_id(key: str) -> str:
        """'faq.html' -> 'faq', '/blog/post.html' -> 'blog/post'."""
        return UrlUtils.page_id_for(str(key), full=True)

    # --- Lookup ---

    def lookup(self, page_id: str) -> Optional[PageConfigEntry]:
        """Returns the entry for a page id, or None when the page is not configured."""
        return self._entries.get(self.normalize_page_id(page_id))

    def lookup_for_path(
            self,
            relative_path: str,
            scanned_paths: Optional[Iterable[str]] = None
    ) -> Optional[PageConfigEntry]:
        """
        Resolves a scanned file to its config entry: the full path stem ('blog/post')
        wins over the bare filename stem ('post'). See resolve_paths for when the
        bare stem applies if other scanned paths are given.
        """
        paths = list(scanned_paths) if scanned_paths is not None else []
        if relative_path not in paths:
            paths.append(relative_path)
        return self.resolve_paths(paths)[relative_path]

    def resolve_paths(self, relative_paths: Iterable[str]) -> Dict[str, Optional[PageConfigEntry]]:
        """
        Resolves every scanned file at once.

        A bare-stem key only falls back to a file when that file is the single
        unmatched scanned file with this stem, and no scanned file claims the key
        through its full path stem ('index' belongs to index.html, never to
        blog/index.html).
        """
        paths = list(relative_paths)
        resolved: Dict[str, Optional[PageConfigEntry]] = {}
        full_ids = {}
        for rel_path in paths:
            full_ids[rel_path] = UrlUtils.page_id_for(rel_path, full=True)
            resolved[rel_path] = self._entries.get(full_ids[rel_path])

        claimed = set(full_ids.values())
        candidates: Dict[str, List[str]] = defaultdict(list)
        for rel_path in paths:
            if resolved[rel_path] is None:
                candidates[UrlUtils.page_id_for(rel_path)].append(rel_path)

        for stem, owners in candidates.items():
            if stem in claimed or len(owners) != 1:
                if stem in self._entries:
                    logger.debug(f"Page config key '{stem}' is ambiguous for {owners}; not applied")
                continue
            resolved[owners[0]] = self._entries.get(stem)
        return resolved

    def page_ids(self) -> List[str]:
        return sorted(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

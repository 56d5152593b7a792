import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_DENY_DIRS = ("node_modules", "i18n")


class FileWalkService:
    """
    Lists the HTML files of a scan root.

    Returns POSIX paths relative to the root, sorted lexicographically, so the
    scan order (and everything derived from it) is reproducible.
    """

    def __init__(self, deny_dirs: Optional[Iterable[str]] = None):
        self.deny_dirs = set(DEFAULT_DENY_DIRS if deny_dirs is None else deny_dirs)

    def _skip_dir(self, name: str) -> bool:
        return name.startswith(".") or name in self.deny_dirs

    def iter_html_files(self, root: Path) -> List[str]:
        if not root.is_dir():
            raise FileNotFoundError(f"Scan root does not exist or is not a directory: {root}")

        found: List[str] = []
        for current, dirs, files in os.walk(root):
            # Prune in place so os.walk does not descend into skipped directories.
            dirs[:] = sorted(d for d in dirs if not self._skip_dir(d))
            for name in files:
                if name.startswith(".") or not name.lower().endswith(".html"):
                    continue
                rel = Path(current, name).relative_to(root)
                found.append(rel.as_posix())

        found.sort()
        logger.debug(f"Found {len(found)} HTML files under {root}")
        return found

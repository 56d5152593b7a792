# src/reconciler/utils/path_utils.py
from typing import Optional

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving important package and report paths.
    """

    # --- Package specific paths

    @staticmethod
    def get_package_root() -> Path:
        """Returns the directory of the installed 'reconciler' package."""
        return Path(__file__).resolve().parent.parent

    @staticmethod
    def get_settings_file() -> Path:
        """Returns the path of the settings.json shipped with the package."""
        return PathUtils.get_package_root() / "settings.json"

    # --- Run specific paths ---

    @staticmethod
    def resolve(path: str, base_dir: Optional[Path] = None) -> Path:
        """
        Resolves a possibly relative path against base_dir (default: the working directory).
        """
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return (base_dir or Path.cwd()) / candidate

    @staticmethod
    def ensure_parent_dir(path: Path) -> Path:
        """Creates the parent directory of a file path if needed and returns the path."""
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

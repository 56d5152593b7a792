import json
import logging
from pathlib import Path
from typing import Optional

from reconciler.model import ScanReport
from reconciler.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)


class ReportManager:
    """
    Manages storage of scan reports.
    Each run overwrites the previous report at the same location.
    """

    def save_report(self, report: ScanReport, output_path: Path) -> Optional[Path]:
        """
        Writes the report as indented JSON, creating parent directories.
        Returns the written path, or None if the file could not be written.
        """
        try:
            PathUtils.ensure_parent_dir(output_path)
            payload = report.model_dump(mode="json")
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            logger.debug(f"Report written to {output_path}")
            return output_path
        except OSError as e:
            logger.error(f"Failed to save report '{output_path}': {e}")
            return None

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from reconciler.dom.registry import RuleRegistry
from reconciler.model import FileResult, ScanReport, Severity
from reconciler.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["File", "Category", "Severity", "Detail"]


class ReportController:
    """
    Aggregates per-file results into a ScanReport and produces flat exports.

    Results are sorted by file path before anything is derived from them, so
    the report never depends on traversal or worker completion order.
    """

    def __init__(self, top_offenders: int = 10):
        self.top_offenders = top_offenders
        RuleRegistry.discover()

    # --- HELPERS ---

    @staticmethod
    def _violations_df(results: List[FileResult]) -> pd.DataFrame:
        rows = [
            {"file": v.file, "category": v.category.value, "severity": v.severity.value, "detail": v.detail}
            for r in results
            for v in r.violations
        ]
        return pd.DataFrame(rows, columns=["file", "category", "severity", "detail"])

    def _category_counts(self, df: pd.DataFrame) -> Dict[str, int]:
        counts = {c.value: 0 for c in RuleRegistry.get_all_possible_categories()}
        if not df.empty:
            for category, count in df.groupby("category").size().items():
                counts[str(category)] = int(count)
        return dict(sorted(counts.items()))

    def _top_offenders(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        if df.empty or self.top_offenders <= 0:
            return []

        grouped = df.assign(is_error=df["severity"] == Severity.ERROR.value).groupby("file").agg(
            violations=("category", "size"),
            errors=("is_error", "sum"),
        ).reset_index()
        grouped = grouped.sort_values(
            ["violations", "errors", "file"], ascending=[False, False, True], kind="mergesort"
        ).head(self.top_offenders)

        return [
            {"file": row.file, "violations": int(row.violations), "errors": int(row.errors)}
            for row in grouped.itertuples(index=False)
        ]

    # --- REPORT ---

    def build(
            self,
            results: List[FileResult],
            coverage: Optional[Dict[str, List[str]]] = None,
            run_warnings: Optional[List[str]] = None
    ) -> ScanReport:
        """
        Builds the aggregate report.

        'valid' files have no ERROR violations; files with status 'error' could not
        be read and are counted separately as io_errors.
        """
        ordered = sorted(results, key=lambda r: r.file)
        scanned = [r for r in ordered if r.status != "error"]
        df = self._violations_df(scanned)

        report = ScanReport(
            total=len(scanned),
            valid=sum(1 for r in scanned if r.status == "valid"),
            invalid=sum(1 for r in scanned if r.status == "invalid"),
            errors=sum(r.errors for r in scanned),
            warnings=sum(r.warnings for r in scanned),
            fixed=sum(1 for r in scanned if r.modified),
            already_correct=sum(1 for r in scanned if r.already_correct),
            io_errors=len(ordered) - len(scanned),
            per_category_counts=self._category_counts(df),
            top_offenders=self._top_offenders(df),
            coverage=coverage or {},
            run_warnings=list(run_warnings or []),
            results=ordered,
        )
        logger.info(
            f"Report built: {report.total} files, {report.valid} valid, {report.invalid} invalid, "
            f"{report.errors} errors, {report.warnings} warnings"
        )
        return report

    # --- EXPORT ---

    @staticmethod
    def export_rows(report: ScanReport) -> List[Dict[str, Any]]:
        """One row per violation, plus one row per unreadable file."""
        rows = []
        for result in report.results:
            if result.status == "error":
                rows.append({"File": result.file, "Category": "IOError", "Severity": "ERROR",
                             "Detail": result.error or ""})
                continue
            for v in result.violations:
                rows.append({"File": v.file, "Category": v.category.value, "Severity": v.severity.value,
                             "Detail": v.detail})
        return rows

    def export_csv(self, report: ScanReport, path: Path) -> Path:
        """Writes the flat violation rows to CSV."""
        df = pd.DataFrame(self.export_rows(report), columns=EXPORT_COLUMNS)
        PathUtils.ensure_parent_dir(path)
        df.to_csv(path, index=False)
        logger.info(f"Exported {len(df)} rows to {path}")
        return path

    @staticmethod
    def common_issues(report: ScanReport, limit: int = 5) -> List[tuple]:
        """Most frequent non-zero categories, most frequent first (ties by name)."""
        present = [(cat, n) for cat, n in report.per_category_counts.items() if n > 0]
        return sorted(present, key=lambda item: (-item[1], item[0]))[:limit]

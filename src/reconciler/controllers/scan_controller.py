import logging
from concurrent.futures import ProcessPoolExecutor
from functools import partial
from pathlib import Path
from typing import List, Optional, Tuple

from tqdm.auto import tqdm

from reconciler.controllers.report_controller import ReportController
from reconciler.dom.builder import DocumentBuilder
from reconciler.dom.evaluator import RuleEvaluator
from reconciler.dom.models import PageDocument
from reconciler.managers.page_config_manager import PageConfigManager
from reconciler.model import (
    FileResult,
    HeadingMapEntry,
    PageConfigEntry,
    ScanPolicy,
    ScanReport,
    Severity,
    Violation,
)
from reconciler.services.coverage_audit_service import CoverageAuditService
from reconciler.services.file_walk_service import FileWalkService
from reconciler.services.fix_service import FixService

logger = logging.getLogger(__name__)


def _read_text(path: Path) -> str:
    # newline="" keeps CRLF intact so offsets and write-back match the file on disk.
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def _write_text(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def _to_result(
        doc: PageDocument,
        violations: List[Violation],
        modified: bool = False,
        fixes: Optional[List[str]] = None,
        error: Optional[str] = None,
        already_correct: bool = False
) -> FileResult:
    errors = sum(1 for v in violations if v.severity == Severity.ERROR)
    warnings = len(violations) - errors
    heading_map = [
        HeadingMapEntry(
            index=i,
            level=h.level,
            text=h.text[:50] + ("..." if len(h.text) > 50 else "")
        )
        for i, h in enumerate(doc.headings, start=1)
    ]
    return FileResult(
        file=doc.relative_path,
        status="valid" if errors == 0 else "invalid",
        heading_count=len(doc.headings),
        heading_map=heading_map,
        declared_schema_types=sorted(doc.declared_schema_types),
        schema_block_count=doc.schema_block_count,
        schema_parse_errors=[e.model_dump() for e in doc.schema_parse_errors],
        canonical=doc.canonical_url,
        errors=errors,
        warnings=warnings,
        violations=violations,
        modified=modified,
        fixes=fixes or [],
        already_correct=already_correct,
        error=error,
    )


def _worker_scan_file(
        task: Tuple[str, Optional[PageConfigEntry]],
        root: Path,
        policy: ScanPolicy,
        fix: bool
) -> FileResult:
    """
    Scans a single file: read, extract, evaluate and optionally fix.
    Runs in-process or in a worker process; a failure only affects this file.
    """
    rel_path, entry = task
    path = root / rel_path

    try:
        html = _read_text(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read {rel_path}: {e}")
        return FileResult(file=rel_path, status="error", error=str(e))

    try:
        builder = DocumentBuilder()
        evaluator = RuleEvaluator()

        doc = builder.parse_doc(rel_path, html)
        violations = evaluator.evaluate(doc, entry, policy)

        if not fix:
            return _to_result(doc, violations)

        outcome = FixService(policy).apply_fixes(doc, violations)
        if not outcome.changed:
            return _to_result(doc, violations, already_correct=outcome.already_correct)

        try:
            _write_text(path, outcome.new_content)
        except OSError as e:
            logger.error(f"Could not write fixes to {rel_path}: {e}")
            return _to_result(doc, violations, error=f"write failed: {e}")

        # Report what is left after the rewrite.
        fixed_doc = builder.parse_doc(rel_path, outcome.new_content)
        remaining = evaluator.evaluate(fixed_doc, entry, policy)
        return _to_result(fixed_doc, remaining, modified=True, fixes=outcome.fixes)

    except Exception as e:
        logger.error(f"Worker failed on {rel_path}: {e}", exc_info=True)
        return FileResult(file=rel_path, status="error", error=str(e))


class ScanController:
    """
    Orchestrates a reconciliation run over a directory of HTML files:
    walk, per-file scan (optionally in parallel), coverage audit and report.
    """

    def __init__(
            self,
            policy: ScanPolicy,
            page_config: PageConfigManager,
            deny_dirs: Optional[List[str]] = None,
            top_offenders: int = 10
    ):
        self.policy = policy
        self.page_config = page_config
        self.walker = FileWalkService(deny_dirs)
        self.report_controller = ReportController(top_offenders=top_offenders)
        self.coverage_service = CoverageAuditService(page_config)

    def run(
            self,
            root: Path,
            fix: bool = False,
            workers: int = 1,
            progress: bool = True
    ) -> ScanReport:
        """
        Scans every HTML file under root and returns the aggregated report.

        Raises:
            FileNotFoundError: If root is not a directory.
        """
        files = self.walker.iter_html_files(root)
        entries = self.page_config.resolve_paths(files)
        tasks = [(rel_path, entries[rel_path]) for rel_path in files]
        logger.info(f"Scanning {len(tasks)} HTML files under {root} (fix={fix}, workers={workers})")

        func = partial(_worker_scan_file, root=root, policy=self.policy, fix=fix)
        results: List[FileResult] = []

        with tqdm(total=len(tasks), desc="Scanning", unit="file", disable=not progress) as bar:
            if workers > 1 and len(tasks) > 1:
                with ProcessPoolExecutor(max_workers=workers) as executor:
                    for result in executor.map(func, tasks, chunksize=8):
                        results.append(result)
                        bar.update(1)
            else:
                for task in tasks:
                    results.append(func(task))
                    bar.update(1)

        coverage = self.coverage_service.build([
            (r.file, r.schema_block_count, r.declared_schema_types)
            for r in results if r.status != "error"
        ], scanned_paths=files)

        run_warnings = [self.page_config.load_warning] if self.page_config.load_warning else []
        return self.report_controller.build(results, coverage=coverage, run_warnings=run_warnings)

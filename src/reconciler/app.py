from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from reconciler.controllers.report_controller import ReportController
from reconciler.controllers.scan_controller import ScanController
from reconciler.managers.config_manager import config_manager
from reconciler.managers.page_config_manager import PageConfigManager
from reconciler.managers.report_manager import ReportManager
from reconciler.model import ScanPolicy, ScanReport
from reconciler.utils.configure_logging import configure_logger
from reconciler.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_NO_SCAN_ROOT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="page-reconciler",
        description="Validate headings, canonical URLs and required structured data of built HTML pages."
    )
    parser.add_argument("--dir", type=str, default=None, help="Scan root (default from settings: public).")
    parser.add_argument("--fix", action="store_true", help="Rewrite canonical hrefs and duplicate H1s in place.")
    parser.add_argument("--strict", action="store_true",
                        help="Missing canonicals are errors; unreadable files fail the run.")
    parser.add_argument("--output", type=str, default=None, help="Report destination (JSON).")
    parser.add_argument("--config", type=str, default=None, help="Page config JSON (required schemas per page).")
    parser.add_argument("--settings", type=str, default=None, help="Settings JSON merged over the defaults.")
    parser.add_argument("--origin", type=str, default=None, help="Canonical site origin, e.g. https://www.example.com")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes (default 1: sequential).")
    parser.add_argument("--export", type=str, default=None, help="Also write flat violation rows to CSV.")
    parser.add_argument("--warn-only", action="store_true", help="Always exit 0 after writing the report.")
    parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar.")
    parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING, ...")
    return parser


def compute_exit_code(report: ScanReport, strict: bool = False, warn_only: bool = False) -> int:
    """0 when the run passes as a gate, 1 when ERROR violations (or, in strict mode, unreadable files) exist."""
    if warn_only:
        return EXIT_OK
    if report.errors > 0:
        return EXIT_VIOLATIONS
    if strict and report.io_errors > 0:
        return EXIT_VIOLATIONS
    return EXIT_OK


def _print_summary(report: ScanReport, output: Path, fix: bool) -> None:
    print("\n✅ Metadata Reconciliation Complete")
    print(f"   Total files: {report.total}")
    print(f"   Valid: {report.valid}")
    print(f"   Invalid: {report.invalid}")
    print(f"   Errors: {report.errors}")
    print(f"   Warnings: {report.warnings}")
    if report.io_errors:
        print(f"   Unreadable files: {report.io_errors}")
    if fix:
        print(f"   Fixed: {report.fixed}")
        print(f"   Already correct: {report.already_correct}")

    common = ReportController.common_issues(report)
    if common:
        print("\n⚠️  Common Issues:")
        for category, count in common:
            print(f"   {count}x {category}")

    for warning in report.run_warnings:
        print(f"\n⚠️  {warning}")

    print(f"\n📊 Report saved: {output}")


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the page-reconciler command."""
    args = build_parser().parse_args(argv)

    if args.settings:
        config_manager.load_file(PathUtils.resolve(args.settings))

    configure_logger(
        args.log_level or config_manager.get_nested("debug.level", "INFO"),
        silenced_loggers=config_manager.get_nested("debug.silenced_loggers", {})
    )

    # Flags override settings for the rest of the run.
    if args.origin:
        config_manager.set_nested("site.origin", args.origin)
    if args.strict:
        config_manager.set_nested("canonical.strict", True)
    if args.workers is not None:
        config_manager.set_nested("scan.workers", args.workers)

    policy = ScanPolicy.from_config(config_manager)
    root = PathUtils.resolve(args.dir or config_manager.get_nested("scan.default_dir", "public"))
    output = PathUtils.resolve(args.output or config_manager.get_nested("report.output", "reports/metadata-audit.json"))
    page_config = PageConfigManager(PathUtils.resolve(
        args.config or config_manager.get_nested("page_config.path", "data/schemas/page-config.json")
    ))
    workers = config_manager.get_nested("scan.workers", 1)

    controller = ScanController(
        policy,
        page_config,
        deny_dirs=config_manager.get_nested("scan.deny_dirs", None),
        top_offenders=config_manager.get_nested("scan.top_offenders", 10)
    )
    report_manager = ReportManager()

    print("🎯 Page Metadata Reconciler")
    print(f"📁 Scanning: {root}")
    if args.fix:
        print("🔧 Fix mode: ENABLED")
    if policy.strict:
        print("⚠️  Strict mode: ENABLED")

    try:
        report = controller.run(root, fix=args.fix, workers=max(1, int(workers)), progress=not args.no_progress)
    except FileNotFoundError as e:
        logger.error(str(e))
        warnings = [str(e)] + ([page_config.load_warning] if page_config.load_warning else [])
        report_manager.save_report(ScanReport(run_warnings=warnings), output)
        print(f"❌ {e}")
        return EXIT_NO_SCAN_ROOT

    if report_manager.save_report(report, output) is None:
        print(f"❌ Could not write report to {output}")
        return EXIT_VIOLATIONS

    if args.export:
        controller.report_controller.export_csv(report, PathUtils.resolve(args.export))

    _print_summary(report, output, args.fix)
    return compute_exit_code(report, strict=policy.strict, warn_only=args.warn_only)


if __name__ == "__main__":
    sys.exit(main())

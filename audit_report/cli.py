"""
Command-line interface for audit-report.

Usage:
    audit-report render report.json --format pdf --output-dir out/
    audit-report render report.json --format both
    audit-report version
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .exceptions import AuditReportError, ReportDataError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RENDER_FAILED = 1
EXIT_BAD_INPUT = 2


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="audit-report",
        description="Render electrical safety audit reports to DOCX and PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  audit-report render report.json --format pdf
  audit-report render report.json --format both --output-dir reports/
  audit-report version
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    render_parser = subparsers.add_parser("render", help="Render a report state file")
    render_parser.add_argument("input", help="Report state as JSON (camelCase keys)")
    render_parser.add_argument(
        "-f", "--format",
        choices=["docx", "pdf", "both"],
        default="both",
        help="Output format (default: both)",
    )
    render_parser.add_argument(
        "-o", "--output-dir",
        default=".",
        help="Directory for the rendered files (default: current directory)",
    )
    render_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout in seconds for remote image fetches",
    )
    render_parser.add_argument(
        "--no-org-logo",
        action="store_true",
        help="Leave the organization logo out of the page header",
    )
    render_parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    render_parser.add_argument("--log-file", help="Also write logs to this file")

    subparsers.add_parser("version", help="Show version")
    return parser


def _load_input(path: Path):
    from .models.report import ReportData

    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return ReportData.from_dict(payload)


def cmd_render(args) -> int:
    """Handle render command."""
    from .api import render_to_file
    from .utils.logger import configure_logging

    configure_logging(level=args.log_level, log_file=args.log_file)

    input_path = Path(args.input)
    try:
        data = _load_input(input_path)
    except (OSError, json.JSONDecodeError, ReportDataError) as e:
        logger.error(f"Cannot read report input {input_path}: {e}")
        return EXIT_BAD_INPUT

    options = {
        "fetch_timeout": args.timeout,
        "include_organization_logo": not args.no_org_logo,
    }
    formats = ["docx", "pdf"] if args.format == "both" else [args.format]
    for fmt in formats:
        try:
            path = render_to_file(data, fmt, args.output_dir, options=options)
        except AuditReportError:
            # already logged by the api layer
            return EXIT_RENDER_FAILED
        print(f"Saved: {path}")
    return EXIT_OK


def cmd_version(args=None) -> int:
    """Handle version command."""
    from .version import __version__
    print(f"audit-report v{__version__}")
    return EXIT_OK


def main(argv=None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "render":
        return cmd_render(args)
    if args.command == "version":
        return cmd_version(args)

    parser.print_help()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

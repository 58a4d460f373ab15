"""
Entry point for running audit-report as a module.

Usage:
    python -m audit_report render report.json --format pdf --output-dir out/
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())

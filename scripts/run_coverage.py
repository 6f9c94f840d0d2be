#!/usr/bin/env python3
"""Coverage validation script for CI pipelines.

Runs the avrokit test suite under pytest-cov and fails when coverage
drops below the threshold.

Usage:
    python scripts/run_coverage.py [OPTIONS]

Options:
    --threshold PERCENT    Minimum coverage percentage (default: 90)
    --html                 Generate HTML coverage report
    --xml                  Generate XML coverage report for CI tools
    --verbose              Show missing lines and the module summary
    --module MODULE        Package to measure (default: avrokit)

Exit Codes:
    0 - Success, coverage threshold met
    1 - Tests failed
    2 - Coverage below threshold
    3 - Configuration or runtime error
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_THRESHOLD = 90
DEFAULT_MODULE = "avrokit"


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run pytest with coverage validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=DEFAULT_THRESHOLD,
        help=f"Minimum coverage percentage (default: {DEFAULT_THRESHOLD})",
    )
    parser.add_argument(
        "--html",
        action="store_true",
        help="Generate HTML coverage report in htmlcov/",
    )
    parser.add_argument(
        "--xml",
        action="store_true",
        help="Generate XML coverage report (coverage.xml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed coverage output with missing lines",
    )
    parser.add_argument(
        "--module",
        default=DEFAULT_MODULE,
        help=f"Module to measure coverage for (default: {DEFAULT_MODULE})",
    )
    parser.add_argument(
        "--tests",
        default="tests/",
        help="Test directory or file pattern (default: tests/)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=120,
        help="Per-test timeout in seconds (default: 120)",
    )
    return parser.parse_args()


def build_pytest_command(args: argparse.Namespace) -> list:
    """Build the pytest command with coverage options."""
    cmd = [
        sys.executable, "-m", "pytest",
        f"--cov={args.module}",
        f"--cov-fail-under={args.threshold}",
        f"--timeout={args.timeout}",
    ]

    if args.verbose:
        cmd.append("--cov-report=term-missing")
    else:
        cmd.append("--cov-report=term")

    if args.html:
        cmd.append("--cov-report=html:htmlcov")

    if args.xml:
        cmd.append("--cov-report=xml:coverage.xml")

    cmd.append(args.tests)
    return cmd


def run_coverage(args: argparse.Namespace) -> int:
    """Run coverage measurement and validation.

    Returns:
        Exit code (0=success, 1=test failure, 2=coverage failure, 3=error)
    """
    os.chdir(PROJECT_ROOT)
    cmd = build_pytest_command(args)

    print("=" * 70)
    print("AVROKIT - COVERAGE VALIDATION")
    print("=" * 70)
    print(f"Module:    {args.module}")
    print(f"Threshold: {args.threshold}%")
    print(f"Tests:     {args.tests}")
    print(f"Command:   {' '.join(cmd)}")
    print("=" * 70)
    print()

    result = subprocess.run(cmd, cwd=PROJECT_ROOT)

    print()
    print("=" * 70)

    if result.returncode == 0:
        print(f"SUCCESS: Coverage meets or exceeds {args.threshold}% threshold")
        print("=" * 70)
        return 0
    elif result.returncode == 1:
        print("FAILURE: Tests failed")
        print("=" * 70)
        return 1
    elif result.returncode == 2:
        print(f"FAILURE: Coverage below {args.threshold}% threshold")
        print("=" * 70)
        return 2
    else:
        print(f"ERROR: Unexpected exit code {result.returncode}")
        print("=" * 70)
        return 3


def print_coverage_summary() -> None:
    """Print the modules whose coverage is measured."""
    print()
    print("Coverage by Module:")
    print("-" * 50)

    modules = [
        ("avrokit.schema", "Schemas"),
        ("avrokit.schema_prepared", "Prepared schemas"),
        ("avrokit.serialization", "Serialization"),
        ("avrokit.datafile", "Container files"),
        ("avrokit.codecs", "Codecs"),
        ("avrokit.protocol", "Protocols"),
        ("avrokit.config", "Configuration"),
        ("avrokit.exceptions", "Exceptions"),
        ("avrokit.logging", "Logging"),
    ]

    for module, description in modules:
        print(f"  {description:<20} {module}")

    print("-" * 50)
    print()


def main() -> int:
    """Main entry point."""
    args = parse_args()

    try:
        import pytest  # noqa: F401
        import pytest_cov  # noqa: F401
    except ImportError as e:
        print(f"ERROR: Required package not installed: {e}")
        print("Install with: pip install -e .[dev]")
        return 3

    if args.verbose:
        print_coverage_summary()

    return run_coverage(args)


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Test Runner for CakeRaft

PURPOSE:
    Run the CakeRaft test suites by area, optionally with coverage.

USAGE:
    python tests/run_tests.py [options]

    Options:
    --billing        Bill numbering, checkout and loyalty suites
    --reports        Revenue and archival suites
    --api            HTTP API suite
    --all            Every suite under tests/
    --coverage       Collect coverage for the backend package
    --verbose        Verbose pytest output
"""

import argparse
import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent

SUITES = {
    "billing": (
        "Billing Tests",
        ["tests/test_bill_numbering.py", "tests/test_checkout_service.py", "tests/test_loyalty_service.py"],
    ),
    "reports": ("Report Tests", ["tests/test_revenue_service.py", "tests/test_archive_service.py"]),
    "api": ("API Tests", ["tests/test_api.py"]),
    "all": ("All Tests", ["tests/"]),
}


def run_command(command, description):
    """Run a command and report whether it succeeded."""
    print(f"\n{'='*60}")
    print(f"Running: {description}")
    print(f"Command: {' '.join(command)}")
    print(f"{'='*60}")

    try:
        subprocess.run(command, check=True, cwd=project_root)
        print(f"\n✅ {description} completed successfully!")
        return True
    except subprocess.CalledProcessError as e:
        print(f"\n❌ {description} failed with exit code {e.returncode}")
        return False


def run_suite(name, verbose=False, coverage=False):
    description, paths = SUITES[name]
    command = [sys.executable, "-m", "pytest", *paths]
    if verbose:
        command.append("-v")
    if coverage:
        command.extend(["--cov=backend", "--cov-report=term-missing"])
    return run_command(command, description)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Test Runner for CakeRaft",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tests/run_tests.py --billing
  python tests/run_tests.py --api --verbose
  python tests/run_tests.py --all --coverage
        """
    )
    for name in SUITES:
        parser.add_argument(f"--{name}", action="store_true", help=f"Run {SUITES[name][0].lower()}")
    parser.add_argument("--coverage", action="store_true", help="Run tests with coverage reporting")
    parser.add_argument("--verbose", action="store_true", help="Run with verbose output")
    args = parser.parse_args(argv)

    print("🧪 CakeRaft Test Runner")
    print("=" * 60)

    selected = [name for name in SUITES if getattr(args, name)] or ["all"]
    results = [run_suite(name, verbose=args.verbose, coverage=args.coverage) for name in selected]
    failed = results.count(False)

    print(f"\n{'='*60}")
    print("TEST RUN SUMMARY")
    print(f"{'='*60}")
    print(f"Suites run: {len(results)}")
    print(f"Failed: {failed}")

    if failed:
        print(f"\n❌ {failed} test suite(s) failed!")
        return 1
    print("\n🎉 All tests passed!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Development helper script for pympathadmin.

Usage:
    python dev.py test                     # Run all tests
    python dev.py test --file teardown     # Run tests/test_teardown.py
    python dev.py test --coverage          # Run with coverage
    python dev.py lint                     # Run flake8
    python dev.py clean                    # Remove caches and coverage output
"""

import argparse
import shutil
import subprocess
import sys
from pathlib import Path

PACKAGE = "mpathadmin"
CACHE_DIRS = ("__pycache__", ".pytest_cache")
CACHE_ITEMS = ("htmlcov", ".coverage")


def run_command(cmd, description=""):
    """Run a shell command, reporting failures."""
    if description:
        print(f"🔄 {description}")

    try:
        subprocess.run(cmd, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"❌ Command failed: {cmd} (exit code {e.returncode})")
        return False
    return True


def run_tests(args):
    cmd = [sys.executable, "-m", "pytest"]
    if args.file:
        cmd.append(f"tests/test_{args.file}.py")
    if args.coverage:
        cmd += [f"--cov={PACKAGE}", "--cov-report=html", "--cov-report=term"]
    if args.verbose:
        cmd.append("-v")
    return run_command(" ".join(cmd), "Running tests")


def run_lint(args):
    return run_command(f"{sys.executable} -m flake8 --max-line-length=120 {PACKAGE} tests",
                       "Running flake8 linting")


def clean_cache(args):
    print("🧹 Cleaning cache files...")
    root = Path(".")

    for name in CACHE_DIRS:
        for path in root.rglob(name):
            if path.is_dir():
                shutil.rmtree(path)
                print(f"   Removed {path}")

    for pyc in root.rglob("*.pyc"):
        pyc.unlink()

    for name in CACHE_ITEMS:
        path = Path(name)
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
        else:
            continue
        print(f"   Removed {path}")

    print("✅ Cache cleanup complete")
    return True


def main():
    parser = argparse.ArgumentParser(description="Development helper for pympathadmin")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    test_parser = subparsers.add_parser("test", help="Run tests")
    test_parser.add_argument("--file", help="Run one test file (e.g. 'parser' for test_parser.py)")
    test_parser.add_argument("--coverage", action="store_true", help="Run with coverage report")
    test_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers.add_parser("lint", help="Run linting")
    subparsers.add_parser("clean", help="Clean cache files")

    args = parser.parse_args()
    commands = {
        "test": run_tests,
        "lint": run_lint,
        "clean": clean_cache,
    }

    if args.command not in commands:
        parser.print_help()
        return 1
    return 0 if commands[args.command](args) else 1


if __name__ == "__main__":
    sys.exit(main())

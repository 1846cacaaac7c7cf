"""
Test utilities for CReLU.

Usage:
    from utils import run_tests, collect_tests

    if __name__ == "__main__":
        success = run_tests(collect_tests(globals()), title="My Tests")
        sys.exit(0 if success else 1)
"""

from .runner import CaseResult, collect_tests, run_tests

__all__ = [
    'CaseResult',
    'collect_tests',
    'run_tests',
]

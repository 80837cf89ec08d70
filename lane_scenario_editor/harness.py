"""Runnable harness for the beside-the-code test modules.

Each ``test_*.py`` module keeps plain assert-style test functions (so pytest
collects them) and can also be run directly, printing a pass/fail summary.
"""

from __future__ import annotations

import logging
import traceback
from typing import Callable, List, Optional, Sequence, Tuple


class CaseResult:
    def __init__(self, name: str):
        self.name = name
        self.passed = False
        self.error: Optional[str] = None

    def __repr__(self) -> str:
        status = "PASS" if self.passed else f"FAIL: {self.error}"
        return f"{self.name}: {status}"


def run_cases(tests: Sequence[Callable[[], None]]) -> Tuple[int, int, List[CaseResult]]:
    """Run all tests and return (passed, total, results)."""
    results = []
    passed = 0
    for test_func in tests:
        logging.info("Running %s...", test_func.__name__)
        result = CaseResult(test_func.__name__)
        try:
            test_func()
            result.passed = True
        except AssertionError as e:
            frame = traceback.extract_tb(e.__traceback__)[-1]
            result.error = str(e) or f"line {frame.lineno}: {frame.line}"
        except Exception as e:
            result.error = f"{type(e).__name__}: {e}"
        results.append(result)
        if result.passed:
            passed += 1
            logging.info("  PASS")
        else:
            logging.error("  FAIL: %s", result.error)
    return passed, len(tests), results


def report(title: str, tests: Sequence[Callable[[], None]]) -> int:
    print("=" * 60)
    print(title)
    print("=" * 60)

    passed, total, results = run_cases(tests)

    print("\n" + "=" * 60)
    print(f"Results: {passed}/{total} tests passed")
    print("=" * 60)

    for r in results:
        status = "✓ PASS" if r.passed else "✗ FAIL"
        print(f"  {status}: {r.name}")
        if not r.passed and r.error:
            print(f"         Error: {r.error}")

    return 0 if passed == total else 1

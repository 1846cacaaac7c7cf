"""
Run all CReLU test scripts and print a summary report.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import subprocess
import time
from pathlib import Path


TEST_SCRIPTS = [
    "test_forward.py",
    "test_backward.py",
    "test_layer.py",
    "test_autograd.py",
    "test_logging.py",
]


def run_test_script(script_path: str) -> tuple[bool, str]:
    """Run a test script and return success status and output."""
    try:
        print(f"Running {script_path}...")
        start_time = time.time()

        result = subprocess.run([
            sys.executable, script_path
        ], capture_output=True, text=True, timeout=300)

        elapsed = time.time() - start_time

        success = result.returncode == 0
        output = result.stdout + result.stderr

        status = "PASSED" if success else "FAILED"
        print(f"   {status} in {elapsed:.1f}s")

        return success, output

    except subprocess.TimeoutExpired:
        return False, "Test timed out after 300 seconds"


def main():
    """Run all tests and generate report."""
    print("CReLU - Test Suite")
    print("=" * 60)

    test_dir = Path(__file__).parent
    results = {}
    total_time = 0.0

    for script_name in TEST_SCRIPTS:
        script_path = test_dir / script_name
        if not script_path.exists():
            print(f"Skipping {script_name} - file not found")
            results[script_name] = (False, "File not found")
            continue

        start_time = time.time()
        success, output = run_test_script(str(script_path))
        total_time += time.time() - start_time
        results[script_name] = (success, output)

        if not success:
            error_lines = [line for line in output.splitlines() if 'FAIL' in line or 'Error' in line]
            if error_lines:
                print(f"   Error preview: {error_lines[0][:100]}...")
        print()

    print("=" * 60)
    print("TEST SUMMARY REPORT")
    print("=" * 60)

    passed = sum(1 for success, _ in results.values() if success)
    total = len(results)

    print(f"Overall: {passed}/{total} test scripts passed ({100 * passed / total:.1f}%)")
    print(f"Total execution time: {total_time:.1f}s")
    print()

    for script_name, (success, output) in results.items():
        status = "PASSED" if success else "FAILED"
        print(f"{script_name:<25} {status}")
        summary_lines = [line for line in output.splitlines() if line.strip().endswith('passed')]
        if summary_lines:
            print(f"   {summary_lines[-1].strip()}")

    sys.exit(0 if passed == total else 1)


if __name__ == "__main__":
    main()

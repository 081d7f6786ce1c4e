"""Pytest configuration.

Ensures that the repository root is importable so that ``timer_guard`` can be
resolved when tests are executed without installing the package, and points
the file log at a temporary directory so test runs do not write ``./log``.
"""

import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault(
    "TIMER_GUARD_LOG_DIR", os.path.join(tempfile.gettempdir(), "timer_guard_test_log")
)

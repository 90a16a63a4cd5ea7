"""
Global test configuration for openapi-queue.

Ensures ``src/`` is on *sys.path* so the tests run against the working tree
without an editable install.
"""

import sys
import pathlib

ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

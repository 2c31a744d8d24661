#!/usr/bin/env python3
"""
Run shortstash from a source checkout without installing it.
"""

import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parent / "src"


def run():
    """Put ``src`` on the import path and hand over to the application."""
    if str(SRC_DIR) not in sys.path:
        sys.path.insert(0, str(SRC_DIR))

    from main import main

    main()


if __name__ == "__main__":
    run()

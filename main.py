#!/usr/bin/env python3
"""Main entry point for Work Sergeant."""
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from work_sergeant.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())

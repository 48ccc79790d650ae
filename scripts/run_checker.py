#!/usr/bin/env python3
"""Run one checker (or all of them) on local files.

Usage:
    python scripts/run_checker.py pricing --xml claims.xml --pricing prices.xlsx
    python scripts/run_checker.py auths --xml claims.xml --auth auths.xlsx --export out.xlsx
    python scripts/run_checker.py all --xml claims.xml --auth auths.xlsx --pricing prices.xlsx
"""
from __future__ import annotations

import sys

from submission_checker.cli import main

if __name__ == "__main__":
    sys.exit(main())

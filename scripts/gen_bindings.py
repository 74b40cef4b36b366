#!/usr/bin/env python3
"""
gen_bindings.py - binding generator entry point

Runs ffibind from a source checkout without installing it.

Usage:
    python scripts/gen_bindings.py IR.json -t c -t python -t lua -o OUT
"""

import os
import sys

# Add scripts directory to path
script_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, script_dir)

from ffibind.cli import main


if __name__ == '__main__':
    sys.exit(main())

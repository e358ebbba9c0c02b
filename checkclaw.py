#!/usr/bin/env python3
"""checkclaw - query bank balances, transactions and billing from the terminal.

This is the main entry point script for the checkclaw CLI.
It wraps the package CLI for convenient execution from a source checkout.

Usage:
    python checkclaw.py login --key <api-key>
    python checkclaw.py link
    python checkclaw.py tx --days 7

For full documentation and options:
    python checkclaw.py --help
"""

import sys
from pathlib import Path

# Add src to path for development installs
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from checkclaw.cli import main

if __name__ == "__main__":
    sys.exit(main())

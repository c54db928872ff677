#!/usr/bin/env python3
"""
Run the pollen collector from a source checkout.

Usage:
    python scripts/collect.py                 # Daily run
    python scripts/collect.py --full-history  # Backfill historical data
"""

import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from pollen.collector import main


if __name__ == "__main__":
    sys.exit(main())

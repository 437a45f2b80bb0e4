#!/usr/bin/env python3
"""
Paper trading launcher.

Runs poolbot against configs/paper.yaml from any working directory. Prices
and balances are read from the chain, swaps are only simulated. Extra
arguments such as --once or --log-level DEBUG are passed through.
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from poolbot.runner.pipeline import main

PAPER_CONFIG = project_root / "configs" / "paper.yaml"


if __name__ == "__main__":
    argv = ["--config", str(PAPER_CONFIG), "--profile", "paper", *sys.argv[1:]]
    try:
        sys.exit(asyncio.run(main(argv)))
    except KeyboardInterrupt:
        print("\nPaper trading stopped.")
        sys.exit(0)

#!/usr/bin/env python3
"""
Main scenario runner for the mixed Wi-Fi/wired network harness.

Usage:
    python run_simulation.py --numNodes=5 --mobility=0 --traffic=CBR
    python run_simulation.py --mobility=1 --traffic=CBR_Burst --per-flow --csv
    python run_simulation.py --help
"""

import sys

from mixedsim.cli import main

if __name__ == '__main__':
    sys.exit(main())

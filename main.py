#!/usr/bin/env python3
"""
Nexus Exposure Engine - Entry Point

Tracks economic nexus exposure for e-commerce sellers across US states
from their imported order history.

Usage:
    python main.py exposure --file data/orders.csv
    python main.py exposure --file data/orders.csv --as-of 2025-06-30 --all
    python main.py thresholds --state CA
    python main.py alerts --file data/orders.csv --existing CA:approaching
    python main.py sales --file data/orders.csv --start 2025-01-01
"""

from nexus_engine.cli import main

if __name__ == "__main__":
    main()

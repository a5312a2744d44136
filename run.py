#!/usr/bin/env python3
"""
run.py — Launch obs-counter without installing.

Usage (from the obs-counter directory):
    python run.py start -port 28196 -pluginUUID <uuid> -registerEvent registerPlugin -info '{}'
    python run.py check --url ws://localhost:4455 --password mypassword
    python run.py init-config
"""
import sys
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent))

from obs_counter.main import app

if __name__ == "__main__":
    app()

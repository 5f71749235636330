#!/usr/bin/env python3
"""Run the PacketPilot daemon for local development."""

import os
import sys

# Keep state and logs in the working tree instead of /var
os.environ.setdefault("PACKETPILOT_MONITOR__USAGE_FILE", "./data/daily_usage.json")
os.environ.setdefault("PACKETPILOT_LOGGING__FILE", "")
os.environ.setdefault("PACKETPILOT_LOGGING__LEVEL", "debug")
os.environ.setdefault("PACKETPILOT_SERVER__HOST", "localhost")

from packetpilot.main import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:] or ["run"]))

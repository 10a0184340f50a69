#!/usr/bin/env python3
"""
YouTube to WeeChat Chat Relay - Entry Point
Loads configuration from .env and the properties file and runs a subcommand.
"""

import sys

from relay_cli import main


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Wrapper for tsgen.

This is a convenience wrapper that forwards to the tsgen module.
Run with --help to see available commands.

Usage:
    python generate.py <command> [options]
    ./generate.py <command> [options]  (on Unix with execute permission)

Examples:
    python generate.py generate --dry-run
    python generate.py inspect openapi.yaml
    python generate.py templates list
"""

import subprocess
import sys


def main() -> int:
    """Forward all arguments to the tsgen module."""
    return subprocess.call([sys.executable, "-m", "tsgen"] + sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())

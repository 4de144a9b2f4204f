"""
Main entry point for running cryptconfig as a module.

Usage:
    python -m cryptconfig <command> [options]
"""

from .cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())

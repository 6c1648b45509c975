#!/usr/bin/env python3
"""
fontplan CLI
Runs the font build from a source checkout without installing the package
"""

from src.fontplan.cli import main

if __name__ == "__main__":
    exit(main())

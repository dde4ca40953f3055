#!/usr/bin/env python3
"""
StegFile Command Line Interface launcher.

Runs the CLI straight from a source checkout. Installed copies use the
``stegfile`` console script instead.
"""

import sys
import os

# Add core directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'python-core'))

from stegfile.cli import main


if __name__ == "__main__":
    main()

"""
Test package for the vocabulary drill engine.

Each test module builds its own app and in-memory database. The parent
directory is added to sys.path so the app modules import without installing.
"""

import sys
import os

# Add parent directory to path to enable imports
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

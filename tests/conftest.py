"""
Pytest configuration file to set up test environment.

The modules live flat in src/ without a package, so the src directory is
put on sys.path and tests import them directly (e.g. ``import shrink_videos``).
An editable install ('pip install -e .') works as well.
"""
import sys
from pathlib import Path

# Add the src directory to Python path so tests can import modules
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

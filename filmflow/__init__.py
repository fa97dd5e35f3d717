"""
Filmflow - AI-Assisted Film Pre-Production Analysis

Turns a screenplay and a budget into scene breakdowns, character analysis,
casting suggestions, VFX and product-placement reports, location ideas,
a line-item financial plan, an executive summary and storyboard frames.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Filmflow Team"
__project__ = "Filmflow"

from pathlib import Path

# Package root directory
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__project__",
    # Paths
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
]

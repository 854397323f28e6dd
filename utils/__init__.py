"""
Utility modules for PropertyFlow.
"""

from .formatting import format_area, format_currency
from .config import Config
from .logging import setup_logging

__all__ = ["format_area", "format_currency", "Config", "setup_logging"]

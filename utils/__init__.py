"""
Utility modules for the onboarding app.
"""

from .formatting import format_progress, format_yes_no
from .config import Config, configure_logging

__all__ = ["format_progress", "format_yes_no", "Config", "configure_logging"]

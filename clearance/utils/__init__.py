"""
Utility functions for the clearance calculator.
"""

from clearance.utils.formatters import format_cents

__all__ = [
    "format_cents",
]

"""
Utility functions for the compensation engine.

Formatting helpers for operator-facing run summaries.
"""

from compensation.utils.formatters import (
    format_currency,
    format_factor,
    format_percentage,
    format_scaling_result,
)

__all__ = [
    "format_currency",
    "format_percentage",
    "format_factor",
    "format_scaling_result",
]

"""
Utilities package for ShotSieve.

Provides:
- formatters: Human-readable formatting for numbers, durations, capture times and file sizes
"""

from __future__ import annotations

from . import formatters

from .formatters import format_number, format_time_estimate, format_size, format_taken_at

__all__ = [
    'formatters',
    'format_number',
    'format_time_estimate',
    'format_size',
    'format_taken_at',
]

"""
Formatting utilities for ShotSieve.

Provides human-readable formatting for numbers, durations, capture times and
file sizes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

# Re-export format_size from models for convenience
from ..models import format_size


def format_number(n: int) -> str:
    """
    Format large numbers with commas for readability.

    Examples:
        >>> format_number(1234567)
        '1,234,567'
    """
    return f"{n:,}"


def format_time_estimate(seconds: float) -> str:
    """
    Format seconds into a human-readable duration.

    Examples:
        >>> format_time_estimate(45)
        '45s'
        >>> format_time_estimate(150)
        '2m 30s'
        >>> format_time_estimate(3665)
        '1h 1m'
    """
    if seconds < 60:
        return f"{int(seconds)}s"
    elif seconds < 3600:
        return f"{int(seconds / 60)}m {int(seconds % 60)}s"
    else:
        hours = int(seconds / 3600)
        minutes = int((seconds % 3600) / 60)
        return f"{hours}h {minutes}m"


def format_taken_at(taken_at: Optional[int]) -> str:
    """
    Format a capture time in epoch milliseconds as local time.

    Returns 'unknown' for a missing capture time.
    """
    if taken_at is None:
        return "unknown"
    return datetime.fromtimestamp(taken_at / 1000).strftime('%Y-%m-%d %H:%M:%S')


__all__ = ['format_number', 'format_time_estimate', 'format_size', 'format_taken_at']

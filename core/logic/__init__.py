"""
Pure business logic separated from models.

Exports:
    calculate_time_remaining: Grant countdown
"""

from .time_remaining import calculate_time_remaining

__all__ = ['calculate_time_remaining']

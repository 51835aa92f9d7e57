"""
Core Access-Control Components.

Structure:
    clock.py: Authoritative time source
    models/: Pure data structures (no business logic)
    logic/: Business logic separated from models
"""

from . import models
from . import logic
from .clock import Clock, SystemClock

__all__ = [
    'Clock',
    'SystemClock',
    'models',
    'logic',
]

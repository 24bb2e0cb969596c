"""
Utility functions for acquisition planner services
"""
from .numeric import clamp, normalize_nonnegative, normalize_weights, round_to

__all__ = [
    'clamp',
    'normalize_nonnegative',
    'normalize_weights',
    'round_to',
]

"""
Optimization module - guardrail-driven target optimizer for campaign plans
"""
from .target_optimizer import (
    GOAL_PRESETS,
    MAX_ITERATIONS,
    TargetOptimizer,
    optimize_to_target,
)

__all__ = [
    'GOAL_PRESETS',
    'MAX_ITERATIONS',
    'TargetOptimizer',
    'optimize_to_target',
]

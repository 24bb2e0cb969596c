"""
Cohort module - cohort simulation, micro-segments, recommendations and audience blends
"""
from .cohort_simulator import (
    run_cohort,
    summarise_cohort,
    take_rate,
    reach_share,
    net_adds,
    monthly_contribution,
    payback_months,
    channel_weights,
)
from .micro_segments import (
    generate_micro_segments,
    build_recommendation,
    find_micro_segments,
    seeded_random,
)
from .audience_blend import (
    blend_cohorts,
    simulate_audiences,
)

__all__ = [
    'run_cohort',
    'summarise_cohort',
    'take_rate',
    'reach_share',
    'net_adds',
    'monthly_contribution',
    'payback_months',
    'channel_weights',
    'generate_micro_segments',
    'build_recommendation',
    'find_micro_segments',
    'seeded_random',
    'blend_cohorts',
    'simulate_audiences',
]

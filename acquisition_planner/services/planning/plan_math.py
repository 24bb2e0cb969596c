"""
Plan arithmetic: channel mix normalisation, calendar coverage, spend and CAC estimates.

Plan mixes are keyed by Search/Social/Email/Retail and always sum to 100.
"""
from typing import Dict, List

import numpy as np

from acquisition_planner.models import (
    CALENDAR_MAX_INTENSITY,
    CALENDAR_WEEKS,
    PLAN_CHANNEL_KEYS,
    CampaignPlan,
)
from acquisition_planner.services.utils.numeric import clamp, normalize_nonnegative, round_to

MIX_TOTAL = 100.0

# Estimated spend per mix point
SPEND_PER_MIX_POINT: Dict[str, float] = {'Search': 420, 'Social': 310, 'Email': 260, 'Retail': 510}
# CAC contribution per mix point
CAC_PER_MIX_POINT: Dict[str, float] = {'Search': 0.18, 'Social': 0.22, 'Email': 0.16, 'Retail': 0.28}

CAC_BASE = 210.0
CAC_FLOOR = 65.0


def calendar_coverage(calendar: List[List[int]]) -> float:
    """Fraction of the maximum possible calendar intensity in use."""
    grid = np.asarray(calendar, dtype=float)
    if grid.ndim != 2 or grid.size == 0:
        return 0.0
    max_total = grid.size * CALENDAR_MAX_INTENSITY
    return float(grid.sum() / max_total)


def sum_calendar_column(calendar: List[List[int]], column: int) -> int:
    return int(sum(row[column] if column < len(row) else 0 for row in calendar))


def base_calendar() -> List[List[int]]:
    """Default 4x12 intensity grid (Search, Social, Email, Retail)."""
    return [
        [2 if idx < 4 else 1 if idx < 8 else 0 for idx in range(CALENDAR_WEEKS)],
        [2 if idx % 3 == 0 else 1 for idx in range(CALENDAR_WEEKS)],
        [1 if idx % 2 == 0 else 2 for idx in range(CALENDAR_WEEKS)],
        [1 if idx < 6 else 0 for idx in range(CALENDAR_WEEKS)],
    ]


def normalise_mix(mix: Dict[str, float]) -> Dict[str, float]:
    """
    Renormalise a plan mix to sum to 100 with no negative weights.

    Weights are rounded to two decimals; the rounding residue is folded into
    the largest weight so the total stays at 100. An empty or all-zero mix
    falls back to equal weights.
    """
    vector = np.array([float(mix.get(key, 0.0) or 0.0) for key in PLAN_CHANNEL_KEYS])
    shares = normalize_nonnegative(vector) * MIX_TOTAL
    rounded = [round_to(share) for share in shares]
    residue = MIX_TOTAL - sum(rounded)
    if residue:
        largest = int(np.argmax(rounded))
        rounded[largest] = round_to(rounded[largest] + residue)
    return dict(zip(PLAN_CHANNEL_KEYS, rounded))


def rebalance_mix(mix: Dict[str, float], key: str, value: float) -> Dict[str, float]:
    """
    Pin ``key`` to ``value`` (bounded to 0..100) and spread the remainder over
    the other channels in proportion to their current weights.
    """
    bounded = clamp(value, 0.0, MIX_TOTAL)
    others = [item for item in PLAN_CHANNEL_KEYS if item != key]
    remaining = max(0.0, MIX_TOTAL - bounded)
    current_other_total = sum(max(0.0, mix.get(item, 0.0)) for item in others)
    nxt = dict(mix)
    nxt[key] = bounded
    if current_other_total == 0:
        share = remaining / len(others)
        for item in others:
            nxt[item] = round_to(share)
    else:
        for item in others:
            proportion = max(0.0, mix.get(item, 0.0)) / current_other_total
            nxt[item] = round_to(remaining * proportion)
    return normalise_mix(nxt)


def estimate_plan_spend(plan: CampaignPlan) -> int:
    """Rough campaign spend in dollars."""
    calendar_factor = 0.6 + calendar_coverage(plan.calendar) * 0.4
    promo_lift = plan.promo_depth_pct / 100 * plan.promo_months * 18000
    mix_weight = sum(plan.channel_mix.get(key, 0.0) * rate for key, rate in SPEND_PER_MIX_POINT.items())
    base = (plan.price * 2000 + plan.device_subsidy * 1500) / 12
    return int(round((base + promo_lift + mix_weight) * calendar_factor))


def estimate_cac(plan: CampaignPlan) -> float:
    """Blended CAC estimate, floored at ``CAC_FLOOR``."""
    mix_efficiency = sum(plan.channel_mix.get(key, 0.0) * rate for key, rate in CAC_PER_MIX_POINT.items())
    promo_relief = plan.promo_depth_pct * 0.42 + plan.promo_months * 1.8
    subsidy_penalty = plan.device_subsidy * 0.36
    intensity_relief = calendar_coverage(plan.calendar) * 28
    raw = CAC_BASE - promo_relief - intensity_relief + subsidy_penalty + mix_efficiency
    return round_to(max(CAC_FLOOR, raw))

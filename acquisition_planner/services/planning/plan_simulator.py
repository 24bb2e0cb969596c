"""
Plan Simulator - KPI estimates and driver attribution for a campaign plan

Each lever (price, promo depth and months, device subsidy, channel mix,
calendar intensity, inventory hold, budget headroom) moves payback,
conversion and margin away from fixed baselines through hand-tuned
coefficients. The coefficients are heuristics, not a fitted economic model.

A synthetic confidence score widens or narrows the reported KPI ranges.
The simulator is pure: the same (plan, objective) always yields the same
plan, and the input plan is never modified.
"""
from typing import Dict, List

from acquisition_planner.logging_config import get_logger
from acquisition_planner.models import (
    CALENDAR_MAX_INTENSITY,
    PLAN_CHANNEL_KEYS,
    CampaignPlan,
    CreativeBrief,
    Driver,
    Objective,
    PlanKpis,
)
from acquisition_planner.services.planning.plan_math import base_calendar, calendar_coverage, normalise_mix
from acquisition_planner.services.utils.numeric import clamp, round_to

logger = get_logger(__name__)


# ============================================================================
# BASELINES & COEFFICIENTS
# ============================================================================

BASE_PRICE = 82.0
BASE_PROMO_DEPTH = 12.0
BASE_PROMO_MONTHS = 3
BASE_SUBSIDY = 40.0
BASE_CHANNEL_MIX: Dict[str, float] = {'Search': 32, 'Social': 22, 'Email': 26, 'Retail': 20}
BASE_PAYBACK = 8.4
BASE_CONVERSION = 3.1  # %
BASE_MARGIN = 31.0  # %

PAYBACK_RANGE_SCALE = 1.6
CONVERSION_RANGE_SCALE = 1.4
MARGIN_RANGE_SCALE = 6.0

# Price
PRICE_MARGIN_COEF = 14.0
PRICE_CONVERSION_COEF = 2.4
PRICE_PAYBACK_COEF = 3.2
PRICE_DRIVER_COEF = 2.1

# Promo
PROMO_DEPTH_PAYBACK_COEF = -6.0
PROMO_MONTHS_PAYBACK_COEF = -0.35
PROMO_PAYBACK_BOUNDS = (-3.4, 2.0)
PROMO_DEPTH_MARGIN_COEF = 18.0
PROMO_MONTHS_MARGIN_COEF = 0.9
PROMO_DEPTH_CONVERSION_COEF = 5.2

# Device subsidy
SUBSIDY_MARGIN_COEF = 9.0
SUBSIDY_CONVERSION_COEF = -2.8
SUBSIDY_PAYBACK_COEF = 1.2
SUBSIDY_DRIVER_COEF = 1.1

# Channel mix
SEARCH_PAYBACK_COEF = -6.5
EMAIL_PAYBACK_COEF = -4.1
SOCIAL_CONVERSION_COEF = 3.2
RETAIL_CONVERSION_COEF = 4.6
RETAIL_MARGIN_COEF = 5.4

# Calendar
CALENDAR_PAYBACK_COEF = -1.8
CALENDAR_PAYBACK_BOUNDS = (-2.4, 0.0)
CALENDAR_CONVERSION_COEF = 3.6

# Inventory hold
INVENTORY_CONVERSION_PENALTY = 0.4
INVENTORY_PAYBACK_PENALTY = 0.6

# Budget pressure
SPEND_PER_PROMO_MONTH = 4200 / 12
BUDGET_PAYBACK_DIVISOR = 50_000
BUDGET_PAYBACK_CAP = 1.8
BUDGET_MARGIN_DIVISOR = 80_000
BUDGET_MARGIN_CAP = 4.0

MAX_DRIVERS = 3

GOAL_PRESETS = {
    'Balanced': {'price': 79, 'promo_depth_pct': 16, 'promo_months': 3, 'device_subsidy': 35},
    'Growth-first': {'price': 74, 'promo_depth_pct': 20, 'promo_months': 4, 'device_subsidy': 45},
    'Margin-first': {'price': 86, 'promo_depth_pct': 12, 'promo_months': 2, 'device_subsidy': 28},
}
PLAN_BASE_MIX: Dict[str, float] = {'Search': 34, 'Social': 22, 'Email': 24, 'Retail': 20}


# ============================================================================
# HELPERS
# ============================================================================

def _mix_delta(mix: Dict[str, float], key: str) -> float:
    return (mix.get(key, 0.0) - BASE_CHANNEL_MIX[key]) / 100


def _driver(label: str, delta: float) -> Driver:
    return Driver(label=label, delta=round_to(delta))


def coverage_signal(calendar: List[List[int]], mix: Dict[str, float]) -> float:
    """Blend of calendar coverage and how many channels carry weight."""
    mix_spread = sum(1 for key in PLAN_CHANNEL_KEYS if mix.get(key, 0.0) > 0) / len(PLAN_CHANNEL_KEYS)
    return clamp(calendar_coverage(calendar) * 0.7 + mix_spread * 0.3, 0.0, 1.0)


def compute_confidence(coverage: float, r2: float) -> float:
    bounded_coverage = clamp(coverage, 0.0, 1.0)
    bounded_r2 = clamp(r2, 0.0, 1.0)
    return round_to(bounded_coverage * 0.6 + bounded_r2 * 0.4, 3)


def rank_drivers(drivers: List[Driver]) -> List[Driver]:
    """Merge drivers by label, then keep the largest by magnitude."""
    merged: Dict[str, float] = {}
    for item in drivers:
        if item.label in merged:
            merged[item.label] = round_to(merged[item.label] + item.delta)
        else:
            merged[item.label] = item.delta
    ranked = sorted(merged.items(), key=lambda pair: abs(pair[1]), reverse=True)
    return [Driver(label=label, delta=delta) for label, delta in ranked[:MAX_DRIVERS]]


def _range(value: float, half_width: float):
    return (round_to(value - half_width), round_to(value + half_width))


def creative_brief(plan: CampaignPlan, objective: Objective) -> CreativeBrief:
    if objective.goal == 'Growth-first':
        headline = 'Scale acquisition with efficient spend'
    else:
        headline = 'Protect unit economics while growing'
    if objective.goal == 'Margin-first':
        hero_hint = 'Lean into high-margin digital bundles'
    else:
        hero_hint = 'Balance mix across search and lifecycle CRM'
    return CreativeBrief(
        headline=headline,
        subtext=(
            f"Recommend {round_to(plan.promo_depth_pct, 1):g}% promo for {plan.promo_months} months "
            f"with {round(plan.channel_mix.get('Search', 0.0))}% search mix."
        ),
        hero_hint=hero_hint,
    )


# ============================================================================
# SIMULATION
# ============================================================================

def simulate_campaign(plan: CampaignPlan, objective: Objective) -> CampaignPlan:
    """
    Recompute KPIs, confidence, drivers and creative brief for a plan.

    Args:
        plan: Plan levers (derived fields are ignored and recomputed; the
            channel mix is renormalised to sum to 100)
        objective: Targets; only the budget feeds the KPI math

    Returns:
        A new CampaignPlan
    """
    drivers: List[Driver] = []
    plan = plan.model_copy(update={'channel_mix': normalise_mix(plan.channel_mix)})
    mix = plan.channel_mix

    price_delta = (plan.price - BASE_PRICE) / BASE_PRICE
    promo_depth_delta = (plan.promo_depth_pct - BASE_PROMO_DEPTH) / 100
    promo_months_delta = plan.promo_months - BASE_PROMO_MONTHS
    subsidy_delta = (plan.device_subsidy - BASE_SUBSIDY) / BASE_SUBSIDY

    payback = BASE_PAYBACK
    conversion = BASE_CONVERSION
    margin = BASE_MARGIN

    # Price
    margin += price_delta * PRICE_MARGIN_COEF
    conversion -= price_delta * PRICE_CONVERSION_COEF
    payback += price_delta * PRICE_PAYBACK_COEF
    drivers.append(_driver('Pricing', price_delta * PRICE_DRIVER_COEF))

    # Promo depth and months
    promo_payback_lift = clamp(
        promo_depth_delta * PROMO_DEPTH_PAYBACK_COEF + promo_months_delta * PROMO_MONTHS_PAYBACK_COEF,
        *PROMO_PAYBACK_BOUNDS,
    )
    payback += promo_payback_lift
    margin -= promo_depth_delta * PROMO_DEPTH_MARGIN_COEF + promo_months_delta * PROMO_MONTHS_MARGIN_COEF
    conversion += promo_depth_delta * PROMO_DEPTH_CONVERSION_COEF
    drivers.append(_driver('Promo depth', promo_payback_lift))

    # Device subsidy
    margin -= subsidy_delta * SUBSIDY_MARGIN_COEF
    conversion += subsidy_delta * SUBSIDY_CONVERSION_COEF
    payback += subsidy_delta * SUBSIDY_PAYBACK_COEF
    drivers.append(_driver('Device subsidy', subsidy_delta * SUBSIDY_DRIVER_COEF))

    # Channel mix
    search_gain = _mix_delta(mix, 'Search') * SEARCH_PAYBACK_COEF
    email_gain = _mix_delta(mix, 'Email') * EMAIL_PAYBACK_COEF
    payback += search_gain + email_gain
    conversion += _mix_delta(mix, 'Social') * SOCIAL_CONVERSION_COEF
    conversion += _mix_delta(mix, 'Retail') * RETAIL_CONVERSION_COEF
    margin -= _mix_delta(mix, 'Retail') * RETAIL_MARGIN_COEF
    drivers.append(_driver('Channel mix', search_gain + email_gain))

    # Calendar
    coverage_value = calendar_coverage(plan.calendar)
    calendar_lift = clamp(coverage_value * CALENDAR_PAYBACK_COEF, *CALENDAR_PAYBACK_BOUNDS)
    payback += calendar_lift
    conversion += coverage_value * CALENDAR_CONVERSION_COEF
    drivers.append(_driver('Calendar coverage', calendar_lift))

    if plan.inventory_hold:
        conversion -= INVENTORY_CONVERSION_PENALTY
        payback += INVENTORY_PAYBACK_PENALTY
        drivers.append(_driver('Inventory hold', INVENTORY_PAYBACK_PENALTY))

    budget_headroom = objective.budget - plan.price * plan.promo_months * SPEND_PER_PROMO_MONTH
    if budget_headroom < 0:
        payback_penalty = clamp(abs(budget_headroom) / BUDGET_PAYBACK_DIVISOR, 0.0, BUDGET_PAYBACK_CAP)
        payback += payback_penalty
        margin -= clamp(abs(budget_headroom) / BUDGET_MARGIN_DIVISOR, 0.0, BUDGET_MARGIN_CAP)
        drivers.append(_driver('Budget pressure', payback_penalty))

    coverage = coverage_signal(plan.calendar, mix)
    r2 = clamp(0.62 + coverage * 0.25 - abs(price_delta) * 0.08, 0.4, 0.93)
    confidence = compute_confidence(coverage, r2)

    kpis = PlanKpis(
        payback_mo=round_to(payback),
        payback_range=_range(payback, (1 - confidence) * PAYBACK_RANGE_SCALE),
        conversion_pct=round_to(conversion),
        conversion_range=_range(conversion, (1 - confidence) * CONVERSION_RANGE_SCALE),
        margin_pct=round_to(margin),
        margin_range=_range(margin, (1 - confidence) * MARGIN_RANGE_SCALE),
    )

    next_plan = plan.model_copy(
        update={
            'channel_mix': dict(plan.channel_mix),
            'calendar': [list(row) for row in plan.calendar],
            'kpis': kpis,
            'drivers': rank_drivers(drivers),
            'confidence': confidence,
            'creative_brief': creative_brief(plan, objective),
        },
        deep=True,
    )
    logger.debug(
        f"Simulated plan: payback={kpis.payback_mo} conversion={kpis.conversion_pct} "
        f"margin={kpis.margin_pct} confidence={confidence}"
    )
    return next_plan


# ============================================================================
# PLAN CONSTRUCTION & LEVERS
# ============================================================================

def create_plan_from_objective(objective: Objective) -> CampaignPlan:
    """Seed a plan from the goal preset and simulate it."""
    preset = GOAL_PRESETS[objective.goal]
    plan = CampaignPlan(
        price=preset['price'],
        promo_depth_pct=preset['promo_depth_pct'],
        promo_months=preset['promo_months'],
        device_subsidy=preset['device_subsidy'],
        channel_mix=dict(PLAN_BASE_MIX),
        calendar=base_calendar(),
        inventory_hold=objective.goal == 'Margin-first',
    )
    logger.info(f"Creating plan from objective: goal={objective.goal}")
    return simulate_campaign(plan, objective)


def apply_lever(plan: CampaignPlan, objective: Objective, **patch) -> CampaignPlan:
    """
    Apply lever edits and re-simulate.

    A partial ``channel_mix`` is merged over the current mix and renormalised.
    """
    data = plan.model_dump()
    if 'channel_mix' in patch and patch['channel_mix'] is not None:
        patch['channel_mix'] = normalise_mix({**plan.channel_mix, **patch['channel_mix']})
    if 'calendar' in patch and patch['calendar'] is not None:
        patch['calendar'] = [
            [int(clamp(cell, 0, CALENDAR_MAX_INTENSITY)) for cell in row] for row in patch['calendar']
        ]
    data.update({k: v for k, v in patch.items() if v is not None})
    return simulate_campaign(CampaignPlan.model_validate(data), objective)


def set_calendar_cell(plan: CampaignPlan, objective: Objective, row: int, column: int, value: int) -> CampaignPlan:
    calendar = [list(r) for r in plan.calendar]
    if 0 <= row < len(calendar) and 0 <= column < len(calendar[row]):
        calendar[row][column] = int(clamp(value, 0, CALENDAR_MAX_INTENSITY))
    return simulate_campaign(plan.model_copy(update={'calendar': calendar}), objective)

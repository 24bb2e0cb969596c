"""Planning module - plan simulation, plan arithmetic and the validation checklist."""
from .checklist import checklist_status, confidence_label, fix_issue
from .plan_math import (
    base_calendar,
    calendar_coverage,
    estimate_cac,
    estimate_plan_spend,
    normalise_mix,
    rebalance_mix,
)
from .plan_simulator import apply_lever, create_plan_from_objective, set_calendar_cell, simulate_campaign

__all__ = [
    'apply_lever',
    'base_calendar',
    'calendar_coverage',
    'checklist_status',
    'confidence_label',
    'create_plan_from_objective',
    'estimate_cac',
    'estimate_plan_spend',
    'fix_issue',
    'normalise_mix',
    'rebalance_mix',
    'set_calendar_cell',
    'simulate_campaign',
]

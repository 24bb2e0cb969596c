"""
Plan validation checklist and canned fixes.
"""
from typing import Dict, Literal

from acquisition_planner.logging_config import get_logger
from acquisition_planner.models import CALENDAR_MAX_INTENSITY, CALENDAR_WEEKS, CampaignPlan, Objective
from acquisition_planner.services.planning.plan_math import (
    calendar_coverage,
    estimate_cac,
    estimate_plan_spend,
    rebalance_mix,
    sum_calendar_column,
)
from acquisition_planner.services.planning.plan_simulator import simulate_campaign
from acquisition_planner.services.utils.numeric import round_to

logger = get_logger(__name__)

ChecklistIssue = Literal['budget', 'cac', 'payback', 'margin', 'calendar', 'confidence']

CALENDAR_COVERAGE_MIN = 0.45
CONFIDENCE_MIN = 0.5


def confidence_label(value: float) -> str:
    if value < 0.45:
        return 'Low'
    if value < 0.7:
        return 'Medium'
    return 'High'


def checklist_status(plan: CampaignPlan, objective: Objective) -> Dict[str, bool]:
    """
    Evaluate the plan against the objective's guardrails.

    Returns:
        Mapping of ``<issue>_ok`` flags plus ``all_ok``
    """
    spend = estimate_plan_spend(plan)
    cac = estimate_cac(plan)
    weeks_covered = all(sum_calendar_column(plan.calendar, week) > 0 for week in range(CALENDAR_WEEKS))
    status = {
        'budget_ok': spend <= objective.budget,
        'cac_ok': cac <= objective.cac_ceiling,
        'payback_ok': plan.kpis.payback_mo <= objective.payback_target,
        'margin_ok': plan.kpis.margin_pct >= objective.margin_target,
        'calendar_ok': calendar_coverage(plan.calendar) > CALENDAR_COVERAGE_MIN and weeks_covered,
        'confidence_ok': plan.confidence >= CONFIDENCE_MIN,
    }
    status['all_ok'] = all(status.values())
    return status


def fix_issue(plan: CampaignPlan, objective: Objective, issue: ChecklistIssue) -> CampaignPlan:
    """Apply the canned fix for one checklist issue and re-simulate."""
    update = {}
    if issue == 'budget':
        update['promo_months'] = max(1, plan.promo_months - 1)
        update['promo_depth_pct'] = max(8.0, round_to(plan.promo_depth_pct - 1.5))
    elif issue == 'cac':
        update['channel_mix'] = rebalance_mix(plan.channel_mix, 'Search', plan.channel_mix.get('Search', 0.0) + 4)
        update['device_subsidy'] = max(10.0, plan.device_subsidy - 3)
    elif issue == 'payback':
        update['channel_mix'] = rebalance_mix(plan.channel_mix, 'Email', plan.channel_mix.get('Email', 0.0) + 3)
        update['promo_months'] = min(6, plan.promo_months + 1)
    elif issue == 'margin':
        update['price'] = min(120.0, round_to(plan.price + 2))
        update['promo_depth_pct'] = max(6.0, round_to(plan.promo_depth_pct - 2))
    elif issue == 'calendar':
        update['calendar'] = [
            [
                cell if cell > 0 else (1 if col % 3 == 0 else 2 if row_idx == 0 else 1)
                for col, cell in enumerate(row)
            ]
            for row_idx, row in enumerate(plan.calendar)
        ]
    elif issue == 'confidence':
        update['calendar'] = [[min(CALENDAR_MAX_INTENSITY, cell + 1) for cell in row] for row in plan.calendar]
    else:
        raise ValueError(f"Unknown checklist issue: {issue}")

    logger.info(f"Applying checklist fix: {issue}")
    return simulate_campaign(plan.model_copy(update=update), objective)

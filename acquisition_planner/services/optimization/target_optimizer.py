"""
Target Optimizer - greedy local search that nudges a plan toward its objective

Each iteration re-simulates the working plan and checks four guardrails in
priority order:

1. Estimated spend over budget      -> promo months -1 (floor 1)
2. Estimated CAC over ceiling        -> Search mix +5
3. Payback over target               -> Email mix +3, promo months +1 (cap 6)
4. Margin under target               -> price +1.5 (cap 110)

When nothing fires, price and promo are pulled toward the goal preset. The
loop stops on convergence, a repeated state, or the iteration cap. Results
are suggestions; there is no global optimum guarantee.
"""
import json
from typing import Dict, List, Set, Tuple

from acquisition_planner.logging_config import get_logger
from acquisition_planner.models import CampaignPlan, Objective, OptimizationResult, OptimizerChange
from acquisition_planner.services.planning.plan_math import (
    estimate_cac,
    estimate_plan_spend,
    normalise_mix,
    rebalance_mix,
)
from acquisition_planner.services.planning.plan_simulator import simulate_campaign
from acquisition_planner.services.utils.numeric import round_to

logger = get_logger(__name__)

MAX_ITERATIONS = 14

CAC_TOLERANCE = 0.5
PAYBACK_TOLERANCE = 0.2
MARGIN_TOLERANCE = 0.2

SEARCH_STEP = 5.0
EMAIL_STEP = 3.0
PROMO_MONTHS_FLOOR = 1
PROMO_MONTHS_CAP = 6
PRICE_STEP = 1.5
PRICE_CAP = 110.0

GOAL_PRESETS: Dict[str, Dict[str, float]] = {
    'Balanced': {'price': 79, 'promo_depth_pct': 15, 'promo_months': 3},
    'Growth-first': {'price': 74, 'promo_depth_pct': 20, 'promo_months': 4},
    'Margin-first': {'price': 86, 'promo_depth_pct': 10, 'promo_months': 2},
}


class TargetOptimizer:
    """
    Greedy guardrail optimizer for a single campaign plan.

    The optimizer never mutates the plan it is given; every step works on a
    fresh copy and records the lever changes it applied.
    """

    def __init__(self, objective: Objective, max_iterations: int = MAX_ITERATIONS):
        self.objective = objective
        self.max_iterations = max_iterations
        self.changes: List[OptimizerChange] = []

    def _record(self, field: str, before, after) -> bool:
        if before == after:
            return False
        self.changes.append(OptimizerChange(field=field, from_value=before, to_value=after))
        return True

    @staticmethod
    def snapshot(plan: CampaignPlan) -> str:
        return json.dumps(
            {
                'price': plan.price,
                'promo': plan.promo_months,
                'depth': plan.promo_depth_pct,
                'mix': plan.channel_mix,
            },
            sort_keys=True,
        )

    def apply_guardrails(self, plan: CampaignPlan) -> Tuple[CampaignPlan, bool]:
        """Apply every guardrail that fires; return the new plan and whether anything changed."""
        objective = self.objective
        spend = estimate_plan_spend(plan)
        cac = estimate_cac(plan)
        budget_gap = spend - objective.budget
        cac_gap = cac - objective.cac_ceiling
        payback_gap = plan.kpis.payback_mo - objective.payback_target
        margin_gap = objective.margin_target - plan.kpis.margin_pct

        price = plan.price
        promo_months = plan.promo_months
        mix = dict(plan.channel_mix)
        adjusted = False

        if budget_gap > 0:
            nxt = max(PROMO_MONTHS_FLOOR, promo_months - 1)
            adjusted |= self._record('Promo months', promo_months, nxt)
            promo_months = nxt

        if cac_gap > CAC_TOLERANCE:
            before = mix.get('Search', 0.0)
            mix = rebalance_mix(mix, 'Search', before + SEARCH_STEP)
            adjusted |= self._record('Search mix', before, mix['Search'])

        if payback_gap > PAYBACK_TOLERANCE:
            before = mix.get('Email', 0.0)
            mix = rebalance_mix(mix, 'Email', before + EMAIL_STEP)
            adjusted |= self._record('Email mix', before, mix['Email'])
            nxt = min(PROMO_MONTHS_CAP, promo_months + 1)
            adjusted |= self._record('Promo months', promo_months, nxt)
            promo_months = nxt

        if margin_gap > MARGIN_TOLERANCE:
            nxt = round_to(min(PRICE_CAP, price + PRICE_STEP))
            adjusted |= self._record('Price', round_to(price), nxt)
            price = nxt

        updated = plan.model_copy(update={'price': price, 'promo_months': promo_months, 'channel_mix': mix})
        return updated, adjusted

    def pull_toward_goal(self, plan: CampaignPlan) -> Tuple[CampaignPlan, bool]:
        """Damped pull of price and promo toward the goal preset (2:1 toward current)."""
        preset = GOAL_PRESETS[self.objective.goal]
        price = round_to((plan.price * 2 + preset['price']) / 3)
        depth = round_to((plan.promo_depth_pct * 2 + preset['promo_depth_pct']) / 3)
        months = int(round((plan.promo_months * 2 + preset['promo_months']) / 3))

        changed = self._record('Recenter price', round_to(plan.price), price)
        changed |= self._record('Recenter promo depth', round_to(plan.promo_depth_pct), depth)
        changed |= self._record('Recenter promo months', plan.promo_months, months)
        if not changed:
            return plan, False
        return plan.model_copy(update={'price': price, 'promo_depth_pct': depth, 'promo_months': months}), True

    def optimize(self, plan: CampaignPlan) -> OptimizationResult:
        self.changes = []
        working = plan.model_copy(deep=True)
        seen: Set[str] = set()
        iterations = 0
        stop_reason = 'iteration_cap'

        while iterations < self.max_iterations:
            iterations += 1
            working = simulate_campaign(working, self.objective)
            key = self.snapshot(working)
            if key in seen:
                stop_reason = 'fixed_point'
                break
            seen.add(key)

            working, adjusted = self.apply_guardrails(working)
            if adjusted:
                continue

            working, pulled = self.pull_toward_goal(working)
            if not pulled:
                stop_reason = 'converged'
                break

        working = working.model_copy(update={'channel_mix': normalise_mix(working.channel_mix)})
        working = simulate_campaign(working, self.objective)

        logger.info(
            f"Optimizer finished: iterations={iterations} stop={stop_reason} "
            f"changes={len(self.changes)} payback={working.kpis.payback_mo} margin={working.kpis.margin_pct}"
        )
        return OptimizationResult(
            plan=working,
            changes=list(self.changes),
            iterations=iterations,
            stop_reason=stop_reason,
        )


def optimize_to_target(plan: CampaignPlan, objective: Objective) -> OptimizationResult:
    """
    Run the guardrail optimizer on ``plan``.

    Args:
        plan: Starting plan (left untouched)
        objective: Targets and budget

    Returns:
        OptimizationResult with the re-simulated plan and the change log
    """
    return TargetOptimizer(objective).optimize(plan)

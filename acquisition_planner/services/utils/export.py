"""
CSV exports for campaign plans and telemetry streams.
"""
from typing import Iterable, List

import pandas as pd

from acquisition_planner.models import PLAN_CHANNEL_KEYS, CampaignPlan, Objective, TelemetryPoint
from acquisition_planner.services.planning.plan_math import estimate_cac, estimate_plan_spend

CSV_WIDTH = 3


def _format_range(bounds) -> str:
    return f"{bounds[0]:g} - {bounds[1]:g}"


def _rows_to_csv(rows: List[list]) -> str:
    padded = [list(row) + [''] * (CSV_WIDTH - len(row)) for row in rows]
    df = pd.DataFrame(padded)
    return df.to_csv(index=False, header=False, lineterminator='\n')


def plan_to_csv(plan: CampaignPlan, objective: Objective, cohort_name: str) -> str:
    """
    Render a plan as CSV: objective header, plan fields and KPI ranges, then
    one (channel, week, intensity) row per calendar cell.
    """
    rows: List[list] = [
        ['Cohort', cohort_name],
        ['Goal', objective.goal],
        ['Payback target (mo)', f"{objective.payback_target:g}"],
        ['Margin target (%)', f"{objective.margin_target:g}"],
        ['CAC ceiling ($)', f"{objective.cac_ceiling:g}"],
        ['Budget ($)', f"{objective.budget:g}"],
        ['Estimated spend ($)', estimate_plan_spend(plan)],
        ['Estimated CAC ($)', f"{estimate_cac(plan):g}"],
        [],
        ['Plan field', 'Value'],
        ['Price ($)', f"{plan.price:.2f}"],
        ['Promo depth (%)', f"{plan.promo_depth_pct:.1f}"],
        ['Promo months', plan.promo_months],
        ['Device subsidy ($)', f"{plan.device_subsidy:.2f}"],
        ['Inventory hold', 'Yes' if plan.inventory_hold else 'No'],
    ]
    for key in PLAN_CHANNEL_KEYS:
        rows.append([f"Channel mix {key} (%)", f"{plan.channel_mix.get(key, 0.0):.2f}"])
    kpis = plan.kpis
    rows.extend([
        ['Payback (mo)', f"{kpis.payback_mo:.2f}"],
        ['Payback range (mo)', _format_range(kpis.payback_range)],
        ['Conversion (%)', f"{kpis.conversion_pct:.2f}"],
        ['Conversion range (%)', _format_range(kpis.conversion_range)],
        ['Margin (%)', f"{kpis.margin_pct:.2f}"],
        ['Margin range (%)', _format_range(kpis.margin_range)],
        [],
        ['Calendar', 'Week', 'Intensity'],
    ])
    for channel, weeks in zip(PLAN_CHANNEL_KEYS, plan.calendar):
        for idx, intensity in enumerate(weeks):
            rows.append([channel, idx + 1, intensity])
    return _rows_to_csv(rows)


def telemetry_to_csv(points: Iterable[TelemetryPoint]) -> str:
    """Telemetry stream as ``time,cvr,arpu_delta,net_adds,churn_delta`` rows (ISO time)."""
    df = pd.DataFrame([p.model_dump() for p in points], columns=['t', 'cvr', 'arpu_delta', 'net_adds', 'churn_delta'])
    df.insert(0, 'time', pd.to_datetime(df['t'].astype('int64'), unit='ms', utc=True).dt.strftime('%Y-%m-%dT%H:%M:%SZ'))
    return df.drop(columns=['t']).to_csv(index=False, lineterminator='\n')

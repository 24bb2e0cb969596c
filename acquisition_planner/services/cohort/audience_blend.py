"""
Audience Blend - one cohort run per selected micro segment, rolled up

Net adds and 12-month gross margin add up across audiences. Payback and CAC
are net-add-weighted, with an unreached ">24" payback counted as 26 months.
Margin is revenue-weighted; conversion and the cumulative timeline are plain
averages over audiences.
"""
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from acquisition_planner.data.seeds import get_offer
from acquisition_planner.logging_config import get_logger
from acquisition_planner.models import (
    PAYBACK_SENTINEL,
    Assumptions,
    AudienceSimulation,
    CohortBlend,
    CohortOutput,
    MicroSegment,
    TimelinePoint,
)
from acquisition_planner.services.cohort.cohort_simulator import (
    CONTRIBUTION_HORIZON_MO,
    GROSS_MARGIN_WINDOW_MO,
    run_cohort,
)
from acquisition_planner.services.cohort.micro_segments import micro_as_segment
from acquisition_planner.services.utils.numeric import round_to

logger = get_logger(__name__)

UNREACHED_PAYBACK_MO = 26


def payback_weight(payback: Union[int, str]) -> float:
    return float(UNREACHED_PAYBACK_MO) if payback == PAYBACK_SENTINEL else float(payback)


def empty_blend() -> CohortBlend:
    return CohortBlend(
        net_adds=0,
        payback_months=PAYBACK_SENTINEL,
        gross_margin_12mo=0.0,
        cac=0.0,
        margin_pct=0.0,
        conversion_rate=0.0,
        timeline=[],
    )


def blend_cohorts(results: Sequence[CohortOutput], annual_revenue: Sequence[float]) -> CohortBlend:
    """
    Roll per-audience cohort outputs into one blended result.

    Args:
        results: One cohort output per audience
        annual_revenue: First-year revenue per audience (price x 12 x net adds)

    Returns:
        CohortBlend; ">24" payback and zero totals when nothing converts
    """
    if not results:
        return empty_blend()

    adds = np.array([r.net_adds for r in results], dtype=float)
    total_adds = int(adds.sum())
    gross_margin = float(sum(r.gross_margin_12mo for r in results))

    if total_adds > 0:
        paybacks = np.array([payback_weight(r.payback_months) for r in results])
        weighted_payback = int(round(float(np.dot(paybacks, adds)) / total_adds))
        payback = PAYBACK_SENTINEL if weighted_payback > CONTRIBUTION_HORIZON_MO else weighted_payback
        cac = float(np.dot([r.cac for r in results], adds)) / total_adds
    else:
        payback = PAYBACK_SENTINEL
        cac = 0.0

    revenue = float(sum(annual_revenue))
    margin_pct = gross_margin / revenue * 100 if revenue > 0 else 0.0

    curves = np.array([[p.cumulative_contribution for p in r.timeline] for r in results])
    timeline = [
        TimelinePoint(month=month, cumulative_contribution=round_to(value))
        for month, value in enumerate(curves.mean(axis=0), start=1)
    ]

    return CohortBlend(
        net_adds=total_adds,
        payback_months=payback,
        gross_margin_12mo=round_to(gross_margin),
        cac=round_to(cac),
        margin_pct=round_to(margin_pct, 1),
        conversion_rate=round_to(float(np.mean([r.conversion_rate for r in results])), 4),
        timeline=timeline,
    )


def simulate_audiences(
    micros: Sequence[MicroSegment],
    offer_id: Optional[str] = None,
    channel_mix: Optional[Dict[str, float]] = None,
    assumptions: Optional[Assumptions] = None,
) -> AudienceSimulation:
    """
    Run the cohort simulator for each micro segment and blend the results.

    Each audience uses its own default offer and channel mix unless
    ``offer_id`` or ``channel_mix`` overrides them for every audience.
    Repeated micro ids are simulated once.
    """
    by_audience: Dict[str, CohortOutput] = {}
    annual_revenue: List[float] = []
    for micro in micros:
        if micro.id in by_audience:
            continue
        offer = get_offer(offer_id or micro.default_offer_id)
        mix = channel_mix if channel_mix else micro.default_channel_mix
        result = run_cohort(micro_as_segment(micro), offer, mix, assumptions)
        by_audience[micro.id] = result
        annual_revenue.append(offer.monthly_price * GROSS_MARGIN_WINDOW_MO * result.net_adds)

    blended = blend_cohorts(list(by_audience.values()), annual_revenue)
    logger.info(
        f"Blended {len(by_audience)} audiences: net_adds={blended.net_adds} "
        f"payback={blended.payback_months} cac={blended.cac}"
    )
    return AudienceSimulation(blended=blended, by_audience=by_audience)

"""
Cohort Simulator - take-rate, reach, CAC and payback for one segment/offer/mix

Given a segment, an offer archetype and a channel mix, estimates how many
subscribers the cohort yields and how quickly they pay back their
acquisition cost:

- Take-rate: logistic response to growth, offer value, channel quality and price pressure
- Reach: channel reach potential modulated by the segment's sensitivities
- Contribution: 24 monthly margins net of servicing and amortised device subsidy
- Payback: first month where cumulative contribution covers CAC, ">24" otherwise

Every guard clamps; nothing here raises on numeric input.
"""
from typing import Dict, List, Optional, Union

import numpy as np
from scipy.special import expit

from acquisition_planner.data.seeds import CHANNELS, DEFAULT_ASSUMPTIONS, get_offer
from acquisition_planner.logging_config import get_logger
from acquisition_planner.models import (
    PAYBACK_SENTINEL,
    Assumptions,
    CacBreakdown,
    Channel,
    CohortOutput,
    OfferArchetype,
    Segment,
    TimelinePoint,
)
from acquisition_planner.services.utils.numeric import clamp, normalize_weights, round_to

logger = get_logger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

CONTRIBUTION_HORIZON_MO = 24
GROSS_MARGIN_WINDOW_MO = 12

TAKE_RATE_BOUNDS = (0.01, 0.48)
REACH_BOUNDS = (0.05, 0.65)

DEFAULT_GROWTH_RATE = 0.06
REFERENCE_PRICE = 60.0
PRICE_PRESSURE_SCALE = 25.0

# Logistic score weights
TAKE_RATE_INTERCEPT = -2.4
GROWTH_WEIGHT = 4.0
PROMO_VALUE_SCALE = 100.0
BUNDLE_FLAG_BOOST = 0.15
DEVICE_SUBSIDY_SCALE = 400.0
VALUE_AFFINITY_WEIGHT = 0.4
CHANNEL_EFFICIENCY_WEIGHT = 0.8
CHANNEL_REACH_WEIGHT = 0.5

# Reach modifier weights
REACH_VALUE_LIFT = 0.3
REACH_PRICE_DRAG = 0.2


# ============================================================================
# BUILDING BLOCKS
# ============================================================================

def channel_weights(channel_mix: Dict[str, float], channels: Optional[List[Channel]] = None) -> Dict[str, float]:
    """Normalise a channel-id mix to fractions over the catalog channels."""
    channels = channels or CHANNELS
    return normalize_weights(channel_mix, [c.id for c in channels])


def weighted_channel_cac(weights: Dict[str, float], channels: List[Channel]) -> float:
    return float(sum(weights.get(c.id, 0.0) * c.cac for c in channels))


def take_rate(
    segment: Segment,
    offer: OfferArchetype,
    weights: Dict[str, float],
    channels: List[Channel],
) -> float:
    """Logistic take-rate clamped to ``TAKE_RATE_BOUNDS``."""
    growth = segment.growth_rate if segment.growth_rate is not None else DEFAULT_GROWTH_RATE
    price_pressure = (offer.monthly_price - REFERENCE_PRICE) / PRICE_PRESSURE_SCALE
    value_boost = (
        offer.promo_value / PROMO_VALUE_SCALE
        + len(offer.bundle_flags) * BUNDLE_FLAG_BOOST
        + offer.device_subsidy / DEVICE_SUBSIDY_SCALE
    ) * segment.value_sensitivity
    affinity = segment.value_sensitivity * VALUE_AFFINITY_WEIGHT
    efficiency = sum(weights.get(c.id, 0.0) * c.efficiency for c in channels)
    reach = sum(weights.get(c.id, 0.0) * c.reach for c in channels)
    channel_effect = efficiency * CHANNEL_EFFICIENCY_WEIGHT + reach * CHANNEL_REACH_WEIGHT

    score = (
        TAKE_RATE_INTERCEPT
        + growth * GROWTH_WEIGHT
        + value_boost
        + affinity
        + channel_effect
        - price_pressure * segment.price_sensitivity
    )
    return clamp(float(expit(score)), *TAKE_RATE_BOUNDS)


def reach_share(segment: Segment, weights: Dict[str, float], channels: List[Channel]) -> float:
    """Share of the segment the mix can reach, clamped to ``REACH_BOUNDS``."""
    potential = sum(weights.get(c.id, 0.0) * c.reach for c in channels)
    modifier = 1 + REACH_VALUE_LIFT * segment.value_sensitivity - REACH_PRICE_DRAG * segment.price_sensitivity
    return clamp(potential * modifier, *REACH_BOUNDS)


def net_adds(segment_size: int, reach: float, rate: float) -> int:
    return int(round(segment_size * reach * rate))


def fully_loaded_cac(weights: Dict[str, float], offer: OfferArchetype, assumptions: Assumptions,
                     channels: List[Channel]) -> CacBreakdown:
    return CacBreakdown(
        channel_cac=weighted_channel_cac(weights, channels),
        promo_cost=float(offer.promo_months * offer.promo_value),
        device_subsidy=float(offer.device_subsidy),
        execution_cost=float(assumptions.execution_cost),
    )


def monthly_contribution(offer: OfferArchetype, assumptions: Assumptions,
                         horizon: int = CONTRIBUTION_HORIZON_MO) -> np.ndarray:
    """Per-subscriber contribution for months 1..horizon."""
    months = np.arange(1, horizon + 1)
    gross_margin = offer.monthly_price * assumptions.gross_margin_rate
    amort = max(1, assumptions.device_subsidy_amort_mo)
    subsidy = np.where(months <= amort, offer.device_subsidy / amort, 0.0)
    return gross_margin - assumptions.servicing_cost_per_sub_mo - subsidy


def payback_months(cac: float, contributions: np.ndarray) -> Union[int, str]:
    """First 1-based month where cumulative contribution reaches ``cac``."""
    cumulative = np.cumsum(contributions)
    hits = np.nonzero(cumulative >= cac)[0]
    if hits.size == 0:
        return PAYBACK_SENTINEL
    return int(hits[0]) + 1


# ============================================================================
# COHORT RUN
# ============================================================================

def run_cohort(
    segment: Segment,
    offer: OfferArchetype,
    channel_mix: Dict[str, float],
    assumptions: Optional[Assumptions] = None,
    channels: Optional[List[Channel]] = None,
) -> CohortOutput:
    """
    Simulate one acquisition cohort.

    Args:
        segment: Target segment
        offer: Offer archetype presented to the segment
        channel_mix: Channel id -> weight (any scale; renormalised)
        assumptions: Unit-economics constants (catalog defaults if omitted)
        channels: Channel catalog override

    Returns:
        CohortOutput with take-rate, reach, net adds, CAC, payback and GM12
    """
    assumptions = assumptions or DEFAULT_ASSUMPTIONS
    channels = channels or CHANNELS
    weights = channel_weights(channel_mix, channels)

    rate = take_rate(segment, offer, weights, channels)
    reach = reach_share(segment, weights, channels)
    adds = net_adds(segment.size, reach, rate)

    breakdown = fully_loaded_cac(weights, offer, assumptions, channels)
    cac = breakdown.channel_cac + breakdown.promo_cost + breakdown.device_subsidy + breakdown.execution_cost

    contributions = monthly_contribution(offer, assumptions)
    payback = payback_months(cac, contributions)

    # Cohort-level totals scale both sides by net adds
    first_year = float(contributions[:GROSS_MARGIN_WINDOW_MO].sum())
    gm12 = first_year * adds
    annual_revenue = offer.monthly_price * GROSS_MARGIN_WINDOW_MO
    margin_pct = first_year / annual_revenue * 100 if annual_revenue > 0 else 0.0

    cumulative = np.cumsum(contributions)
    timeline = [
        TimelinePoint(month=month, cumulative_contribution=round_to(value - cac))
        for month, value in enumerate(cumulative, start=1)
    ]

    logger.debug(
        f"Cohort {segment.id} x {offer.id}: take={rate:.3f} reach={reach:.3f} "
        f"net_adds={adds} cac={cac:.2f} payback={payback}"
    )

    return CohortOutput(
        take_rate=round_to(rate, 4),
        reach=round_to(reach, 4),
        conversion_rate=round_to(rate * reach, 4),
        net_adds=adds,
        cac=round_to(cac),
        monthly_contribution=[round_to(v) for v in contributions],
        payback_months=payback,
        gross_margin_12mo=round_to(gm12),
        margin_pct=round_to(margin_pct, 1),
        breakdown=CacBreakdown(
            channel_cac=round_to(breakdown.channel_cac),
            promo_cost=round_to(breakdown.promo_cost),
            device_subsidy=round_to(breakdown.device_subsidy),
            execution_cost=round_to(breakdown.execution_cost),
        ),
        timeline=timeline,
    )


def summarise_cohort(
    segment: Segment,
    offer_id: Optional[str] = None,
    channel_mix: Optional[Dict[str, float]] = None,
    assumptions: Optional[Assumptions] = None,
) -> CohortOutput:
    """Run a cohort on the segment's default offer and mix unless overridden."""
    offer = get_offer(offer_id or segment.default_offer_id or 'offer-value-bundle')
    mix = channel_mix if channel_mix else segment.default_channel_mix
    return run_cohort(segment, offer, mix, assumptions)

"""
Micro-segment generation and per-micro recommendations.
"""
import math
from typing import List, Optional, Sequence

from acquisition_planner.data.seeds import OFFERS, SEGMENTS, get_offer
from acquisition_planner.errors import CatalogLookupError
from acquisition_planner.models import (
    Assumptions,
    ExpectedOutcome,
    MicroSegment,
    Recommendation,
    Segment,
)
from acquisition_planner.services.cohort.cohort_simulator import channel_weights, run_cohort
from acquisition_planner.services.utils.numeric import clamp

PERSONA_LABELS = [
    'Value Seekers',
    'Network Loyalists',
    'Streaming Enthusiasts',
    'Bundle Builders',
    'Device Upgraders',
    'Switch Sprinters',
    'Coverage Conscious',
]

CLUSTER_WEIGHTS = [0.18, 0.22, 0.2, 0.2, 0.2]
MICRO_GROWTH_RATE = 0.06
PRICE_REACTIVE_OFFER_ID = 'offer-value-bundle'


def seeded_random(seed: float) -> float:
    """Deterministic pseudo-random value in [0, 1)."""
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def name_by_persona(segment: Segment, index: int) -> str:
    if segment.region_mix:
        region_focus = max(segment.region_mix.items(), key=lambda item: item[1])[0]
    else:
        region_focus = 'mixed'
    persona = PERSONA_LABELS[(index + len(segment.name)) % len(PERSONA_LABELS)]
    return f"{persona} ({region_focus.capitalize()})"


def build_traits(segment: Segment, variation: float) -> List[str]:
    traits = []
    if segment.price_sensitivity + variation > 0.75:
        traits.append('Price reactive')
    if segment.value_sensitivity + variation > 0.75:
        traits.append('Value maximisers')
    if segment.demographics.get('household') == 'family':
        traits.append('Multi-line households')
    if segment.demographics.get('age') == 'senior':
        traits.append('Needs assisted onboarding')
    if segment.demographics.get('age') == 'youth':
        traits.append('Digital-first journeys')
    if not traits:
        traits.append('Balanced motivations')
    return traits[:3]


def generate_micro_segments(segment: Segment) -> List[MicroSegment]:
    """Split a segment into five deterministic micro clusters."""
    micros = []
    for i, weight in enumerate(CLUSTER_WEIGHTS):
        seed = segment.size * (i + 1)
        variation = seeded_random(seed) * 0.2 - 0.1
        price = clamp(segment.price_sensitivity + variation, 0.2, 0.95)
        value = clamp(segment.value_sensitivity - variation, 0.2, 0.95)
        default_offer_id = (
            PRICE_REACTIVE_OFFER_ID if price > 0.7
            else segment.default_offer_id or OFFERS[0].id
        )
        default_channel_mix = {}
        for idx, (channel_id, mix_weight) in enumerate(segment.default_channel_mix.items()):
            noise = seeded_random(seed + idx) * 0.1 - 0.05
            default_channel_mix[channel_id] = max(0.05, mix_weight + noise)

        micros.append(MicroSegment(
            id=f"{segment.id}-micro-{i}",
            parent_segment_id=segment.id,
            name=name_by_persona(segment, i),
            size=int(round(segment.size * weight)),
            traits=build_traits(segment, variation),
            price_sensitivity=price,
            value_sensitivity=value,
            default_channel_mix=default_channel_mix,
            default_offer_id=default_offer_id,
        ))
    return micros


def find_micro_segments(micro_ids: Sequence[str]) -> List[MicroSegment]:
    """Resolve micro-segment ids across every catalog segment, keeping the given order."""
    by_id = {micro.id: micro for segment in SEGMENTS for micro in generate_micro_segments(segment)}
    unknown = [mid for mid in micro_ids if mid not in by_id]
    if unknown:
        raise CatalogLookupError(f"Unknown micro segments: {unknown}", details={'known': sorted(by_id)})
    return [by_id[mid] for mid in micro_ids]


def micro_as_segment(micro: MicroSegment) -> Segment:
    return Segment(
        id=micro.id,
        name=micro.name,
        size=micro.size,
        price_sensitivity=micro.price_sensitivity,
        value_sensitivity=micro.value_sensitivity,
        growth_rate=MICRO_GROWTH_RATE,
    )


def build_recommendation(micro: MicroSegment, assumptions: Optional[Assumptions] = None) -> Recommendation:
    """Recommend offer, mix and creative tone for a micro segment."""
    offer = get_offer(micro.default_offer_id)
    channel_mix = {k: v for k, v in channel_weights(micro.default_channel_mix).items() if v > 0}
    summary = run_cohort(micro_as_segment(micro), offer, channel_mix, assumptions)
    rationale = [
        'Lead with promo-led storytelling' if micro.price_sensitivity > 0.7 else 'Reinforce network reliability',
        'Bundle emphasises perceived value' if micro.value_sensitivity > 0.75
        else 'Keep CAC disciplined with targeted channels',
    ]
    if 'Digital-first journeys' in micro.traits:
        creative_tone = ['Energetic', 'Youthful social proof', 'Streaming hero moments']
    else:
        creative_tone = ['Pragmatic savings', 'Service reassurance', 'Family use-cases']

    return Recommendation(
        channel_mix=channel_mix,
        offer_archetype_id=offer.id,
        rationale=rationale,
        creative_tone=creative_tone,
        expected=ExpectedOutcome(
            payback_months=summary.payback_months,
            gross_margin_12mo=summary.gross_margin_12mo,
            net_adds=summary.net_adds,
        ),
    )

"""
Synthetic reference catalog: segments, offer archetypes, channels and default assumptions.
"""
from typing import Dict, List

from acquisition_planner.errors import CatalogLookupError
from acquisition_planner.models import Assumptions, Channel, OfferArchetype, Segment


CHANNELS: List[Channel] = [
    Channel(id='ch-search', name='Search', cac=65.0, reach=0.36, efficiency=0.72),
    Channel(id='ch-social', name='Social', cac=85.0, reach=0.42, efficiency=0.65),
    Channel(id='ch-email', name='Email', cac=40.0, reach=0.30, efficiency=0.60),
    Channel(id='ch-retail', name='Retail', cac=90.0, reach=0.28, efficiency=0.58),
    Channel(id='ch-field', name='Field', cac=180.0, reach=0.22, efficiency=0.55),
]

OFFERS: List[OfferArchetype] = [
    OfferArchetype(
        id='offer-value-bundle',
        name='Value Bundle',
        description='2-line bundle with streaming perk and $15/mo promo for 3 months.',
        monthly_price=65.0,
        promo_months=3,
        promo_value=15.0,
        device_subsidy=120.0,
        bundle_flags=['streaming', 'multi-line'],
    ),
    OfferArchetype(
        id='offer-device-boost',
        name='Device Boost',
        description='$200 device credit with 24-month installment.',
        monthly_price=75.0,
        promo_months=2,
        promo_value=10.0,
        device_subsidy=200.0,
    ),
    OfferArchetype(
        id='offer-price-lock',
        name='Price-Lock 12',
        description='Premium unlimited with price locked for 12 months.',
        monthly_price=90.0,
        promo_months=1,
        promo_value=20.0,
        device_subsidy=150.0,
    ),
    OfferArchetype(
        id='offer-streamer-pack',
        name='Streamer Pack',
        description='Unlimited premium data with 3 streaming services included.',
        monthly_price=85.0,
        promo_months=3,
        promo_value=18.0,
        device_subsidy=160.0,
        bundle_flags=['streaming'],
    ),
]

SEGMENTS: List[Segment] = [
    Segment(
        id='seg-value-seekers',
        name='Value Seekers',
        size=420_000,
        growth_rate=0.08,
        price_sensitivity=0.82,
        value_sensitivity=0.64,
        region_mix={'urban': 0.42, 'suburban': 0.33, 'rural': 0.25},
        demographics={'income': 'low', 'age': 'adult', 'household': 'family'},
        notes='Large prepaid skew, hunt for discounts but respond to bundles.',
        default_offer_id='offer-value-bundle',
        default_channel_mix={'ch-social': 0.35, 'ch-search': 0.35, 'ch-retail': 0.2, 'ch-field': 0.1},
    ),
    Segment(
        id='seg-premium-network',
        name='Premium Network Loyalists',
        size=250_000,
        growth_rate=0.05,
        price_sensitivity=0.38,
        value_sensitivity=0.74,
        region_mix={'urban': 0.55, 'suburban': 0.35, 'rural': 0.1},
        demographics={'income': 'high', 'age': 'adult', 'household': 'single'},
        notes='Expect flawless coverage and premium support; low churn but high ARPU.',
        default_offer_id='offer-price-lock',
        default_channel_mix={'ch-search': 0.25, 'ch-retail': 0.3, 'ch-field': 0.2, 'ch-social': 0.25},
    ),
    Segment(
        id='seg-rural-seniors',
        name='Rural Seniors',
        size=150_000,
        growth_rate=0.02,
        price_sensitivity=0.55,
        value_sensitivity=0.48,
        region_mix={'urban': 0.08, 'suburban': 0.22, 'rural': 0.7},
        demographics={'income': 'mid', 'age': 'senior', 'household': 'single'},
        notes='Need reliability and assisted onboarding; limited data usage.',
        default_offer_id='offer-device-boost',
        default_channel_mix={'ch-field': 0.35, 'ch-retail': 0.4, 'ch-social': 0.1, 'ch-search': 0.15},
    ),
    Segment(
        id='seg-urban-streamers',
        name='Urban Streamers',
        size=310_000,
        growth_rate=0.11,
        price_sensitivity=0.58,
        value_sensitivity=0.86,
        region_mix={'urban': 0.68, 'suburban': 0.27, 'rural': 0.05},
        demographics={'income': 'mid', 'age': 'youth', 'household': 'single'},
        notes='Heavy data + entertainment usage; respond to bundles and speed.',
        default_offer_id='offer-streamer-pack',
        default_channel_mix={'ch-social': 0.4, 'ch-search': 0.3, 'ch-email': 0.2, 'ch-retail': 0.1},
    ),
    Segment(
        id='seg-family-bundlers',
        name='Family Bundlers',
        size=380_000,
        growth_rate=0.07,
        price_sensitivity=0.6,
        value_sensitivity=0.79,
        region_mix={'urban': 0.32, 'suburban': 0.46, 'rural': 0.22},
        demographics={'income': 'mid', 'age': 'adult', 'household': 'family'},
        notes='Multiline households balancing price with perks and parental controls.',
        default_offer_id='offer-value-bundle',
        default_channel_mix={'ch-retail': 0.32, 'ch-social': 0.28, 'ch-search': 0.25, 'ch-email': 0.15},
    ),
    Segment(
        id='seg-switch-prepaid',
        name='Switch-Prone Prepaid',
        size=270_000,
        growth_rate=0.09,
        price_sensitivity=0.9,
        value_sensitivity=0.52,
        region_mix={'urban': 0.5, 'suburban': 0.3, 'rural': 0.2},
        demographics={'income': 'low', 'age': 'adult', 'household': 'single'},
        notes='Churn-heavy prepaid shoppers; move for promos and device deals.',
        default_offer_id='offer-device-boost',
        default_channel_mix={'ch-social': 0.4, 'ch-search': 0.3, 'ch-retail': 0.2, 'ch-field': 0.1},
    ),
]

DEFAULT_ASSUMPTIONS = Assumptions()

# Plan-level channel keys (Search/Social/Email/Retail) to catalog ids
CHANNEL_ID_BY_KEY: Dict[str, str] = {
    'Search': 'ch-search',
    'Social': 'ch-social',
    'Email': 'ch-email',
    'Retail': 'ch-retail',
    'Field': 'ch-field',
}
CHANNEL_KEY_BY_ID: Dict[str, str] = {v: k for k, v in CHANNEL_ID_BY_KEY.items()}


def get_channel(channel_id: str) -> Channel:
    for channel in CHANNELS:
        if channel.id == channel_id:
            return channel
    raise CatalogLookupError(f"Unknown channel: {channel_id}", details={'known': [c.id for c in CHANNELS]})


def get_offer(offer_id: str) -> OfferArchetype:
    for offer in OFFERS:
        if offer.id == offer_id:
            return offer
    raise CatalogLookupError(f"Unknown offer: {offer_id}", details={'known': [o.id for o in OFFERS]})


def get_segment(segment_id: str) -> Segment:
    for segment in SEGMENTS:
        if segment.id == segment_id:
            return segment
    raise CatalogLookupError(f"Unknown segment: {segment_id}", details={'known': [s.id for s in SEGMENTS]})


__all__ = [
    'CHANNELS',
    'OFFERS',
    'SEGMENTS',
    'DEFAULT_ASSUMPTIONS',
    'CHANNEL_ID_BY_KEY',
    'CHANNEL_KEY_BY_ID',
    'get_channel',
    'get_offer',
    'get_segment',
]

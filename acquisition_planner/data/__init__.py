"""
Reference catalog - seeded segments, offers, channels and assumptions
"""
from .seeds import (
    CHANNELS,
    OFFERS,
    SEGMENTS,
    DEFAULT_ASSUMPTIONS,
    CHANNEL_ID_BY_KEY,
    CHANNEL_KEY_BY_ID,
    get_channel,
    get_offer,
    get_segment,
)

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

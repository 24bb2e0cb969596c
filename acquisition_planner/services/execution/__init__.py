"""
Execution module - campaign tracking, impact scoring and live telemetry
"""
from .campaign_tracker import (
    CampaignTracker,
    normalise_channels,
    score_impact,
)
from .telemetry import (
    TelemetryBuffer,
    monitoring_summary,
    next_telemetry_point,
)

__all__ = [
    'CampaignTracker',
    'normalise_channels',
    'score_impact',
    'TelemetryBuffer',
    'monitoring_summary',
    'next_telemetry_point',
]

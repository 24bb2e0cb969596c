"""
Mock live telemetry for running campaigns.

``next_telemetry_point`` is the pure update rule: a bounded random step plus
exponential smoothing toward the campaign's KPI anchor, clamped to fixed
bands. ``TelemetryBuffer`` keeps the most recent points per campaign.
"""
import time
from collections import deque
from typing import TYPE_CHECKING, Deque, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from acquisition_planner.models import Campaign, TelemetryPoint
from acquisition_planner.services.utils.numeric import clamp, round_to

if TYPE_CHECKING:
    from acquisition_planner.services.execution.campaign_tracker import CampaignTracker

DEFAULT_BUFFER_SIZE = 61

CVR_STEP = (-0.12, 0.12)
CVR_SMOOTHING = 0.18
CVR_BOUNDS = (0.4, 9.5)

ARPU_STEP = (-0.25, 0.28)
ARPU_SMOOTHING = 0.16
ARPU_BOUNDS = (-4.0, 18.0)

NET_ADDS_STEP = (-90.0, 110.0)
NET_ADDS_SMOOTHING = 0.22
NET_ADDS_BOUNDS = (220.0, 12_000.0)

CHURN_STEP = (-0.05, 0.06)
CHURN_DRIFT = 0.1
CHURN_BOUNDS = (-2.2, 2.4)
RETENTION_CHURN_START = -0.4
DEFAULT_CHURN_START = 0.2
RETENTION_CHURN_BASE = -0.25
DEFAULT_CHURN_BASE = 0.18

METRIC_COLUMNS = ['cvr', 'arpu_delta', 'net_adds', 'churn_delta']


def now_ms() -> int:
    return int(time.time() * 1000)


def next_telemetry_point(
    prev: Optional[TelemetryPoint],
    campaign: Campaign,
    rng: np.random.Generator,
    now: Optional[int] = None,
) -> TelemetryPoint:
    """
    Produce the next telemetry point for ``campaign``.

    The first point (``prev`` is None) equals the KPI anchor. Later points
    random-walk toward it.
    """
    t = now if now is not None else now_ms()
    anchor = campaign.kpis
    retention = campaign.agent == 'Retention'
    if prev is None:
        return TelemetryPoint(
            t=t,
            cvr=anchor.cvr,
            arpu_delta=anchor.arpu_delta,
            net_adds=anchor.net_adds,
            churn_delta=RETENTION_CHURN_START if retention else DEFAULT_CHURN_START,
        )

    cvr = clamp(
        prev.cvr + rng.uniform(*CVR_STEP) + (anchor.cvr - prev.cvr) * CVR_SMOOTHING,
        *CVR_BOUNDS,
    )
    arpu_delta = clamp(
        prev.arpu_delta + rng.uniform(*ARPU_STEP) + (anchor.arpu_delta - prev.arpu_delta) * ARPU_SMOOTHING,
        *ARPU_BOUNDS,
    )
    net_adds = clamp(
        prev.net_adds + rng.uniform(*NET_ADDS_STEP) + (anchor.net_adds - prev.net_adds) * NET_ADDS_SMOOTHING,
        *NET_ADDS_BOUNDS,
    )
    churn_base = RETENTION_CHURN_BASE if retention else DEFAULT_CHURN_BASE
    churn_delta = clamp(
        prev.churn_delta + rng.uniform(*CHURN_STEP) + churn_base * CHURN_DRIFT,
        *CHURN_BOUNDS,
    )
    return TelemetryPoint(
        t=t,
        cvr=round_to(cvr),
        arpu_delta=round_to(arpu_delta),
        net_adds=int(round(net_adds)),
        churn_delta=round_to(churn_delta),
    )


class TelemetryBuffer:
    """Append-only buffer that keeps the last ``maxlen`` points."""

    def __init__(self, maxlen: int = DEFAULT_BUFFER_SIZE, points: Iterable[TelemetryPoint] = ()):
        self._points: Deque[TelemetryPoint] = deque(points, maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._points.maxlen

    def append(self, point: TelemetryPoint) -> None:
        self._points.append(point)

    def extend(self, points: Iterable[TelemetryPoint]) -> None:
        self._points.extend(points)

    def latest(self) -> Optional[TelemetryPoint]:
        return self._points[-1] if self._points else None

    def snapshot(self) -> List[TelemetryPoint]:
        return list(self._points)

    def to_frame(self) -> pd.DataFrame:
        if not self._points:
            return pd.DataFrame(columns=['t'] + METRIC_COLUMNS)
        return pd.DataFrame([p.model_dump() for p in self._points])

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)


def monitoring_summary(
    tracker: 'CampaignTracker',
    campaign_id: Optional[str] = None,
    window_days: int = 30,
    now: Optional[int] = None,
) -> Dict:
    """
    Average telemetry across running campaigns (or one campaign).

    Returns:
        Dictionary with the campaigns covered, point count, metric averages
        and the latest point per campaign
    """
    t_now = now if now is not None else now_ms()
    cutoff = t_now - window_days * 24 * 60 * 60 * 1000

    if campaign_id is not None:
        campaigns = [tracker.get_campaign(campaign_id)]
    else:
        campaigns = [c for c in tracker.campaigns if c.status == 'Running']

    frames = []
    latest = {}
    for campaign in campaigns:
        df = tracker.stream(campaign.id).to_frame()
        if df.empty:
            continue
        df = df[df['t'] >= cutoff]
        if df.empty:
            continue
        df = df.assign(campaign_id=campaign.id)
        frames.append(df)
        latest[campaign.id] = df.sort_values('t').iloc[-1][['t'] + METRIC_COLUMNS].to_dict()

    if not frames:
        return {
            'campaign_ids': [c.id for c in campaigns],
            'window_days': window_days,
            'points': 0,
            'averages': {column: None for column in METRIC_COLUMNS},
            'latest': {},
        }

    combined = pd.concat(frames, ignore_index=True)
    averages = combined[METRIC_COLUMNS].mean()
    return {
        'campaign_ids': [c.id for c in campaigns],
        'window_days': window_days,
        'points': int(len(combined)),
        'averages': {column: round_to(averages[column]) for column in METRIC_COLUMNS},
        'latest': {
            cid: {key: (int(value) if key in ('t', 'net_adds') else float(value)) for key, value in point.items()}
            for cid, point in latest.items()
        },
    }

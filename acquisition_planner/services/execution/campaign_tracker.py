"""
Execution Hub - launched campaigns, live telemetry and agent actions

Campaign KPIs are scored from channel weights and offer deltas against fixed
baselines. The tracker keeps every campaign's telemetry buffer and
agent-action log in memory; nothing here is persisted.
"""
import uuid
from typing import Dict, List, Optional

import numpy as np

from acquisition_planner.errors import CampaignNotFoundError
from acquisition_planner.logging_config import get_logger
from acquisition_planner.models import (
    AgentAction,
    Campaign,
    CampaignKpis,
    CampaignOffer,
    CohortRef,
)
from acquisition_planner.services.execution.telemetry import (
    DEFAULT_BUFFER_SIZE,
    TelemetryBuffer,
    next_telemetry_point,
    now_ms,
)
from acquisition_planner.services.utils.numeric import clamp, round_to

logger = get_logger(__name__)


# ============================================================================
# IMPACT MODEL
# ============================================================================

BASE_METRICS = {
    'cvr': 3.4,
    'arpu_delta': 6.8,
    'gm12': 920_000,
    'net_adds': 3800,
    'payback_mo': 6.4,
    'nps_delta': 5.6,
}

BASE_OFFER = CampaignOffer(price=75, promo_months=3, promo_value=120, device_subsidy=180)

CHANNEL_WEIGHTS: Dict[str, Dict[str, float]] = {
    'Search': {'cvr': 1.15, 'arpu': 0.4, 'gm12': 65_000, 'net_adds': 520, 'payback': -0.35, 'nps': 0.25},
    'Social': {'cvr': 0.95, 'arpu': 0.25, 'gm12': 58_000, 'net_adds': 470, 'payback': -0.28, 'nps': 0.18},
    'Email': {'cvr': 0.45, 'arpu': 0.55, 'gm12': 34_000, 'net_adds': 300, 'payback': -0.12, 'nps': 0.22},
    'Retail': {'cvr': 0.25, 'arpu': 1.2, 'gm12': 72_000, 'net_adds': 240, 'payback': 0.28, 'nps': 0.46},
    'Field': {'cvr': 0.2, 'arpu': 1.45, 'gm12': 68_000, 'net_adds': 210, 'payback': 0.36, 'nps': 0.4},
}

# Per-unit effect of (price, promo_value, promo_months, device_subsidy) diffs vs BASE_OFFER
OFFER_EFFECTS: Dict[str, tuple] = {
    'cvr': (-0.018, 0.0025, 0.12, 0.0018),
    'arpu': (0.055, -0.009, -0.08, -0.003),
    'gm12': (1100, -160, -9000, -420),
    'net_adds': (-6, 4.5, 120, 1.8),
    'payback': (0.011, 0.004, 0.22, 0.005),
    'nps': (0.03, 0.018, 0.08, 0.012),
}

CVR_BOUNDS = (0.6, 9.0)
GM12_BOUNDS = (120_000, 2_200_000)
NET_ADDS_BOUNDS = (420, 9800)
PAYBACK_BOUNDS = (3.0, 18.0)

MAX_AGENT_ACTIONS = 12
LAUNCH_SEED_POINTS = 8
DEMO_SEED_POINTS = 16
SEED_SPACING_MS = 6 * 60 * 1000
AUTO_OPTIMIZE_STEP = 0.02


def normalise_channels(channels: Dict[str, float]) -> Dict[str, float]:
    """Scale channel weights to fractions (4 d.p.); unknown channels are dropped."""
    known = {key: max(0.0, float(value)) for key, value in channels.items() if key in CHANNEL_WEIGHTS}
    total = sum(known.values()) or 1.0
    return {key: round_to(value / total, 4) for key, value in known.items()}


def score_impact(channels: Dict[str, float], offer: CampaignOffer) -> CampaignKpis:
    """
    Score campaign KPIs from a channel mix and offer.

    Args:
        channels: Channel key -> weight (any scale)
        offer: Offer terms

    Returns:
        CampaignKpis clamped to the reporting bands
    """
    mix = normalise_channels(channels)
    effect = {name: 0.0 for name in ('cvr', 'arpu', 'gm12', 'net_adds', 'payback', 'nps')}
    for key, weight in mix.items():
        for name, coef in CHANNEL_WEIGHTS[key].items():
            effect[name] += coef * weight

    diffs = np.array([
        offer.price - BASE_OFFER.price,
        offer.promo_value - BASE_OFFER.promo_value,
        offer.promo_months - BASE_OFFER.promo_months,
        offer.device_subsidy - BASE_OFFER.device_subsidy,
    ], dtype=float)
    for name, coefs in OFFER_EFFECTS.items():
        effect[name] += float(np.dot(diffs, coefs))

    return CampaignKpis(
        cvr=round_to(clamp(BASE_METRICS['cvr'] + effect['cvr'], *CVR_BOUNDS)),
        arpu_delta=round_to(BASE_METRICS['arpu_delta'] + effect['arpu']),
        gm12=float(round(clamp(BASE_METRICS['gm12'] + effect['gm12'], *GM12_BOUNDS))),
        net_adds=int(round(clamp(BASE_METRICS['net_adds'] + effect['net_adds'], *NET_ADDS_BOUNDS))),
        payback_mo=round_to(clamp(BASE_METRICS['payback_mo'] + effect['payback'], *PAYBACK_BOUNDS)),
        nps_delta=round_to(BASE_METRICS['nps_delta'] + effect['nps']),
    )


def _make_id() -> str:
    return uuid.uuid4().hex[:8]


# ============================================================================
# TRACKER
# ============================================================================

class CampaignTracker:
    """In-memory registry of launched campaigns and their live telemetry."""

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        seed: Optional[int] = None,
    ):
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.buffer_size = buffer_size
        self._campaigns: List[Campaign] = []
        self._streams: Dict[str, TelemetryBuffer] = {}
        self._actions: Dict[str, List[AgentAction]] = {}
        self._auto_optimize: Dict[str, bool] = {}

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def campaigns(self) -> List[Campaign]:
        return list(self._campaigns)

    def get_campaign(self, campaign_id: str) -> Campaign:
        for campaign in self._campaigns:
            if campaign.id == campaign_id:
                return campaign
        raise CampaignNotFoundError(
            f"Unknown campaign: {campaign_id}",
            details={'known_ids': [c.id for c in self._campaigns]},
        )

    def stream(self, campaign_id: str) -> TelemetryBuffer:
        if campaign_id not in self._streams:
            self._streams[campaign_id] = TelemetryBuffer(self.buffer_size)
        return self._streams[campaign_id]

    def actions(self, campaign_id: str) -> List[AgentAction]:
        return list(self._actions.get(campaign_id, []))

    def auto_optimize_enabled(self, campaign_id: str) -> bool:
        return self._auto_optimize.get(campaign_id, False)

    def _replace(self, updated: Campaign) -> Campaign:
        self._campaigns = [updated if c.id == updated.id else c for c in self._campaigns]
        return updated

    def _push_point(self, campaign: Campaign, now: Optional[int] = None) -> None:
        buffer = self.stream(campaign.id)
        buffer.append(next_telemetry_point(buffer.latest(), campaign, self.rng, now))

    def _seed_stream(self, campaign: Campaign, count: int, now: int) -> None:
        buffer = self.stream(campaign.id)
        prev = None
        for i in range(count):
            prev = next_telemetry_point(prev, campaign, self.rng, now - (count - 1 - i) * SEED_SPACING_MS)
            buffer.append(prev)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def launch_campaign(
        self,
        name: str,
        cohorts: List[CohortRef],
        channels: Dict[str, float],
        offer: CampaignOffer,
        agent: str = 'Acquisition',
        kpis: Optional[CampaignKpis] = None,
        now: Optional[int] = None,
    ) -> Campaign:
        """Register a running campaign and seed its telemetry."""
        t = now if now is not None else now_ms()
        campaign = Campaign(
            id=_make_id(),
            name=name,
            cohorts=cohorts,
            status='Running',
            channels=normalise_channels(channels),
            offer=offer,
            kpis=kpis if kpis is not None else score_impact(channels, offer),
            agent=agent,
            created_at=t,
            last_update=t,
        )
        self._campaigns.insert(0, campaign)
        self._seed_stream(campaign, LAUNCH_SEED_POINTS, t)
        self._actions[campaign.id] = []
        self._auto_optimize[campaign.id] = False
        self.log_action(
            campaign.id,
            summary='Campaign launched from Offering Designer hand-off.',
            lift=0.0,
            details='Baseline telemetry initialised.',
            now=t,
        )
        logger.info(f"Launched campaign {campaign.id}: {name} ({len(cohorts)} cohorts, agent={agent})")
        return campaign

    def seed_demo_campaign(self, now: Optional[int] = None) -> Campaign:
        """Load the running demo campaign shown on first start."""
        t = now if now is not None else now_ms()
        campaign = Campaign(
            id='cmp_001',
            name='Premium Network Loyalists / Family Coverage Maximizers',
            cohorts=[
                CohortRef(id='seg-premium', name='Premium Network Loyalists', size=128_000),
                CohortRef(id='seg-family', name='Family Coverage Maximizers', size=82_000),
            ],
            status='Running',
            channels=normalise_channels({'Search': 0.28, 'Social': 0.22, 'Email': 0.18, 'Retail': 0.2, 'Field': 0.12}),
            offer=CampaignOffer(price=85, promo_months=4, promo_value=180, device_subsidy=220),
            kpis=CampaignKpis(cvr=4.1, arpu_delta=7.4, payback_mo=6.8, gm12=1_180_000, net_adds=4860, nps_delta=6.3),
            agent='Acquisition',
            created_at=t - 12 * 24 * 60 * 60 * 1000,
            last_update=t - 2 * 60 * 60 * 1000,
        )
        self._campaigns.append(campaign)
        self._seed_stream(campaign, DEMO_SEED_POINTS, t)
        self._actions[campaign.id] = []
        self._auto_optimize[campaign.id] = False
        self.log_action(
            campaign.id,
            summary='Rebalanced Search up +4% to capture intent from premium switchers.',
            lift=0.6,
            details='Projected GM12 lift +$42K',
            now=t - 45 * 60 * 1000,
        )
        return campaign

    def update_campaign(self, campaign_id: str, **patch) -> Campaign:
        campaign = self.get_campaign(campaign_id)
        patch['last_update'] = now_ms()
        return self._replace(campaign.model_copy(update=patch))

    def toggle_status(self, campaign_id: str) -> Campaign:
        """Pause a running campaign; resume anything else."""
        campaign = self.get_campaign(campaign_id)
        status = 'Paused' if campaign.status == 'Running' else 'Running'
        logger.info(f"Campaign {campaign_id}: {campaign.status} -> {status}")
        return self._replace(campaign.model_copy(update={'status': status, 'last_update': now_ms()}))

    def _apply_tune(
        self,
        campaign: Campaign,
        channels: Optional[Dict[str, float]] = None,
        offer: Optional[Dict[str, float]] = None,
    ) -> Campaign:
        next_channels = normalise_channels({**campaign.channels, **(channels or {})})
        next_offer = CampaignOffer(**{**campaign.offer.model_dump(), **(offer or {})})
        return campaign.model_copy(update={
            'channels': next_channels,
            'offer': next_offer,
            'kpis': score_impact(next_channels, next_offer),
            'last_update': now_ms(),
        })

    def tune_campaign(
        self,
        campaign_id: str,
        channels: Optional[Dict[str, float]] = None,
        offer: Optional[Dict[str, float]] = None,
    ) -> Campaign:
        """Apply channel/offer edits, rescore KPIs and emit a telemetry point."""
        tuned = self._replace(self._apply_tune(self.get_campaign(campaign_id), channels, offer))
        self._push_point(tuned)
        logger.info(f"Tuned campaign {campaign_id}: payback={tuned.kpis.payback_mo} cvr={tuned.kpis.cvr}")
        return tuned

    def estimate_impact(
        self,
        campaign_id: str,
        channels: Optional[Dict[str, float]] = None,
        offer: Optional[Dict[str, float]] = None,
    ) -> Dict:
        """Score a what-if tune without applying it."""
        campaign = self.get_campaign(campaign_id)
        nxt = self._apply_tune(campaign, channels, offer).kpis
        cur = campaign.kpis
        return {
            'next': nxt,
            'delta': {
                'cvr': round_to(nxt.cvr - cur.cvr),
                'arpu_delta': round_to(nxt.arpu_delta - cur.arpu_delta),
                'gm12': round_to(nxt.gm12 - cur.gm12, 0),
                'net_adds': int(nxt.net_adds - cur.net_adds),
                'payback_mo': round_to(nxt.payback_mo - cur.payback_mo),
                'nps_delta': round_to(nxt.nps_delta - cur.nps_delta),
            },
        }

    def set_auto_optimize(self, campaign_id: str, value: bool) -> None:
        self.get_campaign(campaign_id)
        self._auto_optimize[campaign_id] = bool(value)

    def log_action(
        self,
        campaign_id: str,
        summary: str,
        lift: float,
        status: str = 'Applied',
        details: Optional[str] = None,
        now: Optional[int] = None,
    ) -> AgentAction:
        """Prepend an agent action; the log keeps the newest entries only."""
        entry = AgentAction(
            id=_make_id(),
            campaign_id=campaign_id,
            timestamp=now if now is not None else now_ms(),
            summary=summary,
            lift=lift,
            status=status,
            details=details,
        )
        existing = self._actions.get(campaign_id, [])
        self._actions[campaign_id] = [entry] + existing[:MAX_AGENT_ACTIONS - 1]
        return entry

    def tick(self, now: Optional[int] = None) -> int:
        """Append one telemetry point to every running campaign."""
        count = 0
        for campaign in self._campaigns:
            if campaign.status != 'Running':
                continue
            self._push_point(campaign, now)
            count += 1
        return count

    def auto_optimize_tick(self, now: Optional[int] = None) -> List[str]:
        """Nudge one random channel by +/-2% on running campaigns with auto-optimize on."""
        tuned_ids = []
        for campaign in list(self._campaigns):
            if campaign.status != 'Running' or not self.auto_optimize_enabled(campaign.id):
                continue
            keys = list(campaign.channels)
            if not keys:
                continue
            channel = keys[int(self.rng.integers(len(keys)))]
            direction = AUTO_OPTIMIZE_STEP if self.rng.random() > 0.5 else -AUTO_OPTIMIZE_STEP
            tuned = self._replace(
                self._apply_tune(campaign, {channel: max(0.0, campaign.channels[channel] + direction)})
            )
            self._push_point(tuned, now)
            self.log_action(
                campaign.id,
                summary='Auto-optimize nudged mix ±2% based on live telemetry.',
                lift=0.3,
                details='Auto agent blended Search/Social reach.',
                now=now,
            )
            tuned_ids.append(campaign.id)
        if tuned_ids:
            logger.debug(f"Auto-optimize tuned {len(tuned_ids)} campaigns")
        return tuned_ids

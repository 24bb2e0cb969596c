"""
Domain models for the acquisition planner.

Reference data (segments, channels, offers) is frozen. Plans, objectives and
campaign records are value objects: services return new copies instead of
patching them in place.
"""
import math
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


Goal = Literal["Balanced", "Growth-first", "Margin-first"]
ChannelKey = Literal["Search", "Social", "Email", "Retail"]

PLAN_CHANNEL_KEYS: Tuple[str, ...] = ("Search", "Social", "Email", "Retail")
CALENDAR_ROWS = 4
CALENDAR_WEEKS = 12
CALENDAR_MAX_INTENSITY = 3

PAYBACK_SENTINEL = ">24"


# ============================================================================
# REFERENCE DATA
# ============================================================================

class Segment(BaseModel):
    """Addressable market segment (cohort)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    size: int = Field(..., ge=0, description="Population count")
    price_sensitivity: float = Field(..., ge=0, le=1)
    value_sensitivity: float = Field(..., ge=0, le=1)
    growth_rate: Optional[float] = None
    region_mix: Dict[str, float] = Field(default_factory=dict)
    demographics: Dict[str, str] = Field(default_factory=dict)
    notes: str = ""
    default_offer_id: Optional[str] = None
    default_channel_mix: Dict[str, float] = Field(default_factory=dict)


class Channel(BaseModel):
    """Acquisition channel with its cost and response curve parameters."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    cac: float = Field(..., ge=0, description="Cost per acquisition")
    reach: float = Field(..., ge=0, le=1)
    efficiency: float = Field(..., ge=0, le=1)


class OfferArchetype(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    monthly_price: float = Field(..., ge=0)
    promo_months: int = Field(0, ge=0)
    promo_value: float = Field(0.0, ge=0)
    device_subsidy: float = Field(0.0, ge=0)
    bundle_flags: List[str] = Field(default_factory=list)


class Assumptions(BaseModel):
    """Global unit-economics constants used by the cohort simulator."""
    model_config = ConfigDict(frozen=True)

    gross_margin_rate: float = Field(0.55, ge=0, le=1)
    servicing_cost_per_sub_mo: float = Field(12.0, ge=0)
    device_subsidy_amort_mo: int = Field(12, ge=1)
    execution_cost: float = Field(20.0, ge=0)


# ============================================================================
# COHORT SIMULATION
# ============================================================================

class CacBreakdown(BaseModel):
    channel_cac: float
    promo_cost: float
    device_subsidy: float
    execution_cost: float


class TimelinePoint(BaseModel):
    month: int
    cumulative_contribution: float


class CohortOutput(BaseModel):
    """Result of a single cohort run."""
    take_rate: float
    reach: float
    conversion_rate: float
    net_adds: int
    cac: float
    monthly_contribution: List[float]
    payback_months: Union[int, str]
    gross_margin_12mo: float
    margin_pct: float
    breakdown: CacBreakdown
    timeline: List[TimelinePoint]


class MicroSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    parent_segment_id: str
    name: str
    size: int
    traits: List[str]
    price_sensitivity: float
    value_sensitivity: float
    default_channel_mix: Dict[str, float]
    default_offer_id: str


class ExpectedOutcome(BaseModel):
    payback_months: Union[int, str]
    gross_margin_12mo: float
    net_adds: int


class Recommendation(BaseModel):
    channel_mix: Dict[str, float]
    offer_archetype_id: str
    rationale: List[str]
    creative_tone: List[str]
    expected: ExpectedOutcome


class CohortBlend(BaseModel):
    """Cohort results rolled up across several micro-segment audiences."""
    net_adds: int
    payback_months: Union[int, str]
    gross_margin_12mo: float
    cac: float
    margin_pct: float
    conversion_rate: float
    timeline: List[TimelinePoint]


class AudienceSimulation(BaseModel):
    blended: CohortBlend
    by_audience: Dict[str, CohortOutput]


# ============================================================================
# CAMPAIGN PLANNING
# ============================================================================

class Objective(BaseModel):
    """Targets and guardrails for a campaign plan."""
    goal: Goal = "Balanced"
    payback_target: float = Field(8.0, gt=0)
    margin_target: float = 28.0
    cac_ceiling: float = Field(145.0, gt=0)
    budget: float = Field(420_000.0, ge=0)


class PlanKpis(BaseModel):
    payback_mo: float = 0.0
    payback_range: Tuple[float, float] = (0.0, 0.0)
    conversion_pct: float = 0.0
    conversion_range: Tuple[float, float] = (0.0, 0.0)
    margin_pct: float = 0.0
    margin_range: Tuple[float, float] = (0.0, 0.0)


class Driver(BaseModel):
    label: str
    delta: float


class CreativeBrief(BaseModel):
    headline: str = "Kick off campaign"
    subtext: str = "Generating baseline performance ranges."
    hero_hint: str = "Shift spend once performance stabilises."


class CampaignPlan(BaseModel):
    """Campaign levers plus the KPIs derived from them."""
    price: float = Field(..., ge=0)
    promo_depth_pct: float = Field(..., ge=0, le=100)
    promo_months: int = Field(..., ge=0)
    device_subsidy: float = Field(..., ge=0)
    channel_mix: Dict[str, float]
    calendar: List[List[int]]
    inventory_hold: bool = False
    kpis: PlanKpis = Field(default_factory=PlanKpis)
    drivers: List[Driver] = Field(default_factory=list)
    confidence: float = Field(0.6, ge=0, le=1)
    creative_brief: CreativeBrief = Field(default_factory=CreativeBrief)

    @field_validator("channel_mix")
    @classmethod
    def validate_channel_mix(cls, v):
        """Only plan channel keys with finite, non-negative weights; missing keys default to zero."""
        unknown = set(v) - set(PLAN_CHANNEL_KEYS)
        if unknown:
            raise ValueError(f"Unknown channel keys: {sorted(unknown)}. Expected: {list(PLAN_CHANNEL_KEYS)}")
        mix = {key: float(v.get(key, 0.0)) for key in PLAN_CHANNEL_KEYS}
        invalid = {key: weight for key, weight in mix.items() if not math.isfinite(weight) or weight < 0}
        if invalid:
            raise ValueError(f"Channel mix weights must be finite and non-negative, got {invalid}")
        return mix

    @field_validator("calendar")
    @classmethod
    def validate_calendar(cls, v):
        """Calendar is a 4x12 grid of intensities in 0..3."""
        if len(v) != CALENDAR_ROWS:
            raise ValueError(f"Calendar must have {CALENDAR_ROWS} channel rows, got {len(v)}")
        for row in v:
            if len(row) != CALENDAR_WEEKS:
                raise ValueError(f"Calendar rows must have {CALENDAR_WEEKS} weeks, got {len(row)}")
            for cell in row:
                if cell < 0 or cell > CALENDAR_MAX_INTENSITY:
                    raise ValueError(f"Calendar intensity {cell} outside 0..{CALENDAR_MAX_INTENSITY}")
        return v


class OptimizerChange(BaseModel):
    """One lever change applied by the target optimizer."""
    model_config = ConfigDict(populate_by_name=True)

    field: str
    from_value: Union[int, float, str] = Field(..., alias="from")
    to_value: Union[int, float, str] = Field(..., alias="to")


class OptimizationResult(BaseModel):
    plan: CampaignPlan
    changes: List[OptimizerChange] = Field(default_factory=list)
    iterations: int
    stop_reason: Literal["converged", "fixed_point", "iteration_cap"]


# ============================================================================
# INTENT PARSING
# ============================================================================

class ChannelShift(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["channel_shift"] = "channel_shift"
    from_channel: str = Field(..., alias="from")
    to_channel: str = Field(..., alias="to")
    delta: float = Field(..., ge=0, le=1)


class ChannelAdjust(BaseModel):
    kind: Literal["channel_adjust"] = "channel_adjust"
    channel: str
    delta: float


class OfferAdjust(BaseModel):
    kind: Literal["offer_adjust"] = "offer_adjust"
    field: Literal["price", "promo_value", "device_subsidy", "promo_months"]
    delta: float


class AudienceChange(BaseModel):
    kind: Literal["audience"] = "audience"
    include: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)


class BudgetChange(BaseModel):
    kind: Literal["budget"] = "budget"
    delta: float


class PaybackTargetChange(BaseModel):
    kind: Literal["payback_target"] = "payback_target"
    months: float = Field(..., gt=0)


IntentDelta = Annotated[
    Union[ChannelShift, ChannelAdjust, OfferAdjust, AudienceChange, BudgetChange, PaybackTargetChange],
    Field(discriminator="kind"),
]


class ParsedIntent(BaseModel):
    """Structured deltas recognised in a free-text command."""
    text: str = ""
    deltas: List[IntentDelta] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)

    @property
    def channel_shifts(self) -> List[ChannelShift]:
        return [d for d in self.deltas if isinstance(d, ChannelShift)]

    @property
    def channel_adjustments(self) -> List[ChannelAdjust]:
        return [d for d in self.deltas if isinstance(d, ChannelAdjust)]

    @property
    def offer_adjustments(self) -> List[OfferAdjust]:
        return [d for d in self.deltas if isinstance(d, OfferAdjust)]

    @property
    def audience_changes(self) -> List[AudienceChange]:
        return [d for d in self.deltas if isinstance(d, AudienceChange)]

    @property
    def budget_delta(self) -> float:
        return sum(d.delta for d in self.deltas if isinstance(d, BudgetChange))

    @property
    def payback_target(self) -> Optional[float]:
        targets = [d.months for d in self.deltas if isinstance(d, PaybackTargetChange)]
        return targets[-1] if targets else None

    @property
    def is_actionable(self) -> bool:
        return bool(self.deltas)


class IntentApplication(BaseModel):
    """Plan, objective and audience selection after applying a parsed intent."""
    plan: CampaignPlan
    objective: Objective
    selected_micro_ids: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)


# ============================================================================
# PERSISTED STATE
# ============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GeoWindow(_CamelModel):
    geo: str
    window: str
    grain: str


class SegmentPayloadKpis(_CamelModel):
    opportunity_score: float
    reachable: int
    expected_cvr: Tuple[float, float]
    payback_months: float


class SegmentPayload(_CamelModel):
    """Exported Segment Studio payload."""
    id: str = Field(..., min_length=1)
    name: str
    label: Optional[str] = None
    chips: List[str] = Field(default_factory=list)
    filters: Dict[str, List[str]] = Field(default_factory=dict)
    geo_window: GeoWindow
    kpis: SegmentPayloadKpis
    rivals: Optional[List[str]] = None
    pressure_index: Optional[float] = None
    white_space: Optional[float] = None
    created_at: str
    version: int = Field(1, ge=1)


class SelectionState(BaseModel):
    """Planner selection state persisted between sessions."""
    active_segment_id: Optional[str] = None
    selected_micro_ids: List[str] = Field(default_factory=list)
    recommendations: Dict[str, Recommendation] = Field(default_factory=dict)
    campaign_plan: Optional[CampaignPlan] = None
    objective: Objective = Field(default_factory=Objective)
    assumptions: Assumptions = Field(default_factory=Assumptions)


# ============================================================================
# EXECUTION HUB
# ============================================================================

CampaignStatus = Literal["Planned", "Running", "Paused", "Completed"]
AgentKind = Literal["Acquisition", "Upsell", "Retention", "Optimization"]


class CohortRef(BaseModel):
    id: str
    name: str
    size: int = Field(..., ge=0)


class CampaignOffer(BaseModel):
    price: float = Field(..., ge=0)
    promo_months: int = Field(..., ge=0)
    promo_value: float = Field(..., ge=0)
    device_subsidy: float = Field(..., ge=0)


class CampaignKpis(BaseModel):
    cvr: float
    arpu_delta: float
    payback_mo: float
    gm12: float
    net_adds: int
    nps_delta: float


class Campaign(BaseModel):
    id: str
    name: str
    cohorts: List[CohortRef]
    status: CampaignStatus = "Running"
    channels: Dict[str, float]
    offer: CampaignOffer
    kpis: CampaignKpis
    agent: AgentKind = "Acquisition"
    created_at: int
    last_update: int


class TelemetryPoint(BaseModel):
    t: int = Field(..., description="Epoch milliseconds")
    cvr: float
    arpu_delta: float
    net_adds: int
    churn_delta: float


class AgentAction(BaseModel):
    id: str
    campaign_id: str
    timestamp: int
    summary: str
    lift: float
    status: Literal["Applied", "Queued"] = "Applied"
    details: Optional[str] = None


__all__ = [
    'Goal',
    'ChannelKey',
    'PLAN_CHANNEL_KEYS',
    'CALENDAR_ROWS',
    'CALENDAR_WEEKS',
    'CALENDAR_MAX_INTENSITY',
    'PAYBACK_SENTINEL',
    'Segment',
    'Channel',
    'OfferArchetype',
    'Assumptions',
    'CacBreakdown',
    'TimelinePoint',
    'CohortOutput',
    'MicroSegment',
    'ExpectedOutcome',
    'Recommendation',
    'CohortBlend',
    'AudienceSimulation',
    'Objective',
    'PlanKpis',
    'Driver',
    'CreativeBrief',
    'CampaignPlan',
    'OptimizerChange',
    'OptimizationResult',
    'ChannelShift',
    'ChannelAdjust',
    'OfferAdjust',
    'AudienceChange',
    'BudgetChange',
    'PaybackTargetChange',
    'IntentDelta',
    'ParsedIntent',
    'IntentApplication',
    'GeoWindow',
    'SegmentPayloadKpis',
    'SegmentPayload',
    'SelectionState',
    'CampaignStatus',
    'AgentKind',
    'CohortRef',
    'CampaignOffer',
    'CampaignKpis',
    'Campaign',
    'TelemetryPoint',
    'AgentAction',
]

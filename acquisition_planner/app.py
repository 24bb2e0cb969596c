#!/usr/bin/env python3
"""
Acquisition Planner API
FastAPI facade over the cohort, plan, optimizer, intent and execution services
"""
import asyncio
import os
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, ValidationError

from acquisition_planner import __version__
from acquisition_planner.config import get_settings
from acquisition_planner.data.seeds import CHANNELS, DEFAULT_ASSUMPTIONS, OFFERS, SEGMENTS, get_offer, get_segment
from acquisition_planner.errors import CampaignNotFoundError, CatalogLookupError
from acquisition_planner.logging_config import get_logger, setup_logging
from acquisition_planner.models import (
    AgentKind,
    Assumptions,
    CampaignKpis,
    CampaignOffer,
    CampaignPlan,
    CohortRef,
    Objective,
    SegmentPayload,
    SelectionState,
)
from acquisition_planner.services.cohort import (
    build_recommendation,
    find_micro_segments,
    generate_micro_segments,
    run_cohort,
    simulate_audiences,
)
from acquisition_planner.services.execution import CampaignTracker, monitoring_summary
from acquisition_planner.services.intent import apply_intent, parse_intent
from acquisition_planner.services.optimization import optimize_to_target
from acquisition_planner.services.planning import (
    checklist_status,
    confidence_label,
    create_plan_from_objective,
    estimate_cac,
    estimate_plan_spend,
    fix_issue,
    simulate_campaign,
)
from acquisition_planner.services.storage import SegmentPayloadStore, StateStore
from acquisition_planner.services.utils.export import plan_to_csv, telemetry_to_csv

# Initialize settings and logging
settings = get_settings()
setup_logging(level=settings.LOG_LEVEL, log_to_file=settings.LOG_TO_FILE, log_dir=settings.LOG_DIR)
logger = get_logger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Acquisition Planner API",
    description="Subscriber acquisition planning - cohort simulation, campaign plans, optimization & execution",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(CatalogLookupError)
async def catalog_lookup_handler(request: Request, exc: CatalogLookupError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Not found", "message": exc.message, "details": exc.details},
    )


@app.exception_handler(CampaignNotFoundError)
async def campaign_not_found_handler(request: Request, exc: CampaignNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Not found", "message": exc.message, "details": exc.details},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "detail": exc.errors(include_url=False, include_context=False)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled errors.
    Logs full details and returns a generic body with a request id.
    """
    request_id = str(uuid.uuid4())

    logger.error(
        f"Unhandled exception [request_id={request_id}]: {exc}",
        extra={
            "request_id": request_id,
            "path": str(request.url),
            "method": request.method,
            "traceback": traceback.format_exc()
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please contact support.",
            "request_id": request_id
        }
    )


# ============================================================================
# REQUEST MODELS
# ============================================================================

class CohortRunRequest(BaseModel):
    segment_id: str
    offer_id: Optional[str] = None
    channel_mix: Optional[Dict[str, float]] = None
    assumptions: Optional[Assumptions] = None


class BlendRequest(BaseModel):
    selected_micro_ids: List[str] = Field(default_factory=list)
    offer_id: Optional[str] = None
    channel_mix: Optional[Dict[str, float]] = None
    assumptions: Optional[Assumptions] = None


class PlanRequest(BaseModel):
    plan: CampaignPlan
    objective: Objective = Field(default_factory=Objective)


class FixRequest(PlanRequest):
    issue: Literal["budget", "cac", "payback", "margin", "calendar", "confidence"]


class ExportRequest(PlanRequest):
    cohort_name: str = "Selected cohort"


class IntentRequest(BaseModel):
    text: str
    segment_id: Optional[str] = None
    apply: bool = False
    plan: Optional[CampaignPlan] = None
    objective: Objective = Field(default_factory=Objective)
    selected_micro_ids: List[str] = Field(default_factory=list)


class LaunchRequest(BaseModel):
    name: str = Field(..., min_length=1)
    cohorts: List[CohortRef] = Field(default_factory=list)
    channels: Dict[str, float]
    offer: CampaignOffer
    agent: AgentKind = "Acquisition"
    kpis: Optional[CampaignKpis] = None


class OfferPatch(BaseModel):
    price: Optional[float] = Field(None, ge=0)
    promo_months: Optional[int] = Field(None, ge=0)
    promo_value: Optional[float] = Field(None, ge=0)
    device_subsidy: Optional[float] = Field(None, ge=0)


class TuneRequest(BaseModel):
    channels: Optional[Dict[str, float]] = None
    offer: Optional[OfferPatch] = None


class AutoOptimizeRequest(BaseModel):
    enabled: bool


# ============================================================================
# SERVICES
# ============================================================================

_tracker: Optional[CampaignTracker] = None
_telemetry_task: Optional[asyncio.Task] = None


def get_tracker() -> CampaignTracker:
    """Create the execution tracker on first use, seeded with the demo campaign."""
    global _tracker
    if _tracker is None:
        _tracker = CampaignTracker(buffer_size=settings.TELEMETRY_BUFFER_SIZE, seed=settings.TELEMETRY_SEED)
        _tracker.seed_demo_campaign()
        logger.info("Campaign tracker initialized")
    return _tracker


def get_state_store() -> StateStore:
    return StateStore(os.path.join(settings.DATA_DIR, settings.STATE_FILE))


def get_payload_store() -> SegmentPayloadStore:
    return SegmentPayloadStore(os.path.join(settings.DATA_DIR, settings.SEGMENTS_FILE))


def _plan_response(plan: CampaignPlan, objective: Objective) -> Dict[str, Any]:
    return {
        "plan": plan,
        "objective": objective,
        "estimated_spend": estimate_plan_spend(plan),
        "estimated_cac": estimate_cac(plan),
        "confidence_label": confidence_label(plan.confidence),
        "checklist": checklist_status(plan, objective),
    }


def _tune_patch(req: TuneRequest):
    offer = req.offer.model_dump(exclude_none=True) if req.offer else None
    return req.channels, offer


async def _telemetry_loop(interval: float) -> None:
    """Tick telemetry every ``interval`` seconds; auto-optimize runs every other tick."""
    tick = 0
    while True:
        await asyncio.sleep(interval)
        tick += 1
        try:
            tracker = get_tracker()
            tracker.tick()
            if tick % 2 == 0:
                tracker.auto_optimize_tick()
        except Exception:
            logger.exception(f"Telemetry tick {tick} failed")


# ============================================================================
# LIFECYCLE & HEALTH
# ============================================================================

@app.on_event("startup")
async def startup_event():
    global _telemetry_task
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    get_tracker()
    if settings.TELEMETRY_INTERVAL_SECONDS > 0:
        _telemetry_task = asyncio.create_task(_telemetry_loop(settings.TELEMETRY_INTERVAL_SECONDS))
        logger.info(f"Telemetry ticker started: every {settings.TELEMETRY_INTERVAL_SECONDS}s")


@app.on_event("shutdown")
async def shutdown_event():
    global _telemetry_task
    if _telemetry_task is not None:
        _telemetry_task.cancel()
        try:
            await _telemetry_task
        except asyncio.CancelledError:
            pass
        _telemetry_task = None
        logger.info("Telemetry ticker stopped")


@app.get("/health")
def health_check() -> JSONResponse:
    """
    Health check with data directory validation.

    Returns:
        200: Service is healthy
        503: Service is unhealthy or degraded
    """
    health_status = {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {}
    }

    if not os.path.exists(settings.DATA_DIR):
        health_status["checks"]["data_directory"] = "missing"
        health_status["status"] = "unhealthy"
    elif not os.access(settings.DATA_DIR, os.W_OK):
        health_status["checks"]["data_directory"] = "not_writable"
        health_status["status"] = "degraded"
    else:
        health_status["checks"]["data_directory"] = "ok"

    if _telemetry_task is None:
        health_status["checks"]["telemetry"] = "idle"
    elif _telemetry_task.done():
        health_status["checks"]["telemetry"] = "stopped"
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"
    else:
        health_status["checks"]["telemetry"] = "running"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# ============================================================================
# CATALOG & COHORTS
# ============================================================================

@app.get("/api/v1/catalog")
def get_catalog():
    return {
        "segments": SEGMENTS,
        "offers": OFFERS,
        "channels": CHANNELS,
        "assumptions": DEFAULT_ASSUMPTIONS,
    }


@app.post("/api/v1/cohort/run")
def cohort_run(req: CohortRunRequest):
    segment = get_segment(req.segment_id)
    offer = get_offer(req.offer_id or segment.default_offer_id or OFFERS[0].id)
    mix = req.channel_mix if req.channel_mix else segment.default_channel_mix
    logger.info(f"Cohort run: segment={segment.id} offer={offer.id}")
    return run_cohort(segment, offer, mix, req.assumptions)


@app.post("/api/v1/cohort/blend")
def cohort_blend(req: BlendRequest):
    micros = find_micro_segments(req.selected_micro_ids)
    logger.info(f"Cohort blend: {len(micros)} micro segments")
    return simulate_audiences(micros, req.offer_id, req.channel_mix, req.assumptions)


@app.get("/api/v1/segments/{segment_id}/micro")
def segment_micro(segment_id: str):
    segment = get_segment(segment_id)
    micros = generate_micro_segments(segment)
    return {
        "segment": segment,
        "micro_segments": [
            {"micro": micro, "recommendation": build_recommendation(micro)} for micro in micros
        ],
    }


# ============================================================================
# CAMPAIGN PLANS
# ============================================================================

@app.post("/api/v1/plan")
def create_plan(objective: Objective):
    plan = create_plan_from_objective(objective)
    return _plan_response(plan, objective)


@app.post("/api/v1/plan/simulate")
def plan_simulate(req: PlanRequest):
    return _plan_response(simulate_campaign(req.plan, req.objective), req.objective)


@app.post("/api/v1/plan/optimize")
def plan_optimize(req: PlanRequest):
    result = optimize_to_target(req.plan, req.objective)
    response = _plan_response(result.plan, req.objective)
    response.update({
        "changes": result.changes,
        "iterations": result.iterations,
        "stop_reason": result.stop_reason,
    })
    return response


@app.post("/api/v1/plan/checklist")
def plan_checklist(req: PlanRequest):
    return {
        "checklist": checklist_status(req.plan, req.objective),
        "confidence_label": confidence_label(req.plan.confidence),
    }


@app.post("/api/v1/plan/fix")
def plan_fix(req: FixRequest):
    return _plan_response(fix_issue(req.plan, req.objective, req.issue), req.objective)


@app.post("/api/v1/plan/export")
def plan_export(req: ExportRequest):
    csv = plan_to_csv(req.plan, req.objective, req.cohort_name)
    filename = f"campaign-plan-{int(datetime.now(timezone.utc).timestamp() * 1000)}.csv"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return Response(content=csv, media_type="text/csv", headers=headers)


@app.post("/api/v1/intent/parse")
def intent_parse(req: IntentRequest):
    micros = generate_micro_segments(get_segment(req.segment_id)) if req.segment_id else []
    intent = parse_intent(req.text, micros)
    response: Dict[str, Any] = {"intent": intent, "actionable": intent.is_actionable, "application": None}
    if req.apply and intent.is_actionable:
        plan = req.plan or create_plan_from_objective(req.objective)
        application = apply_intent(plan, req.objective, intent, req.selected_micro_ids)
        response["application"] = {
            **_plan_response(application.plan, application.objective),
            "selected_micro_ids": application.selected_micro_ids,
            "notes": application.notes,
        }
    return response


# ============================================================================
# PERSISTED STATE
# ============================================================================

@app.get("/api/v1/state")
def get_state():
    return get_state_store().load()


@app.put("/api/v1/state")
def put_state(state: SelectionState):
    return get_state_store().save(state)


@app.get("/api/v1/segment-payloads")
def list_segment_payloads():
    return [p.model_dump(mode="json", by_alias=True) for p in get_payload_store().load_all()]


@app.post("/api/v1/segment-payloads")
def save_segment_payload(payload: SegmentPayload):
    saved = get_payload_store().save_one(payload)
    return saved.model_dump(mode="json", by_alias=True)


@app.get("/api/v1/segment-payloads/{payload_id}")
def get_segment_payload(payload_id: str):
    payload = get_payload_store().get_one(payload_id)
    if payload is None:
        raise HTTPException(status_code=404, detail=f"Segment payload not found: {payload_id}")
    return payload.model_dump(mode="json", by_alias=True)


# ============================================================================
# EXECUTION HUB
# ============================================================================

@app.get("/api/v1/campaigns")
def list_campaigns():
    tracker = get_tracker()
    return {
        "campaigns": tracker.campaigns,
        "auto_optimize": {c.id: tracker.auto_optimize_enabled(c.id) for c in tracker.campaigns},
    }


@app.post("/api/v1/campaigns", status_code=status.HTTP_201_CREATED)
def launch_campaign(req: LaunchRequest):
    return get_tracker().launch_campaign(
        name=req.name,
        cohorts=req.cohorts,
        channels=req.channels,
        offer=req.offer,
        agent=req.agent,
        kpis=req.kpis,
    )


@app.get("/api/v1/campaigns/{campaign_id}")
def get_campaign(campaign_id: str):
    tracker = get_tracker()
    return {
        "campaign": tracker.get_campaign(campaign_id),
        "actions": tracker.actions(campaign_id),
        "auto_optimize": tracker.auto_optimize_enabled(campaign_id),
        "telemetry": tracker.stream(campaign_id).snapshot(),
    }


@app.post("/api/v1/campaigns/{campaign_id}/tune")
def tune_campaign(campaign_id: str, req: TuneRequest):
    channels, offer = _tune_patch(req)
    return get_tracker().tune_campaign(campaign_id, channels=channels, offer=offer)


@app.post("/api/v1/campaigns/{campaign_id}/toggle")
def toggle_campaign(campaign_id: str):
    return get_tracker().toggle_status(campaign_id)


@app.post("/api/v1/campaigns/{campaign_id}/estimate")
def estimate_campaign(campaign_id: str, req: TuneRequest):
    channels, offer = _tune_patch(req)
    return get_tracker().estimate_impact(campaign_id, channels=channels, offer=offer)


@app.post("/api/v1/campaigns/{campaign_id}/auto-optimize")
def set_auto_optimize(campaign_id: str, req: AutoOptimizeRequest):
    tracker = get_tracker()
    tracker.set_auto_optimize(campaign_id, req.enabled)
    return {"campaign_id": campaign_id, "auto_optimize": tracker.auto_optimize_enabled(campaign_id)}


@app.get("/api/v1/monitoring")
def monitoring(campaign_id: Optional[str] = None, window_days: int = 30):
    return monitoring_summary(get_tracker(), campaign_id=campaign_id, window_days=window_days)


@app.get("/api/v1/monitoring/{campaign_id}/export")
def monitoring_export(campaign_id: str):
    tracker = get_tracker()
    tracker.get_campaign(campaign_id)
    csv = telemetry_to_csv(tracker.stream(campaign_id).snapshot())
    headers = {"Content-Disposition": f"attachment; filename=monitoring-{campaign_id}.csv"}
    return Response(content=csv, media_type="text/csv", headers=headers)

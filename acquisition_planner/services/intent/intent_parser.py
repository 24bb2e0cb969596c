"""
Intent Parser - fixed command grammar for plan edits

Free-text commands such as "shift 10% budget from Retail to Search" are
matched against an ordered table of (pattern, extractor) rules. Every rule
scans the lowercased text independently, so one command can produce several
deltas. This is pattern matching over a small grammar, not language
understanding: phrasings outside the table are silently ignored.
"""
import re
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from acquisition_planner.data.seeds import CHANNEL_ID_BY_KEY, CHANNEL_KEY_BY_ID
from acquisition_planner.logging_config import get_logger
from acquisition_planner.models import (
    PLAN_CHANNEL_KEYS,
    AudienceChange,
    BudgetChange,
    CampaignPlan,
    ChannelAdjust,
    ChannelShift,
    IntentApplication,
    MicroSegment,
    Objective,
    OfferAdjust,
    ParsedIntent,
    PaybackTargetChange,
)
from acquisition_planner.services.planning.plan_math import normalise_mix
from acquisition_planner.services.planning.plan_simulator import simulate_campaign
from acquisition_planner.services.utils.numeric import clamp, round_to

logger = get_logger(__name__)

NO_ACTION_NOTE = 'No actionable instructions detected'

_CHANNEL = r'(search|social|email|retail|field)'
_NUMBER = r'(\d+(?:\.\d+)?)'
# Dollar amount not followed by more digits, a percent sign or a month unit
_AMOUNT = r'\$?(\d+(?:\.\d+)?)(?!\d|\.\d|\s*(?:%|months?\b|mo\b))'
_CLAUSE_END = r'(?=[.;!?]|,?\s+(?:and|but)\s+(?:include|exclude|remove)\b|,\s*(?:include|exclude|remove)\b|$)'

RAISE_VERBS = {'raise', 'increase', 'boost', 'grow', 'add', 'extend'}

Extraction = Tuple[Optional[object], str]


class ParseContext(NamedTuple):
    micro_segments: Sequence[MicroSegment]


class IntentRule(NamedTuple):
    name: str
    pattern: re.Pattern
    extract: Callable[[re.Match, ParseContext], Extraction]


# ============================================================================
# EXTRACTORS
# ============================================================================

def _channel_name(word: str) -> str:
    return word.capitalize()


def _channel_id(word: str) -> str:
    return CHANNEL_ID_BY_KEY[_channel_name(word)]


def _sign(verb: str) -> int:
    return 1 if verb in RAISE_VERBS else -1


def _extract_shift(match: re.Match, ctx: ParseContext) -> Extraction:
    pct = min(100.0, float(match.group(1)))
    source, target = match.group(2), match.group(3)
    if source == target:
        return None, f"Ignored shift from {_channel_name(source)} to itself"
    delta = ChannelShift(from_channel=_channel_id(source), to_channel=_channel_id(target), delta=round_to(pct / 100, 4))
    return delta, f"Shift {pct:g}% from {_channel_name(source)} to {_channel_name(target)}"


def _extract_channel_adjust(match: re.Match, ctx: ParseContext) -> Extraction:
    verb, channel, pct = match.group(1), match.group(2), float(match.group(3))
    sign = _sign(verb)
    delta = ChannelAdjust(channel=_channel_id(channel), delta=round_to(sign * pct / 100, 4))
    action = 'Increase' if sign > 0 else 'Decrease'
    return delta, f"{action} {_channel_name(channel)} by {pct:g}%"


def _offer_extractor(field: str, label: str) -> Callable[[re.Match, ParseContext], Extraction]:
    def extract(match: re.Match, ctx: ParseContext) -> Extraction:
        sign = _sign(match.group(1))
        amount = float(match.group(2))
        action = 'Raise' if sign > 0 else 'Lower'
        return OfferAdjust(field=field, delta=sign * amount), f"{action} {label} by ${amount:g}"
    return extract


def _extract_promo_months(match: re.Match, ctx: ParseContext) -> Extraction:
    sign = _sign(match.group(1))
    months = int(match.group(2))
    unit = 'month' if months == 1 else 'months'
    action = 'Extend' if sign > 0 else 'Shorten'
    return OfferAdjust(field='promo_months', delta=sign * months), f"{action} promo by {months} {unit}"


def _match_micro_ids(phrase: str, micro_segments: Iterable[MicroSegment]) -> List[str]:
    ids = []
    for micro in micro_segments:
        persona = micro.name.split(' (')[0].lower()
        if micro.id.lower() in phrase or micro.name.lower() in phrase or persona in phrase:
            ids.append(micro.id)
    return ids


def _audience_extractor(mode: str) -> Callable[[re.Match, ParseContext], Extraction]:
    def extract(match: re.Match, ctx: ParseContext) -> Extraction:
        phrase = match.group(1).strip()
        ids = _match_micro_ids(phrase, ctx.micro_segments)
        if not ids:
            return None, f"No micro-segment matched '{phrase}'"
        if mode == 'include':
            return AudienceChange(include=ids), f"Include {', '.join(ids)}"
        return AudienceChange(exclude=ids), f"Exclude {', '.join(ids)}"
    return extract


def _extract_budget(match: re.Match, ctx: ParseContext) -> Extraction:
    sign = _sign(match.group(1))
    amount = float(match.group(2).replace(',', ''))
    suffix = match.group(3)
    if suffix == 'k':
        amount *= 1_000
    elif suffix == 'm':
        amount *= 1_000_000
    action = 'Raise' if sign > 0 else 'Lower'
    return BudgetChange(delta=sign * amount), f"{action} budget by ${amount:,.0f}"


def _extract_payback(match: re.Match, ctx: ParseContext) -> Extraction:
    months = float(match.group(1))
    if months <= 0:
        return None, 'Ignored non-positive payback target'
    return PaybackTargetChange(months=months), f"Target payback of {months:g} months"


# ============================================================================
# RULE TABLE
# ============================================================================

INTENT_RULES: List[IntentRule] = [
    IntentRule(
        'budget_shift',
        re.compile(
            rf'(?:shift|move|reallocate)\s+{_NUMBER}\s*%\s+(?:of\s+)?(?:the\s+)?(?:budget\s+|spend\s+|mix\s+)?'
            rf'from\s+{_CHANNEL}\s+to\s+{_CHANNEL}'
        ),
        _extract_shift,
    ),
    IntentRule(
        'channel_adjust',
        re.compile(
            rf'(increase|boost|raise|grow|decrease|reduce|cut|lower|trim)\s+(?:the\s+)?{_CHANNEL}'
            rf'(?:\s+(?:spend|budget|mix|weight))?\s+by\s+{_NUMBER}\s*%'
        ),
        _extract_channel_adjust,
    ),
    IntentRule(
        'price',
        re.compile(rf'(raise|increase|boost|drop|lower|reduce|cut)\s+(?:the\s+)?price\s+by\s+{_AMOUNT}'),
        _offer_extractor('price', 'price'),
    ),
    IntentRule(
        'promo_value',
        re.compile(
            rf'(raise|increase|boost|drop|lower|reduce|cut)\s+(?:the\s+)?promo(?:tion)?(?:\s+value)?\s+by\s+{_AMOUNT}'
        ),
        _offer_extractor('promo_value', 'promo value'),
    ),
    IntentRule(
        'device_subsidy',
        re.compile(
            rf'(raise|increase|boost|drop|lower|reduce|cut)\s+(?:the\s+)?(?:device\s+)?subsid(?:y|ies)\s+by\s+{_AMOUNT}'
        ),
        _offer_extractor('device_subsidy', 'device subsidy'),
    ),
    IntentRule(
        'promo_months',
        re.compile(r'(add|extend|remove|shorten|cut|reduce)\s+(?:the\s+)?promo(?:tion)?\s+by\s+(\d+)\s*months?\b'),
        _extract_promo_months,
    ),
    IntentRule(
        'promo_months_count',
        re.compile(r'(add|remove)\s+(\d+)\s+(?:more\s+)?promo(?:tion)?\s+months?\b'),
        _extract_promo_months,
    ),
    IntentRule(
        'include',
        re.compile(rf'\binclude\s+(?!\d)(.+?){_CLAUSE_END}'),
        _audience_extractor('include'),
    ),
    IntentRule(
        'exclude',
        re.compile(rf'\b(?:exclude|remove)\s+(?!\d|(?:the\s+)?promo)(.+?){_CLAUSE_END}'),
        _audience_extractor('exclude'),
    ),
    IntentRule(
        'budget',
        re.compile(
            r'(raise|increase|grow|boost|lower|reduce|cut|trim)\s+(?:the\s+)?(?:total\s+)?budget\s+by\s+'
            r'\$?(\d[\d,]*(?:\.\d+)?)\s*([km])?\b'
        ),
        _extract_budget,
    ),
    IntentRule(
        'payback_target',
        re.compile(
            rf'payback(?:\s+target)?\s+(?:of|to|under|below|within|at)\s+{_NUMBER}\s*(?:months?|mo)\b'
        ),
        _extract_payback,
    ),
    IntentRule(
        'payback_target_prefix',
        re.compile(rf'target\s+(?:a\s+)?{_NUMBER}[\s-]*(?:months?|mo)\s+payback'),
        _extract_payback,
    ),
]


# ============================================================================
# PARSE & APPLY
# ============================================================================

def _resolve_audience_overlap(intent: ParsedIntent) -> ParsedIntent:
    """Drop ids that appear on both sides from the include lists; exclude wins."""
    excluded = {mid for change in intent.audience_changes for mid in change.exclude}
    included = {mid for change in intent.audience_changes for mid in change.include}
    conflicts = sorted(excluded & included)
    if not conflicts:
        return intent

    deltas = []
    for delta in intent.deltas:
        if isinstance(delta, AudienceChange) and delta.include:
            kept = [mid for mid in delta.include if mid not in excluded]
            if not kept and not delta.exclude:
                continue
            delta = AudienceChange(include=kept, exclude=list(delta.exclude))
        deltas.append(delta)
    notes = intent.notes + [f"Both included and excluded, exclude wins: {', '.join(conflicts)}"]
    return ParsedIntent(text=intent.text, deltas=deltas, notes=notes)


def parse_intent(text: str, micro_segments: Sequence[MicroSegment] = ()) -> ParsedIntent:
    """
    Parse a free-text command into structured plan deltas.

    Args:
        text: Command text (case-insensitive)
        micro_segments: Micro segments that include/exclude phrases can name

    Returns:
        ParsedIntent; with no recognised phrase it carries one note and no deltas
    """
    lowered = (text or '').lower()
    ctx = ParseContext(micro_segments=list(micro_segments))
    deltas = []
    notes = []
    matched = False

    for rule in INTENT_RULES:
        for match in rule.pattern.finditer(lowered):
            matched = True
            delta, note = rule.extract(match, ctx)
            if delta is not None:
                deltas.append(delta)
            notes.append(note)

    if not matched:
        logger.debug(f"No intent rule matched: {text!r}")
        return ParsedIntent(text=text or '', notes=[NO_ACTION_NOTE])

    intent = _resolve_audience_overlap(ParsedIntent(text=text, deltas=deltas, notes=notes))
    logger.debug(f"Parsed intent with {len(intent.deltas)} deltas: {intent.notes}")
    return intent


def _plan_key(channel_id: str) -> Optional[str]:
    key = CHANNEL_KEY_BY_ID.get(channel_id)
    return key if key in PLAN_CHANNEL_KEYS else None


def apply_intent(
    plan: CampaignPlan,
    objective: Objective,
    intent: ParsedIntent,
    selected_micro_ids: Sequence[str] = (),
) -> IntentApplication:
    """
    Fold parsed deltas into a plan, objective and audience selection.

    Channel shifts move mix points between plan channels; adjustments scale a
    single weight. Promo value deltas become promo depth points relative to
    price. The resulting plan is re-simulated against the updated objective.
    """
    mix = dict(plan.channel_mix)
    price = plan.price
    promo_depth = plan.promo_depth_pct
    promo_months = plan.promo_months
    subsidy = plan.device_subsidy
    selection = list(selected_micro_ids)
    notes: List[str] = []

    # Mix and audience edits apply in command order
    for delta in intent.deltas:
        if isinstance(delta, ChannelShift):
            source, target = _plan_key(delta.from_channel), _plan_key(delta.to_channel)
            if source is None or target is None:
                notes.append(f"Skipped shift involving {delta.from_channel}/{delta.to_channel}: not a plan channel")
                continue
            points = min(delta.delta * 100, mix.get(source, 0.0))
            mix[source] = mix.get(source, 0.0) - points
            mix[target] = mix.get(target, 0.0) + points
            mix = normalise_mix(mix)
        elif isinstance(delta, ChannelAdjust):
            key = _plan_key(delta.channel)
            if key is None:
                notes.append(f"Skipped adjustment of {delta.channel}: not a plan channel")
                continue
            mix[key] = max(0.0, mix.get(key, 0.0) * (1 + delta.delta))
            mix = normalise_mix(mix)
        elif isinstance(delta, AudienceChange):
            for mid in delta.include:
                if mid not in selection:
                    selection.append(mid)
            selection = [mid for mid in selection if mid not in set(delta.exclude)]

    for adjust in intent.offer_adjustments:
        if adjust.field == 'price':
            price = max(0.0, round_to(price + adjust.delta))
        elif adjust.field == 'promo_value':
            depth_points = adjust.delta / price * 100 if price > 0 else 0.0
            promo_depth = round_to(clamp(promo_depth + depth_points, 0.0, 100.0))
        elif adjust.field == 'device_subsidy':
            subsidy = max(0.0, round_to(subsidy + adjust.delta))
        else:
            promo_months = max(0, promo_months + int(adjust.delta))

    budget = max(0.0, objective.budget + intent.budget_delta)
    payback_target = intent.payback_target or objective.payback_target

    next_objective = objective.model_copy(update={'budget': budget, 'payback_target': payback_target})
    next_plan = plan.model_copy(update={
        'price': price,
        'promo_depth_pct': promo_depth,
        'promo_months': promo_months,
        'device_subsidy': subsidy,
        'channel_mix': mix,
    })
    next_plan = simulate_campaign(next_plan, next_objective)
    logger.info(f"Applied intent: {len(intent.deltas)} deltas, {len(selection)} micro segments selected")
    return IntentApplication(
        plan=next_plan,
        objective=next_objective,
        selected_micro_ids=selection,
        notes=list(intent.notes) + notes,
    )
